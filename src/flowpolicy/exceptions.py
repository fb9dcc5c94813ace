"""Exception hierarchy for policy compilation and evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


class FlowPolicyError(Exception):
    """Base class for every error raised by flowpolicy."""


@dataclass(frozen=True)
class RuleFrame:
    """One named grammar rule that was being attempted when parsing failed."""

    rule: str
    offset: int


def _line_and_column(text: str, offset: int) -> tuple[int, int]:
    prefix = text[:offset]
    line = prefix.count("\n")
    column = offset - (prefix.rfind("\n") + 1)
    return line, column


class PolicyParseError(FlowPolicyError):
    """Policy text did not parse.

    ``trace`` lists the rule contexts of the furthest failure, innermost first.
    ``line`` and ``column`` are zero-based, matching editor positions.
    """

    def __init__(
        self,
        text: str,
        offset: int,
        expected: str,
        trace: tuple[RuleFrame, ...] = (),
    ):
        self.text = text
        self.offset = offset
        self.expected = expected
        self.trace = trace
        self.line, self.column = _line_and_column(text, offset)
        super().__init__(
            f"expected {expected} at line {self.line + 1}, column {self.column + 1}"
        )

    @property
    def remaining(self) -> str:
        return self.text[self.offset :]

    def render_trace(self) -> str:
        lines = [str(self)]
        for frame in self.trace:
            snippet = self.text[frame.offset : frame.offset + 40].replace("\n", "\\n")
            lines.append(f"  in {frame.rule} at {frame.offset}: {snippet!r}")
        return "\n".join(lines)


class BindingError(FlowPolicyError):
    """A variable reference does not resolve the way the policy author intended."""

    def __init__(self, message: str, *, variable: str, offset: int = -1):
        super().__init__(message)
        self.variable = variable
        self.offset = offset


class UnboundVariableError(BindingError):
    pass


class ShadowedBindingError(BindingError):
    pass


class UnsupportedScopeError(FlowPolicyError):
    pass


class ContextQueryError(FlowPolicyError):
    """The flow-graph context could not answer a query.

    This is an internal failure of the analysis input, never a policy violation.
    """


class NestingTooDeepError(FlowPolicyError):
    """A hand-built policy tree nests deeper than the interpreter stack allows."""


class BudgetExhausted(FlowPolicyError):
    def __init__(self, used: int, limit: int):
        super().__init__(f"Evaluation budget exhausted: {used}/{limit} steps")
        self.used = used
        self.limit = limit


class ConfigError(FlowPolicyError):
    pass


class NeverThrown(RuntimeError):
    """Raised when a code path that should be unreachable is reached."""

    def __init__(self, reason: str, *, env: Mapping[str, object] | None = None):
        super().__init__(reason)
        self.reason = reason
        self.env = dict(env or {})

    @property
    def payload(self) -> dict[str, object]:
        return {"reason": self.reason, "env": dict(self.env)}
