"""Terminal recognizers for the policy grammar.

Every recognizer takes an offset into the policy text and returns
``(value, next_offset)``; on mismatch it raises ``ParseFailure`` which the
enclosing alternative may catch to backtrack. Whitespace around every token is
insignificant.
"""

from __future__ import annotations

import functools
import re
from typing import Callable, TypeVar

from flowpolicy.exceptions import PolicyParseError, RuleFrame
from flowpolicy.language.nodes import Operator, PolicyScope, Quantifier

T = TypeVar("T")

KEYWORDS: frozenset[str] = frozenset(
    {"and", "or", "implies", "through", "always", "sometimes", "some", "all"}
)

_WHITESPACE = re.compile(r"\s*")
# Letter runs joined by single underscores; a trailing underscore is allowed.
_IDENTIFIER = re.compile(r"[^\W\d_]+(?:_[^\W\d_]+)*_?")
_IDENTIFIER_CHAR = re.compile(r"\w")


class ParseFailure(Exception):
    """Internal backtracking signal; converted to ``PolicyParseError`` at the edge."""

    def __init__(self, offset: int, expected: str, trace: tuple[RuleFrame, ...] = ()):
        super().__init__(expected)
        self.offset = offset
        self.expected = expected
        self.trace = trace


def rule(name: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Name a grammar rule so failures raised while it is active carry it in
    their trace."""

    def decorate(method: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(method)
        def wrapper(self: "TerminalGrammar", pos: int, *args, **kwargs) -> T:
            self._last_entry = pos
            self._active.append(RuleFrame(rule=name, offset=pos))
            try:
                return method(self, pos, *args, **kwargs)
            finally:
                self._active.pop()

        return wrapper

    return decorate


class TerminalGrammar:
    def __init__(self, text: str):
        self.text = text
        self._furthest: ParseFailure | None = None
        self._active: list[RuleFrame] = []
        self._last_entry = 0

    # failure bookkeeping

    def fail(self, offset: int, expected: str) -> ParseFailure:
        """Build a failure carrying the active rule stack, innermost first.

        The failure that got furthest into the input is remembered; it is the
        one reported if the whole parse fails.
        """
        failure = ParseFailure(offset, expected, tuple(reversed(self._active)))
        furthest = self._furthest
        if furthest is None or offset >= furthest.offset:
            self._furthest = failure
        return failure

    def error(self, fallback: ParseFailure | None = None) -> PolicyParseError:
        failure = self._furthest or fallback
        if failure is None:
            return PolicyParseError(self.text, 0, "policy")
        return PolicyParseError(self.text, failure.offset, failure.expected, failure.trace)

    def too_deep(self) -> PolicyParseError:
        """Error for input nested past the interpreter recursion limit, located
        at the innermost rule that was entered."""
        return PolicyParseError(
            self.text, self.skip_whitespace(self._last_entry), "shallower clause nesting"
        )

    # whitespace and lookahead

    def skip_whitespace(self, pos: int) -> int:
        return _WHITESPACE.match(self.text, pos).end()

    def at_end(self, pos: int) -> bool:
        return self.skip_whitespace(pos) == len(self.text)

    def _boundary(self, pos: int) -> bool:
        return pos >= len(self.text) or not _IDENTIFIER_CHAR.match(self.text, pos)

    def at_keyword(self, pos: int, word: str) -> bool:
        start = self.skip_whitespace(pos)
        end = start + len(word)
        return self.text.startswith(word, start) and self._boundary(end)

    # tokens

    def keyword(self, pos: int, word: str) -> int:
        start = self.skip_whitespace(pos)
        if not self.at_keyword(start, word):
            raise self.fail(start, repr(word))
        return self.skip_whitespace(start + len(word))

    def phrase(self, pos: int, words: tuple[str, ...]) -> int:
        for word in words:
            pos = self.keyword(pos, word)
        return pos

    def punctuation(self, pos: int, symbol: str) -> int:
        start = self.skip_whitespace(pos)
        if not self.text.startswith(symbol, start):
            raise self.fail(start, repr(symbol))
        return self.skip_whitespace(start + len(symbol))

    def _raw_identifier(self, start: int) -> tuple[str, int]:
        match = _IDENTIFIER.match(self.text, start)
        if match is None or not self._boundary(match.end()):
            raise self.fail(start, "identifier")
        return match.group(), match.end()

    @rule("identifier")
    def identifier(self, pos: int) -> tuple[str, int]:
        start = self.skip_whitespace(pos)
        name, end = self._raw_identifier(start)
        return name, self.skip_whitespace(end)

    @rule("variable")
    def variable(self, pos: int) -> tuple[str, int]:
        name, end = self.identifier(pos)
        if name in KEYWORDS:
            raise self.fail(self.skip_whitespace(pos), "variable name (got keyword)")
        return name, end

    @rule("marker")
    def marker(self, pos: int) -> tuple[str, int]:
        start = self.skip_whitespace(pos)
        if not self.text.startswith('"', start):
            raise self.fail(start, "'\"'")
        name, end = self._raw_identifier(start + 1)
        if not self.text.startswith('"', end):
            raise self.fail(end, "closing '\"'")
        return name, self.skip_whitespace(end + 1)

    @rule("quantifier")
    def quantifier(self, pos: int) -> tuple[Quantifier, int]:
        for quantifier in Quantifier:
            if self.at_keyword(pos, quantifier.value):
                return quantifier, self.keyword(pos, quantifier.value)
        raise self.fail(self.skip_whitespace(pos), "'some' or 'all'")

    @rule("scope")
    def scope(self, pos: int) -> tuple[PolicyScope, int]:
        for scope in PolicyScope:
            if self.at_keyword(pos, scope.value):
                return scope, self.punctuation(self.keyword(pos, scope.value), ":")
        raise self.fail(self.skip_whitespace(pos), "'always' or 'sometimes'")

    @rule("operator")
    def operator(self, pos: int) -> tuple[Operator, int]:
        for operator in Operator:
            if self.at_keyword(pos, operator.value):
                return operator, self.keyword(pos, operator.value)
        raise self.fail(self.skip_whitespace(pos), "'and', 'or' or 'implies'")
