"""Lexical binding analysis.

A leaf may only mention variables introduced by an enclosing clause. Binding a
name that an outer clause already binds is legal and shadows the outer binding
for the inner body, but policy authors rarely mean it, so it is always
reported and can be promoted to an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Mapping

from flowpolicy.exceptions import (
    NestingTooDeepError,
    ShadowedBindingError,
    UnboundVariableError,
)
from flowpolicy.invariants import never
from flowpolicy.language.nodes import (
    And,
    ControlFlow,
    FlowsTo,
    Implies,
    Or,
    Policy,
    PolicyNode,
    Through,
    VarIntroduction,
    VariableBinding,
    leaf_variables,
)
from flowpolicy.language.parser import parse_policy


class ShadowingMode(StrEnum):
    ALLOW = "allow"
    WARN = "warn"
    REJECT = "reject"


class FindingKind(StrEnum):
    UNBOUND = "unbound"
    SHADOWED = "shadowed"


@dataclass(frozen=True)
class BindingFinding:
    kind: FindingKind
    variable: str
    offset: int
    message: str

    @property
    def is_error(self) -> bool:
        return self.kind is FindingKind.UNBOUND


def _collect(
    node: PolicyNode,
    scope: Mapping[str, VariableBinding],
    findings: list[BindingFinding],
) -> None:
    while True:
        match node:
            case FlowsTo() | ControlFlow() | Through():
                for name in dict.fromkeys(leaf_variables(node)):
                    if name not in scope:
                        findings.append(
                            BindingFinding(
                                kind=FindingKind.UNBOUND,
                                variable=name,
                                offset=node.offset,
                                message=f"variable '{name}' is not bound by any enclosing clause",
                            )
                        )
                return
            case And(left=left, right=right) | Or(left=left, right=right):
                _collect(left, scope, findings)
                node = right
            case Implies(premise=premise, obligation=obligation):
                _collect(premise, scope, findings)
                node = obligation
            case VarIntroduction(binding=binding, body=body):
                outer = scope.get(binding.variable)
                if outer is not None:
                    findings.append(
                        BindingFinding(
                            kind=FindingKind.SHADOWED,
                            variable=binding.variable,
                            offset=node.offset,
                            message=(
                                f"'{binding.quantifier} {binding.variable} : \"{binding.marker}\"' "
                                f"shadows the enclosing binding over \"{outer.marker}\""
                            ),
                        )
                    )
                scope = {**scope, binding.variable: binding}
                node = body
            case _:
                never("unknown policy node", node_type=type(node).__name__)


def check_bindings(target: Policy | PolicyNode) -> tuple[BindingFinding, ...]:
    node = target.body if isinstance(target, Policy) else target
    findings: list[BindingFinding] = []
    try:
        _collect(node, {}, findings)
    except RecursionError:
        raise NestingTooDeepError("policy clauses nest too deeply to check bindings") from None
    return tuple(findings)


def enforce_bindings(
    target: Policy | PolicyNode,
    *,
    shadowing: ShadowingMode = ShadowingMode.WARN,
) -> tuple[BindingFinding, ...]:
    """Raise for binding errors and return the warnings that remain."""
    warnings: list[BindingFinding] = []
    for finding in check_bindings(target):
        match finding.kind:
            case FindingKind.UNBOUND:
                raise UnboundVariableError(
                    finding.message, variable=finding.variable, offset=finding.offset
                )
            case FindingKind.SHADOWED if shadowing is ShadowingMode.REJECT:
                raise ShadowedBindingError(
                    finding.message, variable=finding.variable, offset=finding.offset
                )
            case FindingKind.SHADOWED if shadowing is ShadowingMode.WARN:
                warnings.append(finding)
    return tuple(warnings)


@dataclass(frozen=True)
class CompiledPolicy:
    policy: Policy
    warnings: tuple[BindingFinding, ...] = ()


def compile_policy(
    text: str,
    *,
    shadowing: ShadowingMode | str = ShadowingMode.WARN,
) -> CompiledPolicy:
    policy = parse_policy(text)
    warnings = enforce_bindings(policy, shadowing=ShadowingMode(shadowing))
    return CompiledPolicy(policy=policy, warnings=warnings)
