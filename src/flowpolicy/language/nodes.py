"""Policy AST.

Every node is a frozen dataclass that owns its children outright, so a tree
built by the parser is immutable and acyclic. Source offsets ride along on
leaves and binders for diagnostics but never take part in equality.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterator, TypeAlias


class Quantifier(StrEnum):
    SOME = "some"
    ALL = "all"


class PolicyScope(StrEnum):
    ALWAYS = "always"
    SOMETIMES = "sometimes"


class Operator(StrEnum):
    AND = "and"
    OR = "or"
    IMPLIES = "implies"


@dataclass(frozen=True)
class VariableBinding:
    quantifier: Quantifier
    variable: str
    marker: str


@dataclass(frozen=True)
class FlowsTo:
    src: str
    dest: str
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class ControlFlow:
    src: str
    dest: str
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class Through:
    src: str
    dest: str
    checkpoint: str
    offset: int = field(default=-1, compare=False, repr=False)


@dataclass(frozen=True)
class And:
    left: PolicyNode
    right: PolicyNode


@dataclass(frozen=True)
class Or:
    left: PolicyNode
    right: PolicyNode


@dataclass(frozen=True)
class Implies:
    premise: PolicyNode
    obligation: PolicyNode


@dataclass(frozen=True)
class VarIntroduction:
    binding: VariableBinding
    body: PolicyNode
    offset: int = field(default=-1, compare=False, repr=False)


LeafRelation: TypeAlias = FlowsTo | ControlFlow | Through
Combinator: TypeAlias = And | Or | Implies
PolicyNode: TypeAlias = LeafRelation | Combinator | VarIntroduction


@dataclass(frozen=True)
class Policy:
    scope: PolicyScope
    body: PolicyNode


def combine(operator: Operator, left: PolicyNode, right: PolicyNode) -> Combinator:
    match operator:
        case Operator.AND:
            return And(left, right)
        case Operator.OR:
            return Or(left, right)
        case Operator.IMPLIES:
            return Implies(left, right)


def leaf_variables(node: LeafRelation) -> tuple[str, ...]:
    match node:
        case Through(src=src, dest=dest, checkpoint=checkpoint):
            return (src, dest, checkpoint)
        case FlowsTo(src=src, dest=dest) | ControlFlow(src=src, dest=dest):
            return (src, dest)


def children(node: PolicyNode) -> tuple[PolicyNode, ...]:
    match node:
        case And(left=left, right=right) | Or(left=left, right=right):
            return (left, right)
        case Implies(premise=premise, obligation=obligation):
            return (premise, obligation)
        case VarIntroduction(body=body):
            return (body,)
        case _:
            return ()


def walk(node: PolicyNode) -> Iterator[PolicyNode]:
    """Yield ``node`` and its descendants in pre-order, left to right."""
    stack: list[PolicyNode] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


def is_top_level_body(node: PolicyNode) -> bool:
    """True when every combinator operand is, recursively, a binder."""
    stack: list[PolicyNode] = [node]
    while stack:
        match stack.pop():
            case VarIntroduction():
                continue
            case And() | Or() | Implies() as combinator:
                stack.extend(children(combinator))
            case _:
                return False
    return True
