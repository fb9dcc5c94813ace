"""Verdicts and the witnesses that explain them.

A ``Violated`` verdict is an ordinary result of checking a policy. It always
carries a witness naming the candidate or relation responsible.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from flowpolicy.evaluation.context import NodeHandle
from flowpolicy.language.nodes import LeafRelation, VariableBinding


@dataclass(frozen=True)
class CandidateWitness:
    """The candidate a quantifier stopped at: the first failure for ``all``,
    the first success for ``some``."""

    binding: VariableBinding
    node: NodeHandle
    cause: Witness | None = None


@dataclass(frozen=True)
class ExhaustedWitness:
    """No candidate for an existential clause satisfied its body."""

    binding: VariableBinding
    tried: tuple[NodeHandle, ...] = ()


@dataclass(frozen=True)
class RelationWitness:
    relation: LeafRelation
    check: str
    bound: tuple[tuple[str, NodeHandle], ...] = ()


@dataclass(frozen=True)
class VacuousWitness:
    """An implication held because its premise did not."""

    premise: Witness


Witness: TypeAlias = CandidateWitness | ExhaustedWitness | RelationWitness | VacuousWitness


@dataclass(frozen=True)
class Satisfied:
    witness: Witness | None = None


@dataclass(frozen=True)
class Violated:
    witness: Witness


Verdict: TypeAlias = Satisfied | Violated


@dataclass(frozen=True)
class UnitVerdict:
    unit: str
    verdict: Verdict


@dataclass(frozen=True)
class PolicyReport:
    results: tuple[UnitVerdict, ...]

    @property
    def satisfied(self) -> bool:
        return all(isinstance(result.verdict, Satisfied) for result in self.results)

    @property
    def violations(self) -> tuple[UnitVerdict, ...]:
        return tuple(
            result for result in self.results if isinstance(result.verdict, Violated)
        )
