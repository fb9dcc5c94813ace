"""Human-readable and JSON renderings of verdicts."""

from __future__ import annotations

from flowpolicy.evaluation.verdict import (
    CandidateWitness,
    ExhaustedWitness,
    PolicyReport,
    RelationWitness,
    Satisfied,
    VacuousWitness,
    Verdict,
    Violated,
    Witness,
)
from flowpolicy.invariants import never
from flowpolicy.language.binding import BindingFinding
from flowpolicy.schema import PolicyReportDTO, UnitVerdictDTO, WitnessDTO


def _describe(witness: Witness) -> str:
    match witness:
        case CandidateWitness(binding=binding, node=node):
            return f'{binding.quantifier} {binding.variable} : "{binding.marker}" stopped at {node}'
        case ExhaustedWitness(binding=binding, tried=tried):
            if not tried:
                return f'no node is marked "{binding.marker}" for {binding.variable}'
            return (
                f'none of {len(tried)} "{binding.marker}" candidates for '
                f"{binding.variable} satisfied the clause"
            )
        case RelationWitness(check=check, bound=bound):
            nodes = ", ".join(f"{name}={node}" for name, node in bound)
            return f"{check} does not hold ({nodes})"
        case VacuousWitness():
            return "premise does not hold; implication is vacuously true"
    never("unknown witness", witness_type=type(witness).__name__)


def _cause(witness: Witness) -> Witness | None:
    match witness:
        case CandidateWitness(cause=cause):
            return cause
        case VacuousWitness(premise=premise):
            return premise
        case _:
            return None


def witness_lines(witness: Witness | None) -> list[str]:
    lines: list[str] = []
    depth = 0
    while witness is not None:
        lines.append("  " * depth + _describe(witness))
        witness = _cause(witness)
        depth += 1
    return lines


def render_verdict(verdict: Verdict) -> str:
    match verdict:
        case Satisfied():
            return "\n".join(["satisfied", *witness_lines(verdict.witness)])
        case Violated():
            return "\n".join(["violated", *witness_lines(verdict.witness)])
    never("unknown verdict", verdict_type=type(verdict).__name__)


def render_report(report: PolicyReport) -> str:
    lines: list[str] = []
    for result in report.results:
        status = "ok" if isinstance(result.verdict, Satisfied) else "VIOLATED"
        lines.append(f"[{status}] {result.unit}")
        if isinstance(result.verdict, Violated):
            lines.extend("    " + line for line in witness_lines(result.verdict.witness))
    if not report.results:
        lines.append("no analysis units evaluated")
    lines.append("Policy satisfied." if report.satisfied else "Policy violated.")
    return "\n".join(lines)


def witness_to_dto(witness: Witness) -> WitnessDTO:
    match witness:
        case CandidateWitness(binding=binding, node=node, cause=cause):
            return WitnessDTO(
                kind="candidate",
                variable=binding.variable,
                quantifier=str(binding.quantifier),
                marker=binding.marker,
                node=str(node),
                cause=witness_to_dto(cause) if cause is not None else None,
            )
        case ExhaustedWitness(binding=binding, tried=tried):
            return WitnessDTO(
                kind="exhausted",
                variable=binding.variable,
                quantifier=str(binding.quantifier),
                marker=binding.marker,
                tried=[str(node) for node in tried],
            )
        case RelationWitness(check=check, bound=bound):
            return WitnessDTO(
                kind="relation",
                check=check,
                bound={name: str(node) for name, node in bound},
            )
        case VacuousWitness(premise=premise):
            return WitnessDTO(kind="vacuous", cause=witness_to_dto(premise))
    never("unknown witness", witness_type=type(witness).__name__)


def report_to_dto(
    report: PolicyReport,
    warnings: tuple[BindingFinding, ...] = (),
) -> PolicyReportDTO:
    units = []
    for result in report.results:
        witness = result.verdict.witness
        units.append(
            UnitVerdictDTO(
                unit=result.unit,
                satisfied=isinstance(result.verdict, Satisfied),
                witness=witness_to_dto(witness) if witness is not None else None,
            )
        )
    return PolicyReportDTO(
        satisfied=report.satisfied,
        units=units,
        warnings=[finding.message for finding in warnings],
    )
