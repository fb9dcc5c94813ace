from __future__ import annotations

from flowpolicy.evaluation.explain import render_report, render_verdict, report_to_dto, witness_lines
from flowpolicy.evaluation.verdict import (
    CandidateWitness,
    ExhaustedWitness,
    PolicyReport,
    RelationWitness,
    Satisfied,
    UnitVerdict,
    VacuousWitness,
    Violated,
)
from flowpolicy.language.binding import compile_policy
from flowpolicy.language.nodes import ControlFlow, Quantifier, VariableBinding

DC = VariableBinding(Quantifier.SOME, "dc", "delete_check")
W = VariableBinding(Quantifier.ALL, "w", "db_write")


def _violation() -> Violated:
    return Violated(CandidateWitness(W, "write", ExhaustedWitness(DC, ("d1", "d2"))))


def test_witness_lines_indent_each_cause() -> None:
    assert witness_lines(_violation().witness) == [
        'all w : "db_write" stopped at write',
        '  none of 2 "delete_check" candidates for dc satisfied the clause',
    ]


def test_relation_and_vacuous_witnesses_are_described() -> None:
    relation = RelationWitness(
        ControlFlow("dc", "w"),
        "dc has control flow influence on w",
        (("dc", "d1"), ("w", "write")),
    )
    verdict = Satisfied(VacuousWitness(relation))
    assert render_verdict(verdict).splitlines() == [
        "satisfied",
        "premise does not hold; implication is vacuously true",
        "  dc has control flow influence on w does not hold (dc=d1, w=write)",
    ]
    assert witness_lines(ExhaustedWitness(DC)) == [
        'no node is marked "delete_check" for dc'
    ]


def test_render_report_lists_units_and_summary() -> None:
    report = PolicyReport(
        (UnitVerdict("ok_unit", Satisfied()), UnitVerdict("bad_unit", _violation()))
    )
    lines = render_report(report).splitlines()
    assert lines[0] == "[ok] ok_unit"
    assert lines[1] == "[VIOLATED] bad_unit"
    assert lines[2].startswith("    all w")
    assert lines[-1] == "Policy violated."
    assert render_report(PolicyReport(())).splitlines() == [
        "no analysis units evaluated",
        "Policy satisfied.",
    ]


def test_report_dto_carries_witness_chain_and_warnings() -> None:
    compiled = compile_policy(
        'always: all x : "a" ( some x : "b" ( x flows to x ) )'
    )
    report = PolicyReport((UnitVerdict("bad_unit", _violation()),))
    payload = report_to_dto(report, compiled.warnings)
    assert not payload.satisfied
    witness = payload.units[0].witness
    assert (witness.kind, witness.node, witness.quantifier) == ("candidate", "write", "all")
    assert witness.cause.kind == "exhausted"
    assert witness.cause.tried == ["d1", "d2"]
    assert len(payload.warnings) == 1
    assert payload.errors == []
