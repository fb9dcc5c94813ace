from flowpolicy.evaluation.budget import GasMeter, budget_scope
from flowpolicy.evaluation.context import EdgeKind, FlowContext, UnitSource
from flowpolicy.evaluation.evaluator import evaluate, evaluate_policy, evaluate_units
from flowpolicy.evaluation.explain import render_report, render_verdict, report_to_dto
from flowpolicy.evaluation.graph import FlowGraph, GraphEdge, GraphNode, UnitGraph, load_graph
from flowpolicy.evaluation.verdict import (
    CandidateWitness,
    ExhaustedWitness,
    PolicyReport,
    RelationWitness,
    Satisfied,
    UnitVerdict,
    VacuousWitness,
    Verdict,
    Violated,
)

__all__ = [
    "CandidateWitness",
    "EdgeKind",
    "ExhaustedWitness",
    "FlowContext",
    "FlowGraph",
    "GasMeter",
    "GraphEdge",
    "GraphNode",
    "PolicyReport",
    "RelationWitness",
    "Satisfied",
    "UnitGraph",
    "UnitSource",
    "UnitVerdict",
    "VacuousWitness",
    "Verdict",
    "Violated",
    "budget_scope",
    "evaluate",
    "evaluate_policy",
    "evaluate_units",
    "load_graph",
    "render_report",
    "render_verdict",
    "report_to_dto",
]
