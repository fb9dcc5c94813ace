"""Policy evaluation against a flow-graph context.

The walk is pure: the environment mapping variable names to bound graph
nodes is threaded through parameters and extended with a fresh mapping for
each candidate, so every leaf inside one clause body sees the same node for
the duration of that candidate's iteration.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, TypeAlias

from flowpolicy.evaluation.budget import DEFAULT_MAX_STEPS, budget_scope, consume_step, metered
from flowpolicy.evaluation.context import EdgeKind, FlowContext, NodeHandle, UnitSource
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
from flowpolicy.exceptions import (
    NestingTooDeepError,
    UnboundVariableError,
    UnsupportedScopeError,
)
from flowpolicy.invariants import never
from flowpolicy.language.nodes import (
    And,
    ControlFlow,
    FlowsTo,
    Implies,
    LeafRelation,
    Or,
    Policy,
    PolicyNode,
    PolicyScope,
    Quantifier,
    Through,
    VarIntroduction,
)

Environment: TypeAlias = Mapping[str, NodeHandle]

EMPTY_ENVIRONMENT: Environment = MappingProxyType({})


def _lookup(env: Environment, name: str, relation: LeafRelation) -> NodeHandle:
    try:
        return env[name]
    except KeyError:
        raise UnboundVariableError(
            f"variable '{name}' is not bound during evaluation",
            variable=name,
            offset=relation.offset,
        ) from None


def _relation(
    relation: LeafRelation,
    check: str,
    holds: bool,
    bound: tuple[tuple[str, NodeHandle], ...],
) -> Verdict:
    if holds:
        return Satisfied()
    return Violated(RelationWitness(relation=relation, check=check, bound=bound))


def _evaluate_leaf(node: LeafRelation, context: FlowContext, env: Environment) -> Verdict:
    consume_step()
    match node:
        case FlowsTo(src=src, dest=dest):
            a, b = _lookup(env, src, node), _lookup(env, dest, node)
            return _relation(
                node,
                f"{src} flows to {dest}",
                context.flows_to(a, b, EdgeKind.DATA),
                ((src, a), (dest, b)),
            )
        case ControlFlow(src=src, dest=dest):
            a, b = _lookup(env, src, node), _lookup(env, dest, node)
            return _relation(
                node,
                f"{src} has control flow influence on {dest}",
                context.has_control_flow_influence(a, b),
                ((src, a), (dest, b)),
            )
        case Through(src=src, dest=dest, checkpoint=checkpoint):
            a = _lookup(env, src, node)
            b = _lookup(env, dest, node)
            c = _lookup(env, checkpoint, node)
            bound = ((src, a), (dest, b), (checkpoint, c))
            if not context.flows_to(a, b, EdgeKind.DATA):
                return _relation(node, f"{src} flows to {dest}", False, bound)
            consume_step()
            between = context.flows_to(a, c, EdgeKind.DATA) and (
                context.has_control_flow_influence(c, b)
                or context.flows_to(c, b, EdgeKind.DATA)
            )
            return _relation(
                node, f"{checkpoint} lies between {src} and {dest}", between, bound
            )
    never("unknown leaf relation", node_type=type(node).__name__)


def _evaluate_clause(
    node: VarIntroduction, context: FlowContext, env: Environment
) -> Verdict:
    binding = node.binding
    candidates: Iterable[NodeHandle] = context.marked_nodes(binding.marker)
    match binding.quantifier:
        case Quantifier.ALL:
            for candidate in metered(candidates):
                verdict = evaluate(node.body, context, {**env, binding.variable: candidate})
                if isinstance(verdict, Violated):
                    return Violated(CandidateWitness(binding, candidate, verdict.witness))
            return Satisfied()
        case Quantifier.SOME:
            tried: list[NodeHandle] = []
            for candidate in metered(candidates):
                verdict = evaluate(node.body, context, {**env, binding.variable: candidate})
                if isinstance(verdict, Satisfied):
                    return Satisfied(CandidateWitness(binding, candidate, verdict.witness))
                tried.append(candidate)
            return Violated(ExhaustedWitness(binding, tuple(tried)))
    never("unknown quantifier", quantifier=str(binding.quantifier))


def evaluate(
    node: PolicyNode,
    context: FlowContext,
    env: Environment = EMPTY_ENVIRONMENT,
) -> Verdict:
    # Joins nest to the right, so the right operand is followed in a loop.
    while True:
        match node:
            case FlowsTo() | ControlFlow() | Through():
                return _evaluate_leaf(node, context, env)
            case VarIntroduction():
                return _evaluate_clause(node, context, env)
            case And(left=left, right=right):
                verdict = evaluate(left, context, env)
                if isinstance(verdict, Violated):
                    return verdict
                node = right
            case Or(left=left, right=right):
                verdict = evaluate(left, context, env)
                if isinstance(verdict, Satisfied):
                    return verdict
                node = right
            case Implies(premise=premise, obligation=obligation):
                verdict = evaluate(premise, context, env)
                if isinstance(verdict, Violated):
                    return Satisfied(VacuousWitness(verdict.witness))
                node = obligation
            case _:
                never("unknown policy node", node_type=type(node).__name__)


def evaluate_policy(
    policy: Policy,
    context: FlowContext,
    env: Environment = EMPTY_ENVIRONMENT,
) -> Verdict:
    """Evaluate ``policy`` against one analysis unit.

    ``env`` pre-binds free variables to fixed nodes of the context.
    """
    if policy.scope is not PolicyScope.ALWAYS:
        raise UnsupportedScopeError(f"policy scope '{policy.scope}' is not supported")
    try:
        return evaluate(policy.body, context, env)
    except RecursionError:
        raise NestingTooDeepError("policy clauses nest too deeply to evaluate") from None


def evaluate_units(
    policy: Policy,
    source: UnitSource,
    *,
    units: Iterable[str] | None = None,
    max_steps: int = DEFAULT_MAX_STEPS,
) -> PolicyReport:
    """Evaluate ``policy`` once per analysis unit.

    The policy holds for the program only if it holds in every unit.
    """
    if policy.scope is not PolicyScope.ALWAYS:
        raise UnsupportedScopeError(f"policy scope '{policy.scope}' is not supported")
    names = tuple(units) if units is not None else source.units()
    results: list[UnitVerdict] = []
    with budget_scope(max_steps):
        for name in names:
            results.append(UnitVerdict(unit=name, verdict=evaluate_policy(policy, source.unit(name))))
    return PolicyReport(results=tuple(results))
