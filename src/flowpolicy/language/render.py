"""Canonical policy text.

Rendering is the inverse of parsing for trees the parser can build: the output
re-parses to an equal AST.
"""

from __future__ import annotations

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
)


def _join_parts(node: PolicyNode) -> tuple[str, PolicyNode, PolicyNode] | None:
    match node:
        case And(left=left, right=right):
            return "and", left, right
        case Or(left=left, right=right):
            return "or", left, right
        case Implies(premise=premise, obligation=obligation):
            return "implies", premise, obligation
    return None


def _render_joins(node: PolicyNode, indent: int) -> str:
    parts: list[str] = []
    joined = _join_parts(node)
    while joined is not None:
        keyword, left, node = joined
        if _join_parts(left) is not None:
            # Right-nested joins have no textual form for a combinator on the left.
            never("left-nested combinator has no policy text", operator=keyword)
        parts.append(f"{render_node(left, indent)} {keyword}")
        joined = _join_parts(node)
    parts.append(render_node(node, indent))
    return " ".join(parts)


def render_node(node: PolicyNode, indent: int = 0) -> str:
    match node:
        case FlowsTo(src=src, dest=dest):
            return f"{src} flows to {dest}"
        case Through(src=src, dest=dest, checkpoint=checkpoint):
            return f"{src} flows to {dest} through {checkpoint}"
        case ControlFlow(src=src, dest=dest):
            return f"{src} has control flow influence on {dest}"
        case And() | Or() | Implies():
            return _render_joins(node, indent)
        case VarIntroduction(binding=binding, body=body):
            pad = "    " * (indent + 1)
            closing = "    " * indent
            return (
                f'{binding.quantifier} {binding.variable} : "{binding.marker}" (\n'
                f"{pad}{render_node(body, indent + 1)}\n"
                f"{closing})"
            )
    never("unknown policy node", node_type=type(node).__name__)


def render_policy(policy: Policy) -> str:
    return f"{policy.scope}:\n{render_node(policy.body)}\n"


def node_to_payload(node: PolicyNode) -> dict[str, object]:
    match node:
        case FlowsTo(src=src, dest=dest):
            return {"kind": "flows_to", "src": src, "dest": dest}
        case Through(src=src, dest=dest, checkpoint=checkpoint):
            return {"kind": "through", "src": src, "dest": dest, "checkpoint": checkpoint}
        case ControlFlow(src=src, dest=dest):
            return {"kind": "control_flow", "src": src, "dest": dest}
        case And(left=left, right=right) | Or(left=left, right=right):
            return {
                "kind": "and" if isinstance(node, And) else "or",
                "left": node_to_payload(left),
                "right": node_to_payload(right),
            }
        case Implies(premise=premise, obligation=obligation):
            return {
                "kind": "implies",
                "premise": node_to_payload(premise),
                "obligation": node_to_payload(obligation),
            }
        case VarIntroduction(binding=binding, body=body):
            return {
                "kind": "clause",
                "quantifier": str(binding.quantifier),
                "variable": binding.variable,
                "marker": binding.marker,
                "body": node_to_payload(body),
            }
    never("unknown policy node", node_type=type(node).__name__)


def policy_to_payload(policy: Policy) -> dict[str, object]:
    return {"scope": str(policy.scope), "body": node_to_payload(policy.body)}
