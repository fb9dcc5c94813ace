from flowpolicy.language.binding import (
    BindingFinding,
    CompiledPolicy,
    FindingKind,
    ShadowingMode,
    check_bindings,
    compile_policy,
    enforce_bindings,
)
from flowpolicy.language.nodes import (
    And,
    ControlFlow,
    FlowsTo,
    Implies,
    Operator,
    Or,
    Policy,
    PolicyNode,
    PolicyScope,
    Quantifier,
    Through,
    VarIntroduction,
    VariableBinding,
)
from flowpolicy.language.parser import parse_fragment, parse_policy
from flowpolicy.language.render import render_node, render_policy

__all__ = [
    "And",
    "BindingFinding",
    "CompiledPolicy",
    "ControlFlow",
    "FindingKind",
    "FlowsTo",
    "Implies",
    "Operator",
    "Or",
    "Policy",
    "PolicyNode",
    "PolicyScope",
    "Quantifier",
    "ShadowingMode",
    "Through",
    "VarIntroduction",
    "VariableBinding",
    "check_bindings",
    "compile_policy",
    "enforce_bindings",
    "parse_fragment",
    "parse_policy",
    "render_node",
    "render_policy",
]
