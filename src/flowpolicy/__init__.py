"""flowpolicy package root."""

from flowpolicy.exceptions import (
    BindingError,
    ContextQueryError,
    FlowPolicyError,
    PolicyParseError,
    UnboundVariableError,
    UnsupportedScopeError,
)
from flowpolicy.language import compile_policy, parse_policy

__all__ = [
    "__version__",
    "BindingError",
    "ContextQueryError",
    "FlowPolicyError",
    "PolicyParseError",
    "UnboundVariableError",
    "UnsupportedScopeError",
    "compile_policy",
    "parse_policy",
]

__version__ = "0.1.0"
