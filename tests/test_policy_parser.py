from __future__ import annotations

import pytest

from flowpolicy.exceptions import PolicyParseError
from flowpolicy.language.nodes import (
    ControlFlow,
    FlowsTo,
    Implies,
    Policy,
    PolicyScope,
    Quantifier,
    VarIntroduction,
    VariableBinding,
)
from flowpolicy.language.parser import parse_policy

DELETE_CHECK_POLICY = (
    'always: some dc : "delete_check" ( dc has control flow influence on w )'
)


def test_parse_policy_builds_scope_and_body() -> None:
    policy = parse_policy(DELETE_CHECK_POLICY)
    assert policy == Policy(
        PolicyScope.ALWAYS,
        VarIntroduction(
            VariableBinding(Quantifier.SOME, "dc", "delete_check"),
            ControlFlow("dc", "w"),
        ),
    )


def test_parse_policy_accepts_sometimes_scope_and_multiline_text() -> None:
    text = (
        "sometimes:\n"
        '    all r : "community" (\n'
        "        r flows to r\n"
        "    )\n"
        '    implies some d : "delete_check" ( d flows to d )\n'
    )
    policy = parse_policy(text)
    assert policy.scope is PolicyScope.SOMETIMES
    assert isinstance(policy.body, Implies)
    assert policy.body.premise.binding.variable == "r"
    assert policy.body.obligation.body == FlowsTo("d", "d")


def test_trailing_input_is_an_error() -> None:
    text = 'always: some x : "m" ( x flows to x ) garbage'
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy(text)
    error = exc_info.value
    assert error.offset == text.index("garbage")
    assert error.expected == "end of input"
    assert error.remaining == "garbage"


def test_dangling_operator_is_trailing_input() -> None:
    text = 'always: some x : "m" ( x flows to x ) and'
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy(text)
    assert exc_info.value.remaining == "and"


def test_missing_scope_is_reported_at_start() -> None:
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy('some x : "m" ( x flows to x )')
    assert exc_info.value.offset == 0
    assert exc_info.value.expected == "'always' or 'sometimes'"


def test_missing_colon_after_scope() -> None:
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy('always some x : "m" ( x flows to x )')
    error = exc_info.value
    assert error.offset == len("always ")
    assert error.expected == "':'"
    assert [frame.rule for frame in error.trace] == ["scope", "policy"]


def test_parse_error_reports_furthest_failure_with_rule_trace() -> None:
    text = 'always:\n  some x : "m" (\n    x flows to 9\n  )'
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy(text)
    error = exc_info.value
    assert error.offset == text.index("9")
    assert (error.line, error.column) == (2, 15)
    assert error.expected == "identifier"
    rules = [frame.rule for frame in error.trace]
    assert rules[0] == "identifier"
    assert rules[-1] == "policy"
    assert "variable_clause" in rules
    assert "leaf_relation" in rules
    rendered = error.render_trace()
    assert rendered.splitlines()[0] == "expected identifier at line 3, column 16"
    assert "in variable_clause" in rendered


def test_top_level_body_must_be_a_clause() -> None:
    with pytest.raises(PolicyParseError):
        parse_policy("always: a flows to b")


def test_empty_input_fails() -> None:
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy("")
    assert exc_info.value.offset == 0


def test_scope_keyword_needs_boundary() -> None:
    with pytest.raises(PolicyParseError):
        parse_policy('alwaysx: some x : "m" ( x flows to x )')


def test_nesting_past_the_recursion_limit_fails_closed() -> None:
    depth = 500
    text = "always: " + 'some v : "m" ( ' * depth + "v flows to v" + " )" * depth
    with pytest.raises(PolicyParseError) as exc_info:
        parse_policy(text)
    error = exc_info.value
    assert error.expected == "shallower clause nesting"
    assert 0 < error.offset < len(text)


def test_long_top_level_chains_do_not_count_as_nesting() -> None:
    clause = 'some x : "m" ( x flows to x )'
    policy = parse_policy("always: " + " or ".join([clause] * 600))
    assert policy.body.left == policy.body.right.left
