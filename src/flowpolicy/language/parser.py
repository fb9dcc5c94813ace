"""Policy assembler and the public parsing entry points."""

from __future__ import annotations

from flowpolicy.invariants import never
from flowpolicy.language.clauses import ClauseGrammar
from flowpolicy.language.nodes import Policy, PolicyNode, is_top_level_body
from flowpolicy.language.terminals import ParseFailure, rule

FRAGMENT_RULES = (
    "leaf_relation",
    "flow_relation",
    "control_flow_expr",
    "variable_clause",
    "clause_body",
    "body_expr",
)


class PolicyParser(ClauseGrammar):
    @rule("policy")
    def policy(self, pos: int) -> tuple[Policy, int]:
        scope, pos = self.scope(pos)
        body, pos = self.body_expr(pos)
        if not is_top_level_body(body):
            never("top-level operand is not a variable clause", offset=pos)
        if not self.at_end(pos):
            raise self.fail(self.skip_whitespace(pos), "end of input")
        return Policy(scope=scope, body=body), len(self.text)


def parse_policy(text: str) -> Policy:
    """Parse a complete policy document; any unconsumed text is an error."""
    parser = PolicyParser(text)
    try:
        policy, _end = parser.policy(0)
    except ParseFailure as failure:
        raise parser.error(failure) from None
    except RecursionError:
        raise parser.too_deep() from None
    return policy


def parse_fragment(text: str, rule_name: str = "clause_body") -> tuple[PolicyNode, str]:
    """Run one grammar rule on ``text`` and return the node and the leftover input."""
    if rule_name not in FRAGMENT_RULES:
        raise ValueError(f"unknown grammar rule: {rule_name}")
    parser = PolicyParser(text)
    try:
        node, end = getattr(parser, rule_name)(0)
    except ParseFailure as failure:
        raise parser.error(failure) from None
    except RecursionError:
        raise parser.too_deep() from None
    return node, text[end:]

