"""Boolean combinators and variable clauses.

Joins are right-nested with no precedence: the first operator in the text
becomes the outermost node, so ``A or B and C`` reads as ``Or(A, And(B, C))``.

The grammar has two tiers. Inside a clause body, bare leaf relations are
legal operands. At the top of a policy every operand must itself be a
variable clause, which forces each policy to quantify over graph nodes
before relating them.
"""

from __future__ import annotations

from typing import Callable

from flowpolicy.language.nodes import (
    Operator,
    PolicyNode,
    VarIntroduction,
    VariableBinding,
    combine,
)
from flowpolicy.language.relations import RelationGrammar
from flowpolicy.language.terminals import ParseFailure, rule

Operand = Callable[[int], tuple[PolicyNode, int]]


class ClauseGrammar(RelationGrammar):
    def _joined(self, pos: int, operand: Operand) -> tuple[PolicyNode, int]:
        first, pos = operand(pos)
        operands: list[PolicyNode] = [first]
        operators: list[Operator] = []
        while True:
            try:
                operator, after_operator = self.operator(pos)
                right, after_right = operand(after_operator)
            except ParseFailure:
                # Leave the operator (if any) unconsumed for the caller.
                break
            operators.append(operator)
            operands.append(right)
            pos = after_right
        node = operands[-1]
        for operator, left in zip(reversed(operators), reversed(operands[:-1])):
            node = combine(operator, left, node)
        return node, pos

    @rule("variable_clause")
    def variable_clause(self, pos: int) -> tuple[VarIntroduction, int]:
        start = self.skip_whitespace(pos)
        quantifier, pos = self.quantifier(start)
        variable, pos = self.variable(pos)
        pos = self.punctuation(pos, ":")
        marker, pos = self.marker(pos)
        pos = self.punctuation(pos, "(")
        body, pos = self.clause_body(pos)
        pos = self.punctuation(pos, ")")
        binding = VariableBinding(quantifier=quantifier, variable=variable, marker=marker)
        return VarIntroduction(binding, body, offset=start), pos

    @rule("clause_operand")
    def clause_operand(self, pos: int) -> tuple[PolicyNode, int]:
        try:
            return self.variable_clause(pos)
        except ParseFailure:
            return self.leaf_relation(pos)

    @rule("clause_body")
    def clause_body(self, pos: int) -> tuple[PolicyNode, int]:
        return self._joined(pos, self.clause_operand)

    @rule("body_expr")
    def body_expr(self, pos: int) -> tuple[PolicyNode, int]:
        return self._joined(pos, self.variable_clause)
