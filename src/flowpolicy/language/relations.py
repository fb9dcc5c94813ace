"""Leaf relations: the atomic obligations between two or three variables."""

from __future__ import annotations

from flowpolicy.language.nodes import ControlFlow, FlowsTo, LeafRelation, Through
from flowpolicy.language.terminals import ParseFailure, TerminalGrammar, rule

FLOWS_TO_PHRASE = ("flows", "to")
CONTROL_FLOW_PHRASE = ("has", "control", "flow", "influence", "on")
THROUGH_KEYWORD = "through"


class RelationGrammar(TerminalGrammar):
    @rule("flows_to_expr")
    def flows_to_expr(self, pos: int) -> tuple[FlowsTo, int]:
        start = self.skip_whitespace(pos)
        src, pos = self.variable(start)
        pos = self.phrase(pos, FLOWS_TO_PHRASE)
        dest, pos = self.variable(pos)
        return FlowsTo(src, dest, offset=start), pos

    @rule("through_expr")
    def through_expr(self, pos: int) -> tuple[Through, int]:
        flow, pos = self.flows_to_expr(pos)
        pos = self.keyword(pos, THROUGH_KEYWORD)
        checkpoint, pos = self.variable(pos)
        return Through(flow.src, flow.dest, checkpoint, offset=flow.offset), pos

    @rule("flow_relation")
    def flow_relation(self, pos: int) -> tuple[FlowsTo | Through, int]:
        try:
            return self.through_expr(pos)
        except ParseFailure:
            pass
        flow, end = self.flows_to_expr(pos)
        # A dangling "through" means the checkpoint was malformed; refuse to
        # drop it on the floor by accepting the shorter relation.
        if self.at_keyword(end, THROUGH_KEYWORD):
            raise self.fail(self.skip_whitespace(end), "checkpoint variable after 'through'")
        return flow, end

    @rule("control_flow_expr")
    def control_flow_expr(self, pos: int) -> tuple[ControlFlow, int]:
        start = self.skip_whitespace(pos)
        src, pos = self.variable(start)
        pos = self.phrase(pos, CONTROL_FLOW_PHRASE)
        dest, pos = self.variable(pos)
        return ControlFlow(src, dest, offset=start), pos

    @rule("leaf_relation")
    def leaf_relation(self, pos: int) -> tuple[LeafRelation, int]:
        try:
            return self.flow_relation(pos)
        except ParseFailure:
            return self.control_flow_expr(pos)
