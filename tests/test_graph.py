from __future__ import annotations

import json

import pytest

from flowpolicy.evaluation.context import EdgeKind
from flowpolicy.evaluation.evaluator import evaluate_units
from flowpolicy.evaluation.graph import FlowGraph, GraphEdge, GraphNode, UnitGraph, load_graph
from flowpolicy.exceptions import ContextQueryError
from flowpolicy.language.binding import compile_policy

CLOSED_DELETE_POLICY = (
    'always: all w : "db_write" (\n'
    '    some dc : "delete_check" ( dc has control flow influence on w )\n'
    ")"
)


def _unit() -> UnitGraph:
    return UnitGraph(
        "handler",
        [
            GraphNode("req", frozenset({"community"})),
            GraphNode("check", frozenset({"delete_check"})),
            GraphNode("flag"),
            GraphNode("write", frozenset({"db_write"}), kind="call_site"),
            GraphNode("arg", call_site="write"),
        ],
        [
            GraphEdge("req", "check"),
            GraphEdge("check", "flag"),
            GraphEdge("flag", "write", EdgeKind.CONTROL),
            GraphEdge("req", "arg"),
        ],
    )


def test_marked_nodes_keep_declaration_order() -> None:
    unit = UnitGraph("u", [GraphNode(name, frozenset({"m"})) for name in ("c", "a", "b")])
    assert unit.marked_nodes("m") == ("c", "a", "b")
    assert unit.marked_nodes("other") == ()


def test_influencees_are_breadth_first_and_exclude_source() -> None:
    unit = _unit()
    assert list(unit.influencees("req", EdgeKind.DATA)) == ["check", "arg", "flag"]
    assert list(unit.influencees("flag", EdgeKind.CONTROL)) == ["write"]
    assert list(unit.influencees("write", EdgeKind.DATA)) == []


def test_flows_to_is_reflexive_and_kind_specific() -> None:
    unit = _unit()
    assert unit.flows_to("req", "req", EdgeKind.DATA)
    assert unit.flows_to("req", "flag", EdgeKind.DATA)
    assert not unit.flows_to("req", "write", EdgeKind.DATA)
    assert unit.flows_to("flag", "write", EdgeKind.CONTROL)
    assert not unit.flows_to("flag", "write", EdgeKind.DATA)


def test_control_flow_influence_reaches_the_call_site() -> None:
    unit = _unit()
    assert unit.has_control_flow_influence("flag", "write")
    assert unit.has_control_flow_influence("check", "write")
    assert unit.has_control_flow_influence("check", "arg")
    assert not unit.has_control_flow_influence("arg", "write")


def test_missing_call_site_is_a_query_error() -> None:
    with pytest.raises(ContextQueryError):
        _unit().has_control_flow_influence("req", "flag")


def test_unknown_nodes_are_query_errors() -> None:
    unit = _unit()
    with pytest.raises(ContextQueryError):
        unit.flows_to("req", "nowhere", EdgeKind.DATA)
    with pytest.raises(ContextQueryError):
        list(unit.influencees("nowhere", EdgeKind.DATA))


@pytest.mark.parametrize(
    ("nodes", "edges"),
    [
        ([GraphNode("a"), GraphNode("a")], []),
        ([GraphNode("a")], [GraphEdge("a", "b")]),
        ([GraphNode("a", call_site="b")], []),
    ],
)
def test_malformed_units_are_rejected(nodes, edges) -> None:
    with pytest.raises(ContextQueryError):
        UnitGraph("bad", nodes, edges)


def test_flow_graph_units_and_lookup() -> None:
    graph = FlowGraph([_unit(), UnitGraph("other", [])])
    assert graph.units() == ("handler", "other")
    assert graph.unit("other").nodes == ()
    with pytest.raises(ContextQueryError):
        graph.unit("missing")
    with pytest.raises(ContextQueryError):
        FlowGraph([UnitGraph("dup", []), UnitGraph("dup", [])])


def test_from_json_rejects_invalid_payloads() -> None:
    with pytest.raises(ContextQueryError):
        FlowGraph.from_json("{}")
    with pytest.raises(ContextQueryError):
        FlowGraph.from_json(
            json.dumps({"controllers": [{"name": "c", "nodes": [], "edges": [
                {"source": "a", "target": "b", "kind": "sideways"}
            ]}]})
        )


def test_load_graph_and_evaluate_units(tmp_path, write_graph, delete_check_controller) -> None:
    path = write_graph(
        tmp_path / "graph.json",
        [delete_check_controller(), {**delete_check_controller(influenced=False), "name": "ban"}],
    )
    graph = load_graph(path)
    report = evaluate_units(compile_policy(CLOSED_DELETE_POLICY).policy, graph)
    assert [result.unit for result in report.results] == ["delete_community", "ban"]
    assert not report.satisfied
    assert [result.unit for result in report.violations] == ["ban"]
    only = evaluate_units(
        compile_policy(CLOSED_DELETE_POLICY).policy, graph, units=["delete_community"]
    )
    assert only.satisfied


def test_load_graph_reports_missing_file(tmp_path) -> None:
    with pytest.raises(ContextQueryError):
        load_graph(tmp_path / "absent.json")
