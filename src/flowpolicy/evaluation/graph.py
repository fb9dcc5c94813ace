"""Reference in-memory flow graph.

Each controller of the analysed program is one analysis unit holding nodes
(optionally tagged with markers) and directed data/control edges. Node ids are
the node handles handed to the evaluator.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

from pydantic import ValidationError

from flowpolicy.evaluation.context import EdgeKind
from flowpolicy.exceptions import ContextQueryError
from flowpolicy.schema import ControllerDTO, GraphDTO

CALL_SITE_KIND = "call_site"


@dataclass(frozen=True)
class GraphNode:
    id: str
    markers: frozenset[str] = frozenset()
    kind: str = "value"
    call_site: str | None = None


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    kind: EdgeKind = EdgeKind.DATA


class UnitGraph:
    """Flow context for one controller."""

    def __init__(self, name: str, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge] = ()):
        self.name = name
        ordered = tuple(nodes)
        by_id: dict[str, GraphNode] = {}
        for node in ordered:
            if node.id in by_id:
                raise ContextQueryError(f"{name}: duplicate node id '{node.id}'")
            by_id[node.id] = node
        self._nodes = ordered
        self._by_id: Mapping[str, GraphNode] = MappingProxyType(by_id)
        successors: dict[EdgeKind, dict[str, list[str]]] = {kind: {} for kind in EdgeKind}
        for edge in edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in by_id:
                    raise ContextQueryError(f"{name}: edge references unknown node '{endpoint}'")
            successors[edge.kind].setdefault(edge.source, []).append(edge.target)
        self._successors = {
            kind: {source: tuple(targets) for source, targets in table.items()}
            for kind, table in successors.items()
        }
        for node in ordered:
            if node.call_site is not None and node.call_site not in by_id:
                raise ContextQueryError(
                    f"{name}: node '{node.id}' names unknown call site '{node.call_site}'"
                )

    def __repr__(self) -> str:
        return f"UnitGraph({self.name!r}, nodes={len(self._nodes)})"

    @property
    def nodes(self) -> tuple[GraphNode, ...]:
        return self._nodes

    def _require(self, node_id: object) -> GraphNode:
        node = self._by_id.get(node_id) if isinstance(node_id, str) else None
        if node is None:
            raise ContextQueryError(f"{self.name}: unknown node {node_id!r}")
        return node

    def marked_nodes(self, marker: str) -> tuple[str, ...]:
        return tuple(node.id for node in self._nodes if marker in node.markers)

    def influencees(self, source: str, kind: EdgeKind) -> Iterator[str]:
        """Breadth-first over ``kind`` edges; ``source`` itself is not yielded
        unless a cycle leads back to it."""
        self._require(source)
        table = self._successors[kind]
        seen: set[str] = set()
        queue = deque(table.get(source, ()))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            yield current
            queue.extend(table.get(current, ()))

    def flows_to(self, source: str, target: str, kind: EdgeKind) -> bool:
        self._require(target)
        if source == target:
            self._require(source)
            return True
        return any(node == target for node in self.influencees(source, kind))

    def call_site_of(self, node_id: str) -> str:
        node = self._require(node_id)
        if node.call_site is not None:
            return node.call_site
        if node.kind == CALL_SITE_KIND:
            return node.id
        raise ContextQueryError(
            f"{self.name}: '{node_id}' has no call site and cannot be influenced by control flow"
        )

    def has_control_flow_influence(self, source: str, target: str) -> bool:
        call_site = self.call_site_of(target)
        if self.flows_to(source, call_site, EdgeKind.CONTROL):
            return True
        return any(
            self.flows_to(influenced, call_site, EdgeKind.CONTROL)
            for influenced in self.influencees(source, EdgeKind.DATA)
        )


class FlowGraph:
    """All analysis units of one program."""

    def __init__(self, units: Iterable[UnitGraph]):
        table: dict[str, UnitGraph] = {}
        for unit in units:
            if unit.name in table:
                raise ContextQueryError(f"duplicate controller '{unit.name}'")
            table[unit.name] = unit
        self._units: Mapping[str, UnitGraph] = MappingProxyType(table)

    def units(self) -> tuple[str, ...]:
        return tuple(self._units)

    def unit(self, name: str) -> UnitGraph:
        try:
            return self._units[name]
        except KeyError:
            raise ContextQueryError(f"unknown controller '{name}'") from None

    @classmethod
    def from_dto(cls, payload: GraphDTO) -> "FlowGraph":
        return cls(_unit_from_dto(controller) for controller in payload.controllers)

    @classmethod
    def from_json(cls, raw: str) -> "FlowGraph":
        try:
            payload = GraphDTO.model_validate_json(raw)
        except ValidationError as exc:
            raise ContextQueryError(f"invalid flow graph: {exc}") from exc
        return cls.from_dto(payload)


def _unit_from_dto(controller: ControllerDTO) -> UnitGraph:
    return UnitGraph(
        controller.name,
        (
            GraphNode(
                id=node.id,
                markers=frozenset(node.markers),
                kind=node.kind,
                call_site=node.call_site,
            )
            for node in controller.nodes
        ),
        (
            GraphEdge(source=edge.source, target=edge.target, kind=EdgeKind(edge.kind))
            for edge in controller.edges
        ),
    )


def load_graph(path: Path) -> FlowGraph:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContextQueryError(f"cannot read flow graph {path}: {exc}") from exc
    return FlowGraph.from_json(raw)
