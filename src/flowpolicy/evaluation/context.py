"""The flow-graph interface the evaluator consumes.

Implementations answer reachability questions about one analysis unit (a
controller). They must not change while a policy is being evaluated.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Hashable, Iterable, Iterator, Protocol, TypeAlias

NodeHandle: TypeAlias = Hashable


class EdgeKind(StrEnum):
    DATA = "data"
    CONTROL = "control"


class FlowContext(Protocol):
    def marked_nodes(self, marker: str) -> Iterable[NodeHandle]:
        """Nodes carrying ``marker``, in a stable order."""

    def flows_to(self, source: NodeHandle, target: NodeHandle, kind: EdgeKind) -> bool:
        """Whether ``target`` is reachable from ``source`` along ``kind`` edges."""

    def has_control_flow_influence(self, source: NodeHandle, target: NodeHandle) -> bool:
        """Whether executing ``source`` conditions the execution of ``target``."""

    def influencees(self, source: NodeHandle, kind: EdgeKind) -> Iterator[NodeHandle]:
        """Lazily enumerate the nodes reachable from ``source``."""


class UnitSource(Protocol):
    """A program split into analysis units, each with its own flow context."""

    def units(self) -> tuple[str, ...]:
        ...

    def unit(self, name: str) -> FlowContext:
        ...
