"""Dependency graph construction and validation.

A :class:`Graph` is an id-indexed arena of :class:`~nixsize_cli.models.Node`
objects plus the reverse ``dependents`` index. It is built once from raw
:class:`~nixsize_cli.models.PathRecord` data and never mutated afterwards.
"""

from __future__ import annotations

import logging
from collections import deque
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple

from .errors import CycleDetected, DanglingReference, DuplicateNode
from .models import Node, PathRecord

logger = logging.getLogger(__name__)


class Graph:
    """Immutable, validated dependency DAG."""

    def __init__(
        self,
        nodes: Dict[str, Node],
        dependents: Dict[str, FrozenSet[str]],
        order: Tuple[str, ...],
    ) -> None:
        self._nodes = MappingProxyType(nodes)
        self._dependents = MappingProxyType(dependents)
        self._order = order

    @property
    def nodes(self) -> Mapping[str, Node]:
        return self._nodes

    @property
    def dependents(self) -> Mapping[str, FrozenSet[str]]:
        return self._dependents

    @property
    def order(self) -> Tuple[str, ...]:
        """Node ids in topological order, dependencies before dependents."""
        return self._order

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def roots(self) -> List[str]:
        """Nodes that nothing else depends on, in topological order."""
        return [n for n in self._order if not self._dependents[n]]

    def total_size(self) -> int:
        return sum(node.exclusive_size for node in self._nodes.values())

    def levels(self) -> Dict[str, int]:
        """Depth of each node below the roots.

        A node sits one level below its deepest dependent, so every edge
        points from a lower level number to a higher one.
        """
        levels: Dict[str, int] = {}
        for node_id in reversed(self._order):
            parents = self._dependents[node_id]
            levels[node_id] = 1 + max(levels[p] for p in parents) if parents else 0
        return levels


def build_graph(records: Iterable[PathRecord]) -> Graph:
    """Assemble path records into a validated :class:`Graph`.

    Raises:
        DuplicateNode: Two records share a path.
        DanglingReference: A record references a path with no record.
        CycleDetected: The reference relation is not acyclic.
    """
    nodes: Dict[str, Node] = {}
    for record in records:
        if record.path in nodes:
            raise DuplicateNode(record.path)
        nodes[record.path] = Node(
            node_id=record.path,
            exclusive_size=record.size,
            dependencies=frozenset(record.references),
        )

    position = {node_id: i for i, node_id in enumerate(nodes)}
    dependents: Dict[str, Set[str]] = {node_id: set() for node_id in nodes}
    for node_id, node in nodes.items():
        # Sorted so the reported dangling reference does not depend on set order.
        for dep in sorted(node.dependencies):
            if dep not in nodes:
                raise DanglingReference(dep, node_id)
            dependents[dep].add(node_id)

    order = _topological_order(nodes, dependents, position)
    logger.debug("Built graph with %d nodes", len(nodes))
    return Graph(
        nodes,
        {node_id: frozenset(parents) for node_id, parents in dependents.items()},
        order,
    )


def _topological_order(
    nodes: Dict[str, Node],
    dependents: Dict[str, Set[str]],
    position: Dict[str, int],
) -> Tuple[str, ...]:
    # Kahn's algorithm: a node is ready once all of its dependencies are placed.
    remaining = {node_id: len(node.dependencies) for node_id, node in nodes.items()}
    ready = deque(node_id for node_id, count in remaining.items() if count == 0)
    order: List[str] = []

    while ready:
        node_id = ready.popleft()
        order.append(node_id)
        for parent in sorted(dependents[node_id], key=position.__getitem__):
            remaining[parent] -= 1
            if remaining[parent] == 0:
                ready.append(parent)

    if len(order) != len(nodes):
        placed = set(order)
        cycle = _find_cycle(nodes, [n for n in nodes if n not in placed], position)
        logger.debug("Cycle found: %s", " -> ".join(cycle))
        raise CycleDetected(cycle[0], cycle)

    return tuple(order)


def _find_cycle(
    nodes: Dict[str, Node],
    unplaced: List[str],
    position: Dict[str, int],
) -> List[str]:
    # Every unplaced node still has an unplaced dependency, so following
    # those edges from any of them must eventually revisit a node.
    pending = set(unplaced)
    path: List[str] = []
    seen: Dict[str, int] = {}
    current = unplaced[0]
    while current not in seen:
        seen[current] = len(path)
        path.append(current)
        current = min(
            (dep for dep in nodes[current].dependencies if dep in pending),
            key=position.__getitem__,
        )
    return path[seen[current]:] + [current]
