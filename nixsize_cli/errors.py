"""Error taxonomy for closure analysis.

Every error here is terminal for a run: no partial report is produced once
one of them is raised.
"""

from __future__ import annotations

from typing import Sequence


class NixSizeError(Exception):
    """Base class for all nixsize failures."""

    kind = "NixSizeError"


class GraphError(NixSizeError):
    kind = "GraphError"


class DuplicateNode(GraphError):
    kind = "DuplicateNode"

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Store path listed more than once: {node_id}")


class DanglingReference(GraphError):
    kind = "DanglingReference"

    def __init__(self, missing: str, referencing: str):
        self.missing = missing
        self.referencing = referencing
        super().__init__(f"{referencing} references {missing}, which is not in the closure")


class CycleDetected(GraphError):
    kind = "CycleDetected"

    def __init__(self, node: str, cycle: Sequence[str] = ()):
        self.node = node
        self.cycle = tuple(cycle)
        path = " -> ".join(self.cycle) if self.cycle else node
        super().__init__(f"Dependency cycle detected: {path}")


class StoreQueryError(NixSizeError):
    """The store query layer failed (missing binary, bad output, unreadable snapshot)."""

    kind = "StoreQueryError"
