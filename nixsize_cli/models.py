"""Core data models shared by the store query, graph, and report layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable


@dataclass
class PathRecord:
    """Raw store path data as returned by the store query layer."""
    path: str
    size: int
    references: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"Negative size for {self.path}: {self.size}")
        # Nix store paths commonly reference themselves.
        self.references = frozenset(ref for ref in self.references if ref != self.path)

    @classmethod
    def of(cls, path: str, size: int, references: Iterable[str] = ()) -> "PathRecord":
        return cls(path=path, size=int(size), references=frozenset(references))


@dataclass(frozen=True)
class Node:
    node_id: str
    exclusive_size: int
    dependencies: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Attribution:
    node_id: str
    exclusive_size: int
    closure_size: int
    shared_size: float
