"""Ranking of attribution rows into an ordered report."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Mapping, Tuple, Union

from .models import Attribution


class SortKey(str, Enum):
    EXCLUSIVE_SIZE = "exclusive_size"
    CLOSURE_SIZE = "closure_size"
    SHARED_SIZE = "shared_size"
    ID = "id"

    @classmethod
    def parse(cls, value: str) -> "SortKey":
        try:
            return cls(value.strip().lower().replace("-", "_"))
        except ValueError:
            choices = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown sort key '{value}' (choose from: {choices})")

    def extract(self, row: Attribution):
        if self is SortKey.ID:
            return row.node_id
        return getattr(row, self.value)


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def parse(cls, value: str) -> "SortOrder":
        normalized = value.strip().lower()
        aliases = {"asc": "ascending", "desc": "descending"}
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            raise ValueError(f"Unknown sort order '{value}' (choose from: ascending, descending)")


@dataclass(frozen=True)
class Report:
    rows: Tuple[Attribution, ...]
    sort_key: SortKey
    order: SortOrder

    def __iter__(self) -> Iterator[Attribution]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def total_exclusive_size(self) -> int:
        return sum(row.exclusive_size for row in self.rows)

    def top(self, count: int) -> Tuple[Attribution, ...]:
        return self.rows[:max(count, 0)]


def assemble(
    attributions: Union[Mapping[str, Attribution], Iterable[Attribution]],
    sort_key: SortKey = SortKey.SHARED_SIZE,
    order: SortOrder = SortOrder.DESCENDING,
) -> Report:
    """Sort attributions into a :class:`Report`.

    The sort is stable in both directions: rows with equal keys keep the
    order in which they were given.
    """
    if isinstance(attributions, Mapping):
        attributions = attributions.values()
    rows = sorted(
        attributions,
        key=sort_key.extract,
        reverse=order is SortOrder.DESCENDING,
    )
    return Report(rows=tuple(rows), sort_key=sort_key, order=order)
