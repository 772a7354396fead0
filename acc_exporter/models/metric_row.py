"""Value objects describing the newest row of the metrics table."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

SqlValue = int | float | str | None

# Column names in declaration order, read fresh for every request.
ColumnSchema = tuple[str, ...]


def coerce_value(raw: Any) -> SqlValue:
    """Map a SQLite storage value onto the exported value types.

    Integers, reals and text are kept as-is. NULL, BLOB and anything else
    becomes ``None`` and is rendered as ``NaN``.
    """

    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float, str)):
        return raw
    return None


@dataclass(frozen=True, slots=True)
class MetricValue:
    """A single column of the newest row."""

    name: str
    value: SqlValue


@dataclass(frozen=True, slots=True)
class MetricRow:
    """The newest metrics record as ordered (column, value) pairs."""

    values: tuple[MetricValue, ...]

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, Any]]) -> MetricRow:
        return cls(tuple(MetricValue(name, coerce_value(raw)) for name, raw in pairs))

    @property
    def names(self) -> ColumnSchema:
        return tuple(item.name for item in self.values)

    def __iter__(self) -> Iterator[MetricValue]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)
