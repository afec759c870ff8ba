"""Normalized query results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from daxbridge.connectors.adomd import TabularBuffer

Row = tuple[tuple[str, str], ...]


@dataclass
class QueryResult:
    """Rows of ``(column_name, value)`` pairs with values coerced to ``str``.

    Row and column order follow the engine's result set.  The coercion is
    lossy on purpose; the untouched values are kept in ``raw_rows``.
    """

    columns: list[str] = field(default_factory=list)
    rows: list[Row] = field(default_factory=list)
    raw_rows: list[list[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def __getitem__(self, index: int) -> Row:
        return self.rows[index]

    def column_values(self, name: str) -> list[str]:
        """All values of column *name*, in row order."""
        if name not in self.columns:
            raise KeyError(f"No column named '{name}'. Columns: {', '.join(self.columns)}")
        index = self.columns.index(name)
        return [row[index][1] for row in self.rows]

    def first_value(self) -> str:
        """Value of the first column of the first row."""
        if not self.rows or not self.rows[0]:
            raise IndexError("Result has no rows")
        return self.rows[0][0][1]


def to_text(value: Any) -> str:
    # Engine NULLs come back as None; they render as an empty string.
    if value is None:
        return ""
    return str(value)


def normalize(buffer: TabularBuffer) -> QueryResult:
    """Pair every cell with its column name, keeping source order."""
    columns = list(buffer.columns)
    rows: list[Row] = []
    for raw in buffer.rows:
        rows.append(tuple((name, to_text(raw[i])) for i, name in enumerate(columns)))
    return QueryResult(columns=columns, rows=rows, raw_rows=[list(r) for r in buffer.rows])
