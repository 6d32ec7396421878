"""Row projection: turn one result row into a list or a mapping."""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ColumnMetadata:
    label: str
    name: str
    type_code: Any = None


@dataclass(frozen=True)
class Row:
    """Values of one cursor position together with their column metadata."""
    values: tuple
    columns: tuple

    def __len__(self) -> int:
        return len(self.values)

    def get(self, index: int) -> Any:
        """Return the value of the 1-based column ``index``."""
        if index < 1 or index > len(self.values):
            raise IndexError(f"Column index {index} out of range 1..{len(self.values)}")
        return self.values[index - 1]


def columns_from_description(description: Optional[tuple]) -> tuple:
    """Build column metadata from a DB-API ``cursor.description``.

    DB-API reports a single name per column, so label and name coincide.
    """
    if not description:
        return ()
    return tuple(
        ColumnMetadata(label=col[0], name=col[0], type_code=col[1])
        for col in description
    )


def row_to_map(row: Row) -> dict:
    """Map column names to values, keying by label as well when it differs."""
    result = {}
    for column, value in zip(row.columns, row.values):
        result[column.name] = value
        if column.label != column.name:
            result[column.label] = value
    return result


def row_to_list(row: Row) -> list:
    return list(row.values)
