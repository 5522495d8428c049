"""CSV generation compatible with Excel (French locale)."""
from __future__ import annotations

from typing import Iterable, Sequence, Union

Cell = Union[str, int, float, None]

# Excel FR expects ";" as the column separator.
DEFAULT_DELIMITER = ";"


def _format_cell(cell: Cell, delimiter: str) -> str:
    if cell is None:
        return ""
    value = str(cell)
    if delimiter in value or '"' in value or "\n" in value or "\r" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def to_csv(rows: Iterable[Sequence[Cell]], delimiter: str = DEFAULT_DELIMITER) -> str:
    """Serialize rows to CSV text; rows are joined with "\\n", no trailing newline."""
    return "\n".join(
        delimiter.join(_format_cell(cell, delimiter) for cell in row)
        for row in rows
    )
