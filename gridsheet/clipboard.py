"""Tab/newline clipboard text <-> cell assignments."""

from __future__ import annotations

from gridsheet.address import Coordinate
from gridsheet.formula import GridSnapshot
from gridsheet.selection import CellRange


def serialize(cell_range: CellRange, grid: GridSnapshot) -> str:
    """Rows joined by newlines, cells by tabs; missing cells are empty strings."""
    return "\n".join(
        "\t".join(grid.content_at(coord) for coord in row)
        for row in cell_range.iter_rows()
    )


def deserialize(text: str, target: Coordinate, row_count: int, column_count: int) -> list[tuple[Coordinate, str]]:
    """Split clipboard text into ``(coordinate, raw_value)`` pairs anchored at *target*.

    Assignments falling outside ``row_count x column_count`` are dropped.
    """
    assignments: list[tuple[Coordinate, str]] = []
    lines = text.replace("\r\n", "\n").split("\n")
    for row_offset, line in enumerate(lines):
        row = target.row + row_offset
        if not 0 <= row < row_count:
            continue
        for col_offset, value in enumerate(line.split("\t")):
            col = target.column + col_offset
            if 0 <= col < column_count:
                assignments.append((Coordinate(row, col), value))
    return assignments
