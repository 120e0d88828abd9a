"""Rectangular ranges and the pointer-driven selection state machine."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from gridsheet.address import Coordinate, parse_range_label, to_label


def normalize(anchor: Coordinate, focus: Coordinate) -> tuple[int, int, int, int]:
    """Return ``(min_row, max_row, min_col, max_col)`` for two corners."""
    return (
        min(anchor.row, focus.row),
        max(anchor.row, focus.row),
        min(anchor.column, focus.column),
        max(anchor.column, focus.column),
    )


@dataclass(frozen=True)
class CellRange:
    """Inclusive rectangle spanned by two arbitrary corners."""

    anchor: Coordinate
    focus: Coordinate

    @classmethod
    def single(cls, coord: Coordinate) -> CellRange:
        return cls(coord, coord)

    @classmethod
    def from_label(cls, text: str) -> CellRange:
        """'A1:B3' or 'C2' -> CellRange."""
        return cls(*parse_range_label(text))

    @property
    def bounds(self) -> tuple[int, int, int, int]:
        return normalize(self.anchor, self.focus)

    @property
    def top_left(self) -> Coordinate:
        min_row, _, min_col, _ = self.bounds
        return Coordinate(min_row, min_col)

    @property
    def bottom_right(self) -> Coordinate:
        _, max_row, _, max_col = self.bounds
        return Coordinate(max_row, max_col)

    @property
    def shape(self) -> tuple[int, int]:
        min_row, max_row, min_col, max_col = self.bounds
        return max_row - min_row + 1, max_col - min_col + 1

    @property
    def label(self) -> str:
        start, end = self.top_left, self.bottom_right
        if start == end:
            return to_label(start)
        return f"{to_label(start)}:{to_label(end)}"

    def contains(self, coord: Coordinate) -> bool:
        min_row, max_row, min_col, max_col = self.bounds
        return min_row <= coord.row <= max_row and min_col <= coord.column <= max_col

    def columns(self) -> range:
        _, _, min_col, max_col = self.bounds
        return range(min_col, max_col + 1)

    def iter_rows(self) -> Iterator[list[Coordinate]]:
        """Yield each row of the range as a list of coordinates, top to bottom."""
        min_row, max_row, min_col, max_col = self.bounds
        for r in range(min_row, max_row + 1):
            yield [Coordinate(r, c) for c in range(min_col, max_col + 1)]

    def iter_coordinates(self) -> Iterator[Coordinate]:
        """Row-major iteration over every coordinate in the range."""
        for row in self.iter_rows():
            yield from row


def contains(cell_range: CellRange, coord: Coordinate) -> bool:
    return cell_range.contains(coord)


# ── Selection state machine ───────────────────────────────────────

class SelectionState(str, Enum):
    IDLE = "idle"
    ANCHORED = "anchored"
    DRAGGING = "dragging"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


_STEPS = {
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
}


class Selection:
    """Tracks the active cell and the range being dragged out.

    ``begin`` anchors a range on pointer-down, ``drag`` moves its focus while the
    pointer moves, ``release`` ends the drag and keeps the range.
    """

    def __init__(self) -> None:
        self.state = SelectionState.IDLE
        self.active: Coordinate | None = None
        self.range: CellRange | None = None

    def begin(self, coord: Coordinate) -> CellRange:
        self.state = SelectionState.ANCHORED
        self.active = coord
        self.range = CellRange.single(coord)
        return self.range

    def drag(self, coord: Coordinate) -> CellRange | None:
        """Move the focus corner. Ignored unless a range is anchored."""
        if self.state is SelectionState.IDLE or self.range is None:
            return None
        self.state = SelectionState.DRAGGING
        self.range = CellRange(self.range.anchor, coord)
        return self.range

    def release(self) -> CellRange | None:
        self.state = SelectionState.IDLE
        return self.range

    def select_cell(self, coord: Coordinate) -> None:
        """Make *coord* the active cell; a plain click drops the current range."""
        self.active = coord
        if self.state is not SelectionState.DRAGGING:
            self.range = None

    def clear(self) -> None:
        self.state = SelectionState.IDLE
        self.active = None
        self.range = None

    def move_cursor(self, direction: Direction, row_count: int, column_count: int) -> Coordinate | None:
        """Arrow-key navigation of the active cell, clamped to the grid."""
        if self.active is None:
            return None
        dr, dc = _STEPS[Direction(direction)]
        row = min(max(self.active.row + dr, 0), row_count - 1)
        col = min(max(self.active.column + dc, 0), column_count - 1)
        self.active = Coordinate(row, col)
        return self.active


def select(anchor: Coordinate, focus: Coordinate | None = None) -> CellRange:
    """Range for a selection request; a missing focus selects a single cell."""
    return CellRange(anchor, focus if focus is not None else anchor)
