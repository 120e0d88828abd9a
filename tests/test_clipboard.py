"""Tests for gridsheet.clipboard."""

from __future__ import annotations

from gridsheet import clipboard
from gridsheet.address import Coordinate, from_label
from gridsheet.selection import CellRange


class StubGrid:
    def __init__(self, cells: dict[str, str]) -> None:
        self.cells = {from_label(k): v for k, v in cells.items()}
        self.row_count = 10
        self.column_count = 10

    def content_at(self, coord: Coordinate) -> str:
        return self.cells.get(coord, "")


def test_serialize_tabs_and_newlines() -> None:
    grid = StubGrid({"A1": "1", "B1": "2", "A2": "3", "B2": "4"})
    assert clipboard.serialize(CellRange.from_label("A1:B2"), grid) == "1\t2\n3\t4"


def test_serialize_missing_cells_are_empty() -> None:
    grid = StubGrid({"B2": "x"})
    assert clipboard.serialize(CellRange.from_label("A1:B2"), grid) == "\t\n\tx"


def test_serialize_single_cell() -> None:
    assert clipboard.serialize(CellRange.from_label("C3"), StubGrid({"C3": "v"})) == "v"


def test_deserialize_anchors_at_target() -> None:
    pairs = clipboard.deserialize("a\tb\nc", from_label("B2"), 10, 10)
    assert pairs == [(from_label("B2"), "a"), (from_label("C2"), "b"), (from_label("B3"), "c")]


def test_deserialize_crlf() -> None:
    pairs = clipboard.deserialize("a\r\nb", from_label("A1"), 10, 10)
    assert [value for _, value in pairs] == ["a", "b"]


def test_deserialize_keeps_empty_fields() -> None:
    pairs = clipboard.deserialize("\tb", from_label("A1"), 10, 10)
    assert pairs == [(from_label("A1"), ""), (from_label("B1"), "b")]


def test_deserialize_drops_overflow() -> None:
    pairs = clipboard.deserialize("1\t2\n3\t4", from_label("B2"), 2, 3)
    assert pairs == [(from_label("B2"), "1"), (from_label("C2"), "2")]


def test_deserialize_target_outside() -> None:
    assert clipboard.deserialize("1", Coordinate(4, 0), 2, 2) == []
