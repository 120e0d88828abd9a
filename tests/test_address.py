"""Tests for gridsheet.address label conversion."""

from __future__ import annotations

import pytest

from gridsheet.address import (
    Coordinate,
    InvalidAddress,
    column_index,
    column_letters,
    from_label,
    parse_range_label,
    to_label,
)


class TestToLabel:
    @pytest.mark.parametrize(
        ("column", "letters"),
        [(0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA")],
    )
    def test_column_letters(self, column: int, letters: str) -> None:
        assert column_letters(column) == letters
        assert column_index(letters) == column

    def test_origin(self) -> None:
        assert to_label(Coordinate(0, 0)) == "A1"

    def test_row_is_one_based(self) -> None:
        assert to_label(Coordinate(9, 2)) == "C10"

    def test_label_property(self) -> None:
        assert Coordinate(1, 26).label == "AA2"

    def test_negative_column_rejected(self) -> None:
        with pytest.raises(ValueError):
            column_letters(-1)


class TestFromLabel:
    def test_simple(self) -> None:
        assert from_label("A1") == Coordinate(0, 0)
        assert from_label("AA10") == Coordinate(9, 26)

    def test_surrounding_whitespace(self) -> None:
        assert from_label("  B2 ") == Coordinate(1, 1)

    @pytest.mark.parametrize("text", ["", "A", "1", "1A", "A1B", "a1", "A-1", "A1:B2", "$A$1"])
    def test_malformed(self, text: str) -> None:
        with pytest.raises(InvalidAddress):
            from_label(text)

    def test_row_zero_rejected(self) -> None:
        with pytest.raises(InvalidAddress, match="Row must be >= 1"):
            from_label("A0")

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InvalidAddress):
            from_label(None)  # type: ignore[arg-type]

    def test_invalid_address_is_value_error(self) -> None:
        assert issubclass(InvalidAddress, ValueError)

    def test_inverse_of_to_label(self) -> None:
        for row in (0, 1, 9, 99, 1048575):
            for column in (0, 25, 26, 700, 16383):
                coord = Coordinate(row, column)
                assert from_label(to_label(coord)) == coord


class TestRangeLabel:
    def test_pair(self) -> None:
        assert parse_range_label("A1:B3") == (Coordinate(0, 0), Coordinate(2, 1))

    def test_single_cell(self) -> None:
        assert parse_range_label("C2") == (Coordinate(1, 2), Coordinate(1, 2))

    def test_too_many_parts(self) -> None:
        with pytest.raises(InvalidAddress):
            parse_range_label("A1:B2:C3")


class TestCoordinate:
    def test_offset(self) -> None:
        assert Coordinate(2, 3).offset(rows=1, columns=-2) == Coordinate(3, 1)

    def test_hashable_and_ordered(self) -> None:
        cells = {Coordinate(1, 0): "x"}
        assert cells[Coordinate(1, 0)] == "x"
        assert sorted([Coordinate(1, 0), Coordinate(0, 5), Coordinate(0, 1)]) == [
            Coordinate(0, 1), Coordinate(0, 5), Coordinate(1, 0),
        ]
