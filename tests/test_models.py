"""Tests for gridsheet.models data type inference and cell views."""

from __future__ import annotations

import pytest

from gridsheet.models import Cell, DataType, classify, parse_number


class TestClassify:
    @pytest.mark.parametrize("raw", ["42", " 3.5 ", "-7", "+1", ".5", "1e3", "0"])
    def test_number(self, raw: str) -> None:
        assert classify(raw) is DataType.NUMBER

    @pytest.mark.parametrize("raw", ["1/2/2024", "12/31/1999", "2024-01-02", " 1/2/2024 ", "2024-01-02\t"])
    def test_date(self, raw: str) -> None:
        assert classify(raw) is DataType.DATE

    @pytest.mark.parametrize("raw", ["=A1", "=1+2", "="])
    def test_formula(self, raw: str) -> None:
        assert classify(raw) is DataType.FORMULA

    @pytest.mark.parametrize("raw", ["abc", "", "   ", "1,000", "1_000", "2024/01/02", "12-31-1999", "inf", "nan"])
    def test_text(self, raw: str) -> None:
        assert classify(raw) is DataType.TEXT


class TestParseNumber:
    def test_trimmed(self) -> None:
        assert parse_number(" 2.50 ") == 2.5

    def test_not_a_number(self) -> None:
        assert parse_number("12abc") is None
        assert parse_number("") is None


class TestCell:
    def test_blank(self) -> None:
        assert Cell().is_blank()
        assert not Cell(content="x").is_blank()
        assert not Cell(style={"fontWeight": "bold"}).is_blank()
        assert not Cell(formula="=1").is_blank()

    def test_view_is_detached(self) -> None:
        cell = Cell(content="x", style={"color": "red"})
        view = cell.view("B2")
        view.style["color"] = "blue"
        assert view.address == "B2"
        assert cell.style == {"color": "red"}
