"""Tests for gridsheet.storage against a throwaway sqlite file."""

from __future__ import annotations

import pytest

from gridsheet.address import from_label
from gridsheet.grid import OutOfBounds
from gridsheet.storage import DatabaseManager, SheetNotFound, SheetRepository


@pytest.fixture
def repo(tmp_path) -> SheetRepository:
    db = DatabaseManager(str(tmp_path / "sheets.db"))
    db.initialize_schema()
    return SheetRepository(db)


def test_create_and_fetch(repo: SheetRepository) -> None:
    sheet = repo.create(title="Budget", row_count=4, column_count=3)
    assert sheet.id
    assert sheet.title == "Budget"
    assert (sheet.row_count, sheet.column_count) == (4, 3)
    assert len(sheet.rows) == 4
    assert all(len(row) == 3 for row in sheet.rows)
    assert repo.get_by_id(sheet.id) == sheet


def test_unknown_sheet(repo: SheetRepository) -> None:
    assert repo.get_by_id("missing") is None
    with pytest.raises(SheetNotFound):
        repo.load_grid("missing")
    with pytest.raises(SheetNotFound):
        repo.mutate("missing", lambda grid: None)


def test_get_all_returns_summaries(repo: SheetRepository) -> None:
    first = repo.create(title="One", row_count=2, column_count=2)
    second = repo.create(title="Two", row_count=2, column_count=2)
    summaries = repo.get_all()
    assert {s.id for s in summaries} == {first.id, second.id}
    assert not hasattr(summaries[0], "rows")


def test_mutate_persists(repo: SheetRepository) -> None:
    sheet = repo.create(row_count=3, column_count=3)
    view = repo.mutate(sheet.id, lambda grid: grid.set_content(from_label("A1"), "4"))
    assert view.content == "4"
    repo.mutate(sheet.id, lambda grid: grid.set_content(from_label("A2"), "=A1*A1"))
    grid = repo.load_grid(sheet.id)
    assert grid.content_at(from_label("A2")) == "16"
    assert grid.get_cell(from_label("A2")).formula == "=A1*A1"


def test_structural_change_persists_dimensions(repo: SheetRepository) -> None:
    sheet = repo.create(row_count=3, column_count=3)
    repo.mutate(sheet.id, lambda grid: grid.insert_column(0))
    stored = repo.get_by_id(sheet.id)
    assert stored.column_count == 4
    assert all(len(row) == 4 for row in stored.rows)


def test_failed_operation_is_not_saved(repo: SheetRepository) -> None:
    sheet = repo.create(row_count=2, column_count=2)

    def _fail(grid):
        grid.set_content(from_label("A1"), "kept?")
        grid.set_content(from_label("Z9"), "boom")

    with pytest.raises(OutOfBounds):
        repo.mutate(sheet.id, _fail)
    assert repo.load_grid(sheet.id).content_at(from_label("A1")) == ""


def test_update_title(repo: SheetRepository) -> None:
    sheet = repo.create()
    assert repo.update_title(sheet.id, "Renamed").title == "Renamed"
    assert repo.update_title("missing", "x") is None


def test_delete(repo: SheetRepository) -> None:
    sheet = repo.create(row_count=1, column_count=1)
    assert repo.delete(sheet.id) is True
    assert repo.get_by_id(sheet.id) is None
    assert repo.delete(sheet.id) is False
