"""Calendar assignment and month grid tests."""

from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic import calendar_map
from models.outfit import Outfit


def _outfit(outfit_id: str) -> Outfit:
    return Outfit(id=outfit_id, name=f"Look {outfit_id}", scenario="Casual")


def test_assign_and_clear_return_new_maps() -> None:
    original = {"2026-10-16": "o1"}
    updated = calendar_map.assign(original, date(2026, 10, 17), "o2")
    assert updated == {"2026-10-16": "o1", "2026-10-17": "o2"}
    assert original == {"2026-10-16": "o1"}

    reassigned = calendar_map.assign(updated, "2026-10-17", "o3")
    assert reassigned["2026-10-17"] == "o3"
    assert calendar_map.clear(reassigned, "2026-10-17") == {"2026-10-16": "o1"}


def test_invalid_dates_and_ids_rejected() -> None:
    with pytest.raises(ValueError):
        calendar_map.assign({}, "17/10/2026", "o1")
    with pytest.raises(ValueError):
        calendar_map.assign({}, "2026-10-17", "")


def test_drop_outfit_clears_every_matching_day() -> None:
    mapping = {"2026-10-01": "o1", "2026-10-02": "o2", "2026-10-03": "o1"}
    assert calendar_map.drop_outfit(mapping, "o1") == {"2026-10-02": "o2"}


def test_outfit_for_date_ignores_dangling_ids() -> None:
    outfits = [_outfit("o1")]
    mapping = {"2026-10-01": "o1", "2026-10-02": "deleted"}
    assert calendar_map.outfit_for_date(mapping, outfits, "2026-10-01").id == "o1"
    assert calendar_map.outfit_for_date(mapping, outfits, "2026-10-02") is None
    assert calendar_map.outfit_for_date(mapping, outfits, "2026-10-03") is None


def test_today_key_uses_utc() -> None:
    evening_new_york = datetime(2026, 10, 17, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert calendar_map.today_key(evening_new_york) == "2026-10-18"


def test_month_grid_starts_on_sunday() -> None:
    grid = calendar_map.month_grid(2026, 10)
    assert len(grid) == calendar_map.GRID_CELLS
    assert grid[0].date == date(2026, 9, 27)
    assert grid[0].date.weekday() == 6
    assert not grid[0].in_month
    assert grid[4].key == "2026-10-01" and grid[4].in_month
    assert sum(cell.in_month for cell in grid) == 31


def test_month_grid_when_month_starts_on_sunday() -> None:
    grid = calendar_map.month_grid(2026, 2)
    assert grid[0].key == "2026-02-01"
    assert grid[27].in_month and not grid[28].in_month


def test_shift_month_wraps_years() -> None:
    assert calendar_map.shift_month(2026, 12, 1) == (2027, 1)
    assert calendar_map.shift_month(2026, 1, -1) == (2025, 12)
