"""Calendar map helpers: daily outfit assignment and month grid math."""

from __future__ import annotations

import calendar as _calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from models.outfit import Outfit

CalendarMap = Dict[str, str]

GRID_CELLS = 42


@dataclass(frozen=True)
class CalendarDay:
    date: date
    in_month: bool

    @property
    def key(self) -> str:
        return self.date.isoformat()


def date_key(value: date | datetime | str) -> str:
    """Normalise a date-like value into a ``YYYY-MM-DD`` key."""

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError as exc:
        raise ValueError(f"Invalid calendar date '{value}', expected YYYY-MM-DD") from exc


def today_key(now: datetime | None = None) -> str:
    """Today's key in UTC."""

    current = now or datetime.now(timezone.utc)
    return current.astimezone(timezone.utc).date().isoformat()


def assign(calendar_map: CalendarMap, day: date | str, outfit_id: str) -> CalendarMap:
    if not outfit_id:
        raise ValueError("outfit_id is required")
    return {**calendar_map, date_key(day): outfit_id}


def clear(calendar_map: CalendarMap, day: date | str) -> CalendarMap:
    key = date_key(day)
    return {k: v for k, v in calendar_map.items() if k != key}


def drop_outfit(calendar_map: CalendarMap, outfit_id: str) -> CalendarMap:
    """Remove every date that points at ``outfit_id``."""

    return {k: v for k, v in calendar_map.items() if v != outfit_id}


def outfit_for_date(
    calendar_map: CalendarMap, outfits: Iterable[Outfit], day: date | str
) -> Optional[Outfit]:
    """Resolve a date to its outfit; ids with no matching outfit resolve to None."""

    outfit_id = calendar_map.get(date_key(day))
    if not outfit_id:
        return None
    return next((outfit for outfit in outfits if outfit.id == outfit_id), None)


def month_grid(year: int, month: int) -> List[CalendarDay]:
    """Six Sunday-first weeks covering the month, padded with adjacent days."""

    first = date(year, month, 1)
    # date.weekday() is Monday=0; shift so Sunday is column 0.
    start_offset = (first.weekday() + 1) % 7
    start = first - timedelta(days=start_offset)
    days_in_month = _calendar.monthrange(year, month)[1]

    cells = []
    for index in range(GRID_CELLS):
        day = start + timedelta(days=index)
        in_month = start_offset <= index < start_offset + days_in_month
        cells.append(CalendarDay(date=day, in_month=in_month))
    return cells


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


__all__ = [
    "CalendarDay",
    "CalendarMap",
    "GRID_CELLS",
    "assign",
    "clear",
    "date_key",
    "drop_outfit",
    "month_grid",
    "outfit_for_date",
    "shift_month",
    "today_key",
]
