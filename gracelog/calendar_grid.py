from __future__ import annotations

import calendar
from typing import Collection

from .models import CalendarDay


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def first_weekday(year: int, month: int) -> int:
    """Column of the 1st in a Sunday-first week (Sunday is 0)."""
    return (calendar.monthrange(year, month)[0] + 1) % 7


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_label(year: int, month: int) -> str:
    return f"{year}. {month:02d}"


def build_month_grid(
    year: int,
    month: int,
    days_with_entries: Collection[str] = (),
) -> list[CalendarDay]:
    padding = first_weekday(year, month)
    prev_year, prev_month = shift_month(year, month, -1)
    prev_days = days_in_month(prev_year, prev_month)

    cells = [
        CalendarDay(number=prev_days - offset, current=False, day="")
        for offset in range(padding - 1, -1, -1)
    ]
    for number in range(1, days_in_month(year, month) + 1):
        day = f"{year}-{month:02d}-{number:02d}"
        cells.append(
            CalendarDay(
                number=number,
                current=True,
                day=day,
                has_entry=day in days_with_entries,
            )
        )
    return cells
