from __future__ import annotations

import calendar
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, order=True)
class YearMonth:
    year: int
    month: int

    @classmethod
    def of(cls, day: date) -> YearMonth:
        return cls(day.year, day.month)

    @property
    def index(self) -> int:
        return self.year * 12 + (self.month - 1)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def shift(self, months: int) -> YearMonth:
        year, month_zero = divmod(self.index + months, 12)
        return YearMonth(year, month_zero + 1)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def month_range(first: YearMonth, last: YearMonth) -> Iterator[YearMonth]:
    current = first
    while current <= last:
        yield current
        current = current.shift(1)


def month_grid(start: date, end: date, *, today: date | None = None) -> list[YearMonth]:
    """Ascending months from ``start`` through ``end``, never past ``today``'s month."""
    last = YearMonth.of(end)
    if today is not None:
        last = min(last, YearMonth.of(today))
    return list(month_range(YearMonth.of(start), last))
