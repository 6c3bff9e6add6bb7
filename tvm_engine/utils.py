from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import IntEnum
from typing import Optional, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, pd.Timestamp, str]

EXCEL_EPOCH = date(1899, 12, 30)

_THIRTY_ONE_DAY_MONTHS = (1, 3, 5, 7, 8, 10, 12)
_THIRTY_DAY_MONTHS = (4, 6, 9, 11)


def ensure_date(value: DateLike) -> date:
    """Coerce a date, datetime, Timestamp or ISO-8601 string to a plain ``date``."""
    if value is None:
        raise ValueError("A date is required, got None.")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError(f"Cannot interpret {value!r} as a date.")
    return ts.date()


def is_leap_year(year: int) -> bool:
    return (year % 4 == 0 and year % 100 != 0) or year % 400 == 0


def days_in_month(year: int, month: int) -> int:
    if month == 2:
        return 29 if is_leap_year(year) else 28
    if month in _THIRTY_DAY_MONTHS:
        return 30
    return 31


def is_last_of_month(d: DateLike) -> bool:
    d = ensure_date(d)
    if d.month in _THIRTY_ONE_DAY_MONTHS:
        return d.day == 31
    if d.month in _THIRTY_DAY_MONTHS:
        return d.day == 30
    return is_last_of_february(d)


def is_last_of_february(d: DateLike) -> bool:
    d = ensure_date(d)
    return d.month == 2 and d.day == days_in_month(d.year, 2)


def month_diff(a: DateLike, b: DateLike, whole: bool = False) -> float:
    """
    Signed number of months from ``b`` to ``a`` (negative when a < b).

    Day differences count as thirtieths of a month, 30/360 style, unless
    ``whole`` is set or both dates fall on the last day of their months.
    """
    a = ensure_date(a)
    b = ensure_date(b)

    if a < b:
        sign = -1
        d0, d1 = a, b
    else:
        sign = 1
        d0, d1 = b, a

    if is_last_of_month(a) and is_last_of_month(b):
        whole = True

    months = float((d1.year - d0.year) * 12 + (d1.month - d0.month))
    if not whole:
        months += (d1.day - d0.day) / 30.0
    return sign * months


def whole_month_diff(a: DateLike, b: DateLike) -> float:
    return month_diff(a, b, whole=True)


def excel_serial_to_date(serial: int) -> date:
    """
    Spreadsheet serial day number to a calendar date.

    Serials above 60 count from 1899-12-30. Lower serials precede the
    phantom 1900-02-29 that Lotus (and hence Excel) inserted, so they get
    one extra day.
    """
    serial = int(serial)
    extra = 1 if serial <= 60 else 0
    return EXCEL_EPOCH + timedelta(days=serial + extra)


def add_months(d: DateLike, months: int, month_end: bool = False) -> date:
    """Shift by whole calendar months, clamping to the month end; optionally roll to it."""
    ts = pd.Timestamp(ensure_date(d)) + pd.DateOffset(months=int(months))
    if month_end:
        ts = ts + pd.offsets.MonthEnd(0)
    return ts.date()


@dataclass(frozen=True)
class Period:
    """Closed calendar interval [first, last]."""
    first: date
    last: date

    def __post_init__(self):
        object.__setattr__(self, "first", ensure_date(self.first))
        object.__setattr__(self, "last", ensure_date(self.last))
        if self.last < self.first:
            raise ValueError(f"Period ends ({self.last}) before it starts ({self.first}).")

    @classmethod
    def parse(cls, text: str) -> "Period":
        """Parse a pandas period string such as '2023', '2023Q3' or '2023-05'."""
        p = pd.Period(text)
        return cls(p.start_time.date(), p.end_time.date())

    def __contains__(self, d: DateLike) -> bool:
        d = ensure_date(d)
        return self.first <= d <= self.last

    def __str__(self) -> str:
        return f"{self.first.isoformat()} to {self.last.isoformat()}"


PeriodLike = Union[Period, pd.Period, Tuple[DateLike, DateLike], str]


def ensure_period(value: PeriodLike) -> Period:
    if isinstance(value, Period):
        return value
    if isinstance(value, pd.Period):
        return Period(value.start_time.date(), value.end_time.date())
    if isinstance(value, str):
        return Period.parse(value)
    if isinstance(value, tuple) and len(value) == 2:
        return Period(value[0], value[1])
    raise TypeError(f"Cannot interpret {value!r} as a Period.")


def annuity_present_value(periods: int, amount: float, rate: float) -> float:
    """Present value one period before the first of ``periods`` equal payments."""
    if periods <= 0:
        return 0.0
    if rate == 0.0:
        return amount * periods
    k = 1.0 / (1.0 + rate)
    return amount * k * (1.0 - k ** periods) / (1.0 - k)


class DayCount(IntEnum):
    US_30_360 = 0
    ACTUAL_ACTUAL = 1
    ACTUAL_360 = 2
    ACTUAL_365 = 3
    EUROPEAN_30_360 = 4


def ensure_day_count(convention: Union[int, DayCount]) -> DayCount:
    try:
        return DayCount(convention)
    except ValueError as exc:
        raise ValueError(f"Day count convention must be 0, 1, 2, 3, or 4, got {convention!r}.") from exc


def _thirty_360(y1: int, m1: int, d1: int, y2: int, m2: int, d2: int) -> float:
    return (360.0 * (y2 - y1) + 30.0 * (m2 - m1) + (d2 - d1)) / 360.0


def accrual_factor(
    date1: DateLike,
    date2: DateLike,
    convention: Union[int, DayCount] = DayCount.US_30_360,
    eom: bool = False,
    maturity: Optional[DateLike] = None,
) -> float:
    """
    Fraction of a year elapsed from ``date1`` (period start, usually the prior
    coupon date) to ``date2`` (usually settlement).

    Supported:
    - 0: US (NASD) 30/360, with end-of-month February adjustments when ``eom``
    - 1: Actual/Actual, split at 1 January when the years differ in leap status
    - 2: Actual/360
    - 3: Actual/365 (fixed)
    - 4: European 30/360 (30E/360 ISDA)
    """
    convention = ensure_day_count(convention)
    date1 = ensure_date(date1)
    date2 = ensure_date(date2)

    y1, m1, d1 = date1.year, date1.month, date1.day
    y2, m2, d2 = date2.year, date2.month, date2.day

    if convention == DayCount.US_30_360:
        if eom and is_last_of_february(date1) and is_last_of_february(date2):
            d2 = 30
        if eom and is_last_of_february(date1):
            d1 = 30
        if d2 == 31 and d1 in (30, 31):
            d2 = 30
        if d1 == 31:
            d1 = 30
        return _thirty_360(y1, m1, d1, y2, m2, d2)

    if convention == DayCount.ACTUAL_ACTUAL:
        leap1 = is_leap_year(y1)
        leap2 = is_leap_year(y2)
        if leap1 == leap2:
            return (date2 - date1).days / (366.0 if leap1 else 365.0)
        new_year = date(y2, 1, 1)
        before = (new_year - date1).days / (366.0 if leap1 else 365.0)
        after = (date2 - new_year).days / (366.0 if leap2 else 365.0)
        return before + after

    if convention == DayCount.ACTUAL_360:
        return (date2 - date1).days / 360.0

    if convention == DayCount.ACTUAL_365:
        return (date2 - date1).days / 365.0

    # European 30/360: February maturity keeps its actual day count
    at_feb_maturity = maturity is not None and date2 == ensure_date(maturity) and m2 == 2
    if not at_feb_maturity:
        if is_last_of_month(date1):
            d1 = 30
        if is_last_of_month(date2):
            d2 = 30
    return _thirty_360(y1, m1, d1, y2, m2, d2)
