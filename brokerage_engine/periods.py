"""Accrual periods: calendar month, calendar quarter or a single day."""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from Config.constants_core import MIN_PERIOD_YEAR, MAX_PERIOD_YEAR
from Shared_Utils.dates_and_times import month_bounds, quarter_bounds, inclusive_days, quarter_of
from Shared_Utils.ledger_exceptions import InvalidPeriod


class PeriodType(str, Enum):
    DAILY = "DAILY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"


_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_QUARTER_KEY = re.compile(r"^(\d{4})-Q([1-4])$", re.IGNORECASE)
_DAY_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_COMPACT_MONTH_KEY = re.compile(r"^(\d{4})(\d{2})$")


def _check_year(year) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or not MIN_PERIOD_YEAR <= year <= MAX_PERIOD_YEAR:
        raise InvalidPeriod(f"year must be between {MIN_PERIOD_YEAR} and {MAX_PERIOD_YEAR}", year=year)


@dataclass(frozen=True)
class AccrualPeriod:
    period_type: PeriodType
    year: int
    start: date
    end: date
    month: Optional[int] = None
    quarter: Optional[int] = None

    # ---------- constructors ----------

    @classmethod
    def monthly(cls, year: int, month: int) -> "AccrualPeriod":
        _check_year(year)
        if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
            raise InvalidPeriod("month must be between 1 and 12", month=month)
        start, end = month_bounds(year, month)
        return cls(PeriodType.MONTHLY, year, start, end, month=month, quarter=quarter_of(start))

    @classmethod
    def quarterly(cls, year: int, quarter: int) -> "AccrualPeriod":
        _check_year(year)
        if not isinstance(quarter, int) or isinstance(quarter, bool) or not 1 <= quarter <= 4:
            raise InvalidPeriod("quarter must be between 1 and 4", quarter=quarter)
        start, end = quarter_bounds(year, quarter)
        return cls(PeriodType.QUARTERLY, year, start, end, quarter=quarter)

    @classmethod
    def daily(cls, day: date) -> "AccrualPeriod":
        if not isinstance(day, date):
            raise InvalidPeriod("day must be a date", day=day)
        _check_year(day.year)
        return cls(PeriodType.DAILY, day.year, day, day, month=day.month, quarter=quarter_of(day))

    @classmethod
    def parse(cls, key: str) -> "AccrualPeriod":
        """
        Parse 'YYYY-MM', 'YYYYMM', 'YYYY-Qn' or 'YYYY-MM-DD'.

        Raises:
            InvalidPeriod: on anything else, or out-of-range parts
        """
        if not isinstance(key, str):
            raise InvalidPeriod("period key must be a string", key=key)
        text = key.strip()

        m = _QUARTER_KEY.match(text)
        if m:
            return cls.quarterly(int(m.group(1)), int(m.group(2)))
        m = _MONTH_KEY.match(text) or _COMPACT_MONTH_KEY.match(text)
        if m:
            return cls.monthly(int(m.group(1)), int(m.group(2)))
        m = _DAY_KEY.match(text)
        if m:
            year, month, day = (int(g) for g in m.groups())
            _check_year(year)
            try:
                return cls.daily(date(year, month, day))
            except ValueError as e:
                raise InvalidPeriod(str(e), key=key) from None
        raise InvalidPeriod(f"unrecognised period key {key!r}", key=key)

    # ---------- derived ----------

    @property
    def key(self) -> str:
        if self.period_type is PeriodType.QUARTERLY:
            return f"{self.year}-Q{self.quarter}"
        if self.period_type is PeriodType.MONTHLY:
            return f"{self.year}-{self.month:02d}"
        return self.start.isoformat()

    @property
    def calendar_days(self) -> int:
        return inclusive_days(self.start, self.end)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return self.key
