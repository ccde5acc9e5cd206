from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import pandas as pd

from Config.constants_core import MIN_PERIOD_YEAR, MAX_PERIOD_YEAR, WEEKMASK
from Shared_Utils.dates_and_times import quarter_bounds
from Shared_Utils.ledger_exceptions import InvalidPeriod

ALL_EXCHANGES = '*'

HolidayInput = Union[date, Tuple[date, Optional[str]]]


@dataclass(frozen=True)
class QuarterInfo:
    year: int
    quarter: int
    start: date
    end: date
    tradeable_days: int

    @property
    def key(self) -> str:
        return f"{self.year}-Q{self.quarter}"


class CalendarService:
    """
    Tradeable-day arithmetic over a holiday set.

    Holidays are kept per exchange; a bare date (or exchange None) closes every
    exchange. Without an exchange argument the union of all holidays applies.
    Quarter counts are cached per (year, quarter, exchange) until refresh().
    """

    def __init__(self, holidays: Iterable[HolidayInput] = (), weekmask: str = WEEKMASK):
        self.weekmask = weekmask
        self._holidays: Dict[str, Set[date]] = {}
        self._quarter_cache: Dict[Tuple[int, int, Optional[str]], int] = {}
        self._load(holidays)

    def _load(self, holidays: Iterable[HolidayInput]) -> None:
        self._holidays = {}
        for item in holidays:
            if isinstance(item, tuple):
                day, exchange = item
            else:
                day, exchange = item, None
            key = exchange.upper() if exchange else ALL_EXCHANGES
            self._holidays.setdefault(key, set()).add(day)

    def refresh(self, holidays: Iterable[HolidayInput]) -> None:
        """Replace the holiday set and drop cached counts."""
        self._load(holidays)
        self._quarter_cache.clear()

    @property
    def cached_quarters(self) -> List[Tuple[int, int, Optional[str]]]:
        return sorted(self._quarter_cache, key=lambda k: (k[0], k[1], k[2] or ''))

    def holidays_for(self, exchange: Optional[str] = None) -> List[date]:
        if exchange is None:
            days = set().union(*self._holidays.values()) if self._holidays else set()
        else:
            days = self._holidays.get(exchange.upper(), set()) | self._holidays.get(ALL_EXCHANGES, set())
        return sorted(days)

    def tradeable_days_between(self, start: date, end: date, exchange: Optional[str] = None) -> int:
        """Tradeable days from start to end, both inclusive; 0 when end < start."""
        if end < start:
            return 0
        days = pd.bdate_range(
            start=start,
            end=end,
            freq='C',
            weekmask=self.weekmask,
            holidays=self.holidays_for(exchange),
        )
        return len(days)

    def is_tradeable(self, day: date, exchange: Optional[str] = None) -> bool:
        return self.tradeable_days_between(day, day, exchange) == 1

    def tradeable_days_in_quarter(self, year: int, quarter: int, exchange: Optional[str] = None) -> int:
        _validate_quarter(year, quarter)
        key = (year, quarter, exchange.upper() if exchange else None)
        if key not in self._quarter_cache:
            start, end = quarter_bounds(year, quarter)
            self._quarter_cache[key] = self.tradeable_days_between(start, end, exchange)
        return self._quarter_cache[key]

    def trading_period(self, year: int, quarter: int, exchange: Optional[str] = None) -> QuarterInfo:
        days = self.tradeable_days_in_quarter(year, quarter, exchange)
        start, end = quarter_bounds(year, quarter)
        return QuarterInfo(year=year, quarter=quarter, start=start, end=end, tradeable_days=days)

    def trading_periods_for_year(self, year: int, exchange: Optional[str] = None) -> List[QuarterInfo]:
        return [self.trading_period(year, q, exchange) for q in (1, 2, 3, 4)]


def _validate_quarter(year: int, quarter: int) -> None:
    if not isinstance(year, int) or not MIN_PERIOD_YEAR <= year <= MAX_PERIOD_YEAR:
        raise InvalidPeriod(f"year must be between {MIN_PERIOD_YEAR} and {MAX_PERIOD_YEAR}", year=year)
    if not isinstance(quarter, int) or not 1 <= quarter <= 4:
        raise InvalidPeriod("quarter must be between 1 and 4", quarter=quarter)
