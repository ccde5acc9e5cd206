import calendar

import pytz

from dateutil.parser import isoparse
from datetime import date, datetime
from typing import Union

from Config.constants_core import EXCHANGE_TIMEZONE


DateLike = Union[date, datetime, str]


def to_trade_date(value: DateLike, tz_name: str = EXCHANGE_TIMEZONE) -> date:
    """
    Normalise a trade timestamp to the exchange-local calendar date.

    Aware datetimes are converted to the exchange timezone first; naive ones
    are taken as already local. Strings are parsed as ISO-8601.
    """
    if isinstance(value, str):
        value = isoparse(value.strip())

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(pytz.timezone(tz_name))
        return value.date()

    if isinstance(value, date):
        return value

    raise TypeError(f"Cannot interpret {value!r} as a trade date")


def inclusive_days(start: date, end: date) -> int:
    """Calendar days from start to end counting both ends; 0 if end < start."""
    if end < start:
        return 0
    return (end - start).days + 1


def month_bounds(year: int, month: int):
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def quarter_bounds(year: int, quarter: int):
    first_month = 3 * (quarter - 1) + 1
    start = date(year, first_month, 1)
    _, end = month_bounds(year, first_month + 2)
    return start, end


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1

