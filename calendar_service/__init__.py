"""
Trading calendar.

Counts tradeable days (weekdays that are not exchange holidays) per quarter
or between two dates, and keeps the per-quarter TradingPeriod rows current.

Usage:
    from calendar_service import CalendarService

    calendar = CalendarService([(date(2025, 1, 26), 'NSE')])
    calendar.tradeable_days_in_quarter(2025, 1)
"""

from .service import CalendarService, QuarterInfo
from .persistence import load_calendar_service, refresh_trading_periods

__all__ = [
    'CalendarService',
    'QuarterInfo',
    'load_calendar_service',
    'refresh_trading_periods',
]
