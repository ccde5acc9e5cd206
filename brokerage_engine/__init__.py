"""
Brokerage Accrual Engine

Periodic, time-weighted brokerage on deployed capital.

Key Components:
- BrokerageAccrualEngine: single-client and whole-book period runs
- AccrualPeriod / PeriodType: month, quarter and day windows
- proration: the fee formula and per-position lines
- pricing: market price sources for valuing open lots
"""

from .engine import BrokerageAccrualEngine
from .models import BulkAccrualSummary, ClientAccrual, ClientFailure, PositionLine
from .periods import AccrualPeriod, PeriodType
from .pricing import StaticPriceLookup, StockPriceLookup, StockTablePriceLookup
from .proration import (
    CalendarDayBasis,
    TradeableDayBasis,
    prorated_fee,
    format_formula,
    open_position_line,
    closed_position_line,
)

__all__ = [
    'BrokerageAccrualEngine',
    'BulkAccrualSummary',
    'ClientAccrual',
    'ClientFailure',
    'PositionLine',
    'AccrualPeriod',
    'PeriodType',
    'StaticPriceLookup',
    'StockPriceLookup',
    'StockTablePriceLookup',
    'CalendarDayBasis',
    'TradeableDayBasis',
    'prorated_fee',
    'format_formula',
    'open_position_line',
    'closed_position_line',
]
