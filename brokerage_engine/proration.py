"""
Pro-ration of the brokerage rate over holding periods.

    fee = position_value * rate/100 * holding_days / total_days_in_period

Month and day periods count calendar days; quarter periods count tradeable
days. Each line's fee is rounded half-even to paise.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from Shared_Utils.dates_and_times import inclusive_days
from Shared_Utils.precision import format_money, quantize_money, safe_decimal
from TableModels import FifoAllocation, Trade
from .models import PositionLine
from .periods import AccrualPeriod

HUNDRED = Decimal("100")


class CalendarDayBasis:
    """Every calendar day counts."""

    def __init__(self, period: AccrualPeriod):
        self.total = period.calendar_days

    def count(self, start: date, end: date) -> int:
        return inclusive_days(start, end)


class TradeableDayBasis:
    """Only exchange trading days count; total comes from the quarter's TradingPeriod."""

    def __init__(self, calendar, total: int, exchange: Optional[str] = None):
        self.calendar = calendar
        self.total = total
        self.exchange = exchange

    def count(self, start: date, end: date) -> int:
        return self.calendar.tradeable_days_between(start, end, self.exchange)


def prorated_fee(value, rate, holding_days: int, total_days: int) -> Decimal:
    if total_days <= 0 or holding_days <= 0:
        return quantize_money(0)
    raw = safe_decimal(value) * safe_decimal(rate) / HUNDRED * holding_days / total_days
    return quantize_money(raw)


def format_rate(rate) -> str:
    text = f"{safe_decimal(rate):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_formula(value, rate, holding_days: int, total_days: int, fee) -> str:
    return (
        f"{format_money(value)} × {format_rate(rate)}% × "
        f"{holding_days}/{total_days} days = {format_money(fee)}"
    )


def open_position_line(lot: Trade, quantity: int, market_price, period: AccrualPeriod,
                       basis, rate) -> PositionLine:
    """
    Line for a lot still open at period end.

    A lot opened on the last day of the period accrues nothing.
    """
    holding_start = max(lot.trade_date, period.start)
    if lot.trade_date == period.end:
        holding_days = 0
    else:
        holding_days = min(basis.total, basis.count(holding_start, period.end))

    price = safe_decimal(market_price) if market_price is not None else safe_decimal(lot.price)
    value = quantity * price
    fee = prorated_fee(value, rate, holding_days, basis.total)

    return PositionLine(
        trade_id=lot.id,
        sell_trade_id=None,
        symbol=lot.symbol,
        exchange=lot.exchange,
        quantity=quantity,
        buy_price=safe_decimal(lot.price),
        buy_date=lot.trade_date,
        holding_start=holding_start,
        holding_end=period.end,
        holding_days=holding_days,
        total_days=basis.total,
        position_value=value,
        rate=safe_decimal(rate),
        fee=fee,
        formula=format_formula(value, rate, holding_days, basis.total, fee),
    )


def closed_position_line(allocation: FifoAllocation, period: AccrualPeriod,
                         basis, rate) -> Optional[PositionLine]:
    """
    Line for a lot portion sold inside the period, valued at cost.

    Same-day round trips are fee-exempt and produce no line.
    """
    if allocation.buy_date == allocation.sell_date:
        return None

    holding_start = max(allocation.buy_date, period.start)
    holding_days = basis.count(holding_start, allocation.sell_date)
    value = safe_decimal(allocation.buy_value)
    fee = prorated_fee(value, rate, holding_days, basis.total)

    return PositionLine(
        trade_id=allocation.buy_trade_id,
        sell_trade_id=allocation.sell_trade_id,
        symbol=allocation.symbol,
        exchange=allocation.exchange,
        quantity=allocation.quantity_allocated,
        buy_price=safe_decimal(allocation.buy_price),
        buy_date=allocation.buy_date,
        holding_start=holding_start,
        holding_end=allocation.sell_date,
        holding_days=holding_days,
        total_days=basis.total,
        position_value=value,
        rate=safe_decimal(rate),
        fee=fee,
        formula=format_formula(value, rate, holding_days, basis.total, fee),
        is_closed=True,
        sell_date=allocation.sell_date,
        sell_price=safe_decimal(allocation.sell_price),
        sell_value=safe_decimal(allocation.sell_value),
    )
