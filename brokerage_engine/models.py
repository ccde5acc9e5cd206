"""
Data models for brokerage accrual.

PositionLine is one contributing position; ClientAccrual is a client's
result for a period; BulkAccrualSummary reports a whole-book run.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Set

from Shared_Utils.precision import quantize_money, sum_money
from TableModels import BrokerageCalculation, BrokerageDetail


@dataclass
class PositionLine:
    trade_id: int
    sell_trade_id: Optional[int]
    symbol: str
    exchange: str
    quantity: int
    buy_price: Decimal
    buy_date: date
    holding_start: date
    holding_end: date
    holding_days: int
    total_days: int
    position_value: Decimal
    rate: Decimal
    fee: Decimal
    formula: str
    is_closed: bool = False
    sell_date: Optional[date] = None
    sell_price: Optional[Decimal] = None
    sell_value: Optional[Decimal] = None

    def to_detail(self) -> BrokerageDetail:
        return BrokerageDetail(
            trade_id=self.trade_id,
            sell_trade_id=self.sell_trade_id,
            symbol=self.symbol,
            exchange=self.exchange,
            quantity=self.quantity,
            buy_price=self.buy_price,
            buy_date=self.buy_date,
            holding_start_date=self.holding_start,
            holding_end_date=self.holding_end,
            holding_days=self.holding_days,
            total_days_in_period=self.total_days,
            position_value=self.position_value,
            brokerage_rate=self.rate,
            brokerage_amount=self.fee,
            is_closed_in_period=self.is_closed,
            sell_date=self.sell_date,
            sell_price=self.sell_price,
            sell_value=self.sell_value,
            calculation_formula=self.formula,
        )


@dataclass
class ClientAccrual:
    """One client's brokerage for one period, before or after persisting."""

    client_id: int
    period_key: str
    period_type: str
    period_start: date
    period_end: date
    total_days: int
    rate: Decimal
    lines: List[PositionLine] = field(default_factory=list)
    total_trades: int = 0
    total_turnover: Decimal = Decimal("0")
    calculation_id: Optional[int] = None

    @property
    def open_lines(self) -> List[PositionLine]:
        return [line for line in self.lines if not line.is_closed]

    @property
    def closed_lines(self) -> List[PositionLine]:
        return [line for line in self.lines if line.is_closed]

    @property
    def total_holding_value(self) -> Decimal:
        return sum_money(line.position_value for line in self.lines)

    @property
    def total_holding_days(self) -> int:
        return sum(line.holding_days for line in self.lines)

    @property
    def brokerage_amount(self) -> Decimal:
        return quantize_money(sum_money(line.fee for line in self.lines))

    @property
    def total_positions(self) -> int:
        return len(self.lines)

    @property
    def referenced_trade_ids(self) -> Set[int]:
        ids = set()
        for line in self.lines:
            ids.add(line.trade_id)
            if line.sell_trade_id is not None:
                ids.add(line.sell_trade_id)
        return ids

    def to_calculation(self) -> BrokerageCalculation:
        return BrokerageCalculation(
            client_id=self.client_id,
            period_key=self.period_key,
            period_type=self.period_type,
            period_start=self.period_start,
            period_end=self.period_end,
            total_days_in_period=self.total_days,
            total_holding_value=self.total_holding_value,
            total_holding_days=self.total_holding_days,
            rate=self.rate,
            brokerage_amount=self.brokerage_amount,
            total_positions=self.total_positions,
            total_trades=self.total_trades,
            total_turnover=self.total_turnover,
        )

    def __str__(self) -> str:
        return (
            f"ClientAccrual(client {self.client_id} {self.period_key}: "
            f"{self.total_positions} positions, ₹{self.brokerage_amount:,.2f})"
        )


@dataclass
class ClientFailure:
    client_id: int
    error_type: str
    message: str


@dataclass
class BulkAccrualSummary:
    """Outcome of computing a period for every client."""

    period_key: str
    clients_total: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: List[ClientFailure] = field(default_factory=list)
    total_brokerage: Decimal = Decimal("0")
    duration_ms: int = 0
    results: List[ClientAccrual] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0

    def __str__(self) -> str:
        status = "✅" if not self.has_failures else "⚠️"
        return (
            f"BulkAccrualSummary({status} {self.period_key}: {self.succeeded}/{self.clients_total} clients, "
            f"{self.failed} failed, ₹{self.total_brokerage:,.2f}, {self.duration_ms}ms)"
        )
