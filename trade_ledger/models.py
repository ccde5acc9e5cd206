"""Input and output shapes of the trade ledger."""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional

from Shared_Utils.dates_and_times import DateLike, to_trade_date
from Shared_Utils.ledger_exceptions import TradeValidationError
from Shared_Utils.precision import to_decimal_strict
from TableModels import FifoAllocation, Trade

SIDES = ('BUY', 'SELL')


@dataclass(frozen=True)
class TradeInput:
    client_id: int
    symbol: str
    side: str
    quantity: int
    price: Decimal
    trade_date: DateLike
    exchange: Optional[str] = None
    notes: Optional[str] = None

    def normalized(self, tz_name: Optional[str] = None) -> "TradeInput":
        """
        Validated copy: upper-cased symbol/side/exchange, int quantity,
        Decimal price and a plain trade date.

        Raises:
            TradeValidationError: on any malformed field
        """
        symbol = (self.symbol or '').strip().upper()
        if not symbol:
            raise TradeValidationError('symbol', self.symbol, 'symbol is required')

        side = (self.side or '').strip().upper()
        if side not in SIDES:
            raise TradeValidationError('side', self.side, 'side must be BUY or SELL')

        quantity = self.quantity
        if isinstance(quantity, bool):
            raise TradeValidationError('quantity', quantity, 'quantity must be a whole number')
        try:
            qty_dec = to_decimal_strict(quantity, 'quantity')
        except ValueError as e:
            raise TradeValidationError('quantity', quantity, str(e)) from None
        if qty_dec != qty_dec.to_integral_value():
            raise TradeValidationError('quantity', quantity, 'quantity must be a whole number')
        if qty_dec <= 0:
            raise TradeValidationError('quantity', quantity, 'quantity must be positive')

        try:
            price = to_decimal_strict(self.price, 'price')
        except ValueError as e:
            raise TradeValidationError('price', self.price, str(e)) from None
        if price <= 0:
            raise TradeValidationError('price', self.price, 'price must be positive')

        try:
            trade_date = to_trade_date(self.trade_date, tz_name) if tz_name else to_trade_date(self.trade_date)
        except (TypeError, ValueError, OverflowError) as e:
            raise TradeValidationError('trade_date', self.trade_date, str(e)) from None

        exchange = self.exchange.strip().upper() if self.exchange else None

        return replace(self, symbol=symbol, side=side, quantity=int(qty_dec), price=price,
                       trade_date=trade_date, exchange=exchange)

    @property
    def net_amount(self) -> Decimal:
        return self.quantity * self.price


@dataclass(frozen=True)
class TradeChanges:
    """Fields to overwrite on an existing trade; None leaves a field unchanged."""

    symbol: Optional[str] = None
    exchange: Optional[str] = None
    side: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None
    trade_date: Optional[DateLike] = None
    notes: Optional[str] = None

    def merged_with(self, trade: Trade) -> TradeInput:
        symbol_changed = self.symbol is not None and self.symbol.strip().upper() != trade.symbol
        exchange = self.exchange if self.exchange is not None else (None if symbol_changed else trade.exchange)
        return TradeInput(
            client_id=trade.client_id,
            symbol=self.symbol if self.symbol is not None else trade.symbol,
            side=self.side if self.side is not None else trade.side,
            quantity=self.quantity if self.quantity is not None else trade.quantity,
            price=self.price if self.price is not None else trade.price,
            trade_date=self.trade_date if self.trade_date is not None else trade.trade_date,
            exchange=exchange,
            notes=self.notes if self.notes is not None else trade.notes,
        )


@dataclass
class TradeWithAllocations:
    trade: Trade
    allocations: List[FifoAllocation] = field(default_factory=list)

    @property
    def realized_profit_loss(self) -> Decimal:
        return sum((a.profit_loss for a in self.allocations), Decimal("0"))

    @property
    def allocated_quantity(self) -> int:
        return sum(a.quantity_allocated for a in self.allocations)
