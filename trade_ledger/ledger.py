"""
Trade Ledger

The authoritative store of client trade events. Every mutation runs inside
the caller's unit of work; a SELL is recorded and allocated atomically, and
edits or deletions first reverse the trade's FIFO effects.
"""

from typing import Optional

from Config.config_manager import LedgerConfig, get_config
from Shared_Utils.ledger_exceptions import ClientNotFound, PeriodLocked, StockNotFound, TradeNotFound
from Shared_Utils.logger import get_component_logger
from TableModels import Trade
from database_manager.unit_of_work import UnitOfWork
from fifo_engine import FifoAllocator
from .models import TradeChanges, TradeInput


class TradeLedger:
    """
    Lifecycle: created -> (consumed / allocated) -> locked.

    Locked trades (locked_period set) are immutable; a trade dated inside a
    period the client has already finalised cannot be added, moved or removed.
    """

    def __init__(self, allocator: Optional[FifoAllocator] = None, config: Optional[LedgerConfig] = None):
        self.config = config or get_config()
        self.allocator = allocator or FifoAllocator()
        self.logger = get_component_logger('trade_ledger')

    # =========================================================================
    # VALIDATION
    # =========================================================================

    async def resolve_exchange(self, uow: UnitOfWork, symbol: str, exchange: Optional[str]) -> str:
        stock = await uow.reference.find_stock(symbol, exchange, preferred_exchange=self.config.default_exchange)
        if stock is None:
            raise StockNotFound(symbol, exchange)
        return stock.exchange

    async def _validate(self, uow: UnitOfWork, data: TradeInput) -> TradeInput:
        data = data.normalized(self.config.exchange_timezone)
        if not await uow.reference.client_exists(data.client_id):
            raise ClientNotFound(data.client_id)
        exchange = await self.resolve_exchange(uow, data.symbol, data.exchange)
        await self._ensure_period_open(uow, data.client_id, data.trade_date)
        return TradeInput(
            client_id=data.client_id,
            symbol=data.symbol,
            side=data.side,
            quantity=data.quantity,
            price=data.price,
            trade_date=data.trade_date,
            exchange=exchange,
            notes=data.notes,
        )

    async def _ensure_period_open(self, uow: UnitOfWork, client_id: int, trade_date) -> None:
        period_key = await uow.brokerage.finalized_covering(client_id, trade_date)
        if period_key:
            raise PeriodLocked(
                f"Client {client_id} brokerage for {period_key} is finalised; "
                f"trades dated {trade_date} cannot change",
                period_key=period_key, client_id=client_id,
            )

    @staticmethod
    def _ensure_unlocked(trade: Trade) -> None:
        if trade.locked_period:
            raise PeriodLocked(
                f"Trade {trade.id} is locked by brokerage period {trade.locked_period}",
                trade_id=trade.id, period_key=trade.locked_period, client_id=trade.client_id,
            )

    async def _get(self, uow: UnitOfWork, trade_id: int) -> Trade:
        trade = await uow.trades.get(trade_id, for_update=True)
        if trade is None:
            raise TradeNotFound(trade_id)
        return trade

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    async def record(self, uow: UnitOfWork, data: TradeInput) -> Trade:
        """Insert a trade; a SELL is allocated in the same unit of work."""
        data = await self._validate(uow, data)
        trade = Trade(
            client_id=data.client_id,
            symbol=data.symbol,
            exchange=data.exchange,
            side=data.side,
            quantity=data.quantity,
            price=data.price,
            trade_date=data.trade_date,
            net_amount=data.net_amount,
            original_quantity=data.quantity,
            remaining_quantity=0,
            is_fully_consumed=False,
            sell_fully_allocated=False,
            notes=data.notes,
        )
        await uow.trades.add(trade)
        await self._process(uow, trade)

        self.logger.info(
            f"✅ Recorded {trade.side} {trade.quantity} {trade.symbol}/{trade.exchange} "
            f"@ {trade.price} on {trade.trade_date} (trade {trade.id})",
            extra={'client_id': trade.client_id},
        )
        return trade

    async def _process(self, uow: UnitOfWork, trade: Trade) -> None:
        """(Re)initialise FIFO state from the trade's current fields."""
        trade.original_quantity = trade.quantity
        if trade.is_buy:
            trade.remaining_quantity = trade.quantity
            trade.is_fully_consumed = False
            trade.sell_fully_allocated = False
            await uow.flush()
        else:
            trade.remaining_quantity = 0
            trade.is_fully_consumed = False
            trade.sell_fully_allocated = False
            await uow.flush()
            await self.allocator.allocate(uow, trade)

    async def update(self, uow: UnitOfWork, trade_id: int, changes: TradeChanges) -> Trade:
        """
        Reverse, rewrite and reprocess a trade, keeping its id.

        Raises:
            TradeNotFound, PeriodLocked, AllocationConflict, InsufficientShares,
            plus the validation errors of record()
        """
        trade = await self._get(uow, trade_id)
        self._ensure_unlocked(trade)
        await self._ensure_period_open(uow, trade.client_id, trade.trade_date)

        await self.allocator.reverse(uow, trade)
        data = await self._validate(uow, changes.merged_with(trade))

        trade.symbol = data.symbol
        trade.exchange = data.exchange
        trade.side = data.side
        trade.quantity = data.quantity
        trade.price = data.price
        trade.trade_date = data.trade_date
        trade.net_amount = data.net_amount
        trade.notes = data.notes
        await self._process(uow, trade)

        self.logger.info(f"✏️ Updated trade {trade.id}", extra={'client_id': trade.client_id})
        return trade

    async def delete(self, uow: UnitOfWork, trade_id: int) -> Trade:
        """Reverse then remove a trade. Returns the detached row."""
        trade = await self._get(uow, trade_id)
        self._ensure_unlocked(trade)
        await self._ensure_period_open(uow, trade.client_id, trade.trade_date)

        await self.allocator.reverse(uow, trade)
        await uow.trades.delete(trade)

        self.logger.info(f"🗑️ Deleted trade {trade_id}", extra={'client_id': trade.client_id})
        return trade
