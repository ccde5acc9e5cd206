"""
Ledger Service

The three operations a transport layer needs: record a trade, reverse and
mutate (or delete) a trade, and run a brokerage accrual. Plus read helpers
for trade detail and realized P&L.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Optional, Union

from Config.config_manager import LedgerConfig, get_config
from Shared_Utils.ledger_exceptions import ClientNotFound, TradeNotFound
from Shared_Utils.logger import get_component_logger, log_context
from TableModels import Trade
from brokerage_engine import AccrualPeriod, BrokerageAccrualEngine, BulkAccrualSummary, ClientAccrual
from brokerage_engine.pricing import StockPriceLookup
from calendar_service import CalendarService, load_calendar_service
from database_manager.database_session_manager import DatabaseSessionManager
from fifo_engine import AllocationValidator, FifoAllocator, ValidationResult
from .key_locks import KeyedLockArena, lot_key
from .ledger import TradeLedger
from .models import TradeChanges, TradeInput, TradeWithAllocations

PeriodArg = Union[AccrualPeriod, str]


class LedgerService:
    """
    Facade over TradeLedger, FifoAllocator and BrokerageAccrualEngine.

    Each trade mutation is one unit of work, serialized per
    (client_id, symbol, exchange) by an in-process lock arena.
    """

    def __init__(
        self,
        database_session_manager: DatabaseSessionManager,
        calendar: Optional[CalendarService] = None,
        config: Optional[LedgerConfig] = None,
        price_lookup: Optional[StockPriceLookup] = None,
    ):
        self.db = database_session_manager
        self.config = config or get_config()
        self.calendar = calendar
        self.allocator = FifoAllocator()
        self.ledger = TradeLedger(self.allocator, self.config)
        self.accruals = BrokerageAccrualEngine(
            self.db, self.calendar, config=self.config, price_lookup=price_lookup
        )
        self.validator = AllocationValidator(self.db)
        self.locks = KeyedLockArena()
        self.logger = get_component_logger('ledger_service')

    # =========================================================================
    # TRADES
    # =========================================================================

    async def record_trade(self, data: TradeInput) -> Trade:
        data = data.normalized(self.config.exchange_timezone)
        if data.exchange is None:
            async with self.db.unit_of_work() as uow:
                data = replace(data, exchange=await self.ledger.resolve_exchange(uow, data.symbol, None))

        with log_context(client_id=data.client_id, symbol=data.symbol):
            async with self.locks.hold(lot_key(data.client_id, data.symbol, data.exchange)):
                async with self.db.unit_of_work() as uow:
                    return await self.ledger.record(uow, data)

    async def reverse_and_mutate_trade(self, trade_id: int,
                                       changes: Optional[TradeChanges] = None) -> Optional[Trade]:
        """
        Apply changes to a trade, or delete it when changes is None.

        Returns the updated trade, or None after a delete.
        """
        async with self.db.unit_of_work() as uow:
            current = await uow.trades.get(trade_id)
            if current is None:
                raise TradeNotFound(trade_id)
            keys = [lot_key(current.client_id, current.symbol, current.exchange)]
            if changes is not None and (changes.symbol or changes.exchange):
                merged = changes.merged_with(current).normalized()
                exchange = merged.exchange or await self.ledger.resolve_exchange(uow, merged.symbol, None)
                keys.append(lot_key(current.client_id, merged.symbol, exchange))

        with log_context(client_id=current.client_id, trade_id=trade_id):
            async with self.locks.hold(*keys):
                async with self.db.unit_of_work() as uow:
                    if changes is None:
                        await self.ledger.delete(uow, trade_id)
                        return None
                    return await self.ledger.update(uow, trade_id, changes)

    @DatabaseSessionManager.db_retry_once
    async def get_trade_with_allocations(self, trade_id: int) -> TradeWithAllocations:
        async with self.db.unit_of_work() as uow:
            trade = await uow.trades.get(trade_id)
            if trade is None:
                raise TradeNotFound(trade_id)
            allocations = await uow.allocations.for_trade(trade)
        return TradeWithAllocations(trade=trade, allocations=allocations)

    @DatabaseSessionManager.db_retry_once
    async def realized_profit_loss(self, client_id: int) -> Decimal:
        async with self.db.unit_of_work() as uow:
            if not await uow.reference.client_exists(client_id):
                raise ClientNotFound(client_id)
            return await self.allocator.realized_profit_loss(uow, client_id)

    async def validate_allocations(self, client_id: Optional[int] = None) -> ValidationResult:
        return await self.validator.validate(client_id=client_id)

    # =========================================================================
    # ACCRUALS
    # =========================================================================

    async def ensure_calendar(self) -> CalendarService:
        """Load the holiday calendar from the holidays table unless one was supplied."""
        if self.calendar is None:
            self.calendar = await load_calendar_service(self.db)
            self.accruals.calendar = self.calendar
        return self.calendar

    @staticmethod
    def _period(period: PeriodArg) -> AccrualPeriod:
        return period if isinstance(period, AccrualPeriod) else AccrualPeriod.parse(period)

    async def run_accrual(self, period: PeriodArg,
                          client_id: Optional[int] = None) -> Union[ClientAccrual, BulkAccrualSummary]:
        period = self._period(period)
        await self.ensure_calendar()
        if client_id is not None:
            return await self.accruals.calculate_for_client(client_id, period)
        return await self.accruals.calculate_bulk(period)

    async def delete_accrual(self, period: PeriodArg, client_id: Optional[int] = None) -> int:
        return await self.accruals.delete_calculation(self._period(period), client_id)
