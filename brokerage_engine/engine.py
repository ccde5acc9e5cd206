"""
Brokerage Accrual Engine

Turns a client's open lots and in-period closed allocations into pro-rated
brokerage lines, persists a BrokerageCalculation with its details, and locks
every trade those details reference.
"""

import asyncio
import time
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from Config.config_manager import LedgerConfig, get_config
from Shared_Utils.ledger_exceptions import ClientNotFound, PeriodLocked
from Shared_Utils.logger import get_component_logger, log_context, log_async_performance
from Shared_Utils.precision import quantize_money
from TableModels import BrokerageCalculation, BrokerageDetail
from calendar_service import CalendarService
from database_manager.database_session_manager import DatabaseSessionManager
from database_manager.unit_of_work import UnitOfWork
from .models import BulkAccrualSummary, ClientAccrual, ClientFailure
from .periods import AccrualPeriod, PeriodType
from .pricing import PriceSnapshot, StockPriceLookup, StockTablePriceLookup
from .proration import (
    CalendarDayBasis,
    TradeableDayBasis,
    closed_position_line,
    open_position_line,
)


class BrokerageAccrualEngine:
    """
    Period brokerage for one client or the whole book.

    Usage:
        engine = BrokerageAccrualEngine(db, calendar)
        accrual = await engine.calculate_for_client(7, AccrualPeriod.monthly(2025, 3))
        summary = await engine.calculate_bulk(AccrualPeriod.parse('2025-Q1'))
    """

    def __init__(
        self,
        database_session_manager: DatabaseSessionManager,
        calendar: Optional[CalendarService],
        config: Optional[LedgerConfig] = None,
        price_lookup: Optional[StockPriceLookup] = None,
        rate: Optional[Decimal] = None,
        batch_size: Optional[int] = None,
        insert_chunk: Optional[int] = None,
    ):
        config = config or get_config()
        self.db = database_session_manager
        self.calendar = calendar
        self.prices = price_lookup or StockTablePriceLookup()
        self.rate = Decimal(str(rate)) if rate is not None else config.brokerage_rate
        self.batch_size = batch_size or config.accrual_batch_size
        self.insert_chunk = insert_chunk or config.detail_insert_chunk
        self.logger = get_component_logger('brokerage_engine')

    # =========================================================================
    # DAY BASIS
    # =========================================================================

    async def day_basis(self, uow: UnitOfWork, period: AccrualPeriod):
        """
        Calendar days for month/day periods; tradeable days for quarters.

        The quarter total is always counted from the same calendar that
        counts holding days. The stored TradingPeriod row is rewritten when
        it disagrees (written before a holiday was added, for instance).
        """
        if period.period_type is not PeriodType.QUARTERLY:
            return CalendarDayBasis(period)

        info = self.calendar.trading_period(period.year, period.quarter)
        row = await uow.reference.get_trading_period(period.year, period.quarter)
        if row is None or row.tradeable_days != info.tradeable_days:
            if row is not None:
                self.logger.warning(
                    f"⚠️ Trading period {info.key} stored {row.tradeable_days} tradeable days, "
                    f"calendar counts {info.tradeable_days}; updating"
                )
            await uow.reference.upsert_trading_period(
                info.year, info.quarter, info.start, info.end, info.tradeable_days
            )
            self.logger.info(f"📅 Stored trading period {info.key}: {info.tradeable_days} tradeable days")
        return TradeableDayBasis(self.calendar, info.tradeable_days)

    # =========================================================================
    # COMPUTATION
    # =========================================================================

    async def compute_for_client(
        self,
        uow: UnitOfWork,
        client_id: int,
        period: AccrualPeriod,
        basis=None,
        prices: Optional[PriceSnapshot] = None,
    ) -> ClientAccrual:
        """Read-only computation of one client's accrual; nothing is written."""
        if not await uow.reference.client_exists(client_id):
            raise ClientNotFound(client_id)
        if basis is None:
            basis = await self.day_basis(uow, period)
        if prices is None:
            prices = await self.prices.snapshot(uow)

        accrual = ClientAccrual(
            client_id=client_id,
            period_key=period.key,
            period_type=period.period_type.value,
            period_start=period.start,
            period_end=period.end,
            total_days=basis.total,
            rate=self.rate,
        )

        # Open as of period end: what is left now plus what later sells took
        consumed_later = await uow.allocations.allocated_after(client_id, period.end)
        for lot in await uow.trades.buys_as_of(client_id, period.end):
            open_quantity = lot.remaining_quantity + consumed_later.get(lot.id, 0)
            if open_quantity <= 0:
                continue
            price = prices.get((lot.symbol, lot.exchange))
            accrual.lines.append(open_position_line(lot, open_quantity, price, period, basis, self.rate))

        for allocation in await uow.allocations.closed_in_period(client_id, period.start, period.end):
            line = closed_position_line(allocation, period, basis, self.rate)
            if line is not None:
                accrual.lines.append(line)

        accrual.total_trades, turnover = await uow.trades.period_stats(client_id, period.start, period.end)
        accrual.total_turnover = quantize_money(turnover)
        return accrual

    @log_async_performance('brokerage_engine')
    async def calculate_for_client(self, client_id: int, period: AccrualPeriod) -> ClientAccrual:
        """
        Compute, persist and lock one client's period.

        Raises:
            ClientNotFound: unknown client
            PeriodLocked: the client already has a calculation for this period
        """
        with log_context(client_id=client_id, period_key=period.key):
            async with self.db.unit_of_work() as uow:
                if await uow.brokerage.exists(client_id, period.key):
                    raise PeriodLocked(
                        f"Brokerage for client {client_id} period {period.key} is already finalised",
                        period_key=period.key, client_id=client_id,
                    )
                accrual = await self.compute_for_client(uow, client_id, period)
                await self._persist(uow, [accrual])

            self.logger.accrual(
                f"✅ Client {client_id} {period.key}: {accrual.total_positions} positions, "
                f"₹{accrual.brokerage_amount:,.2f}"
            )
        return accrual

    @log_async_performance('brokerage_engine')
    async def calculate_bulk(self, period: AccrualPeriod,
                             client_ids: Optional[Iterable[int]] = None) -> BulkAccrualSummary:
        """
        Compute every client for the period with bounded concurrency, then
        persist all successes in one unit of work.

        Per-client failures are logged and reported in the summary; they do
        not stop the run. A failure of the final write propagates and leaves
        nothing persisted.
        """
        start_time = time.perf_counter()
        summary = BulkAccrualSummary(period_key=period.key)

        async with self.db.unit_of_work() as uow:
            if await uow.brokerage.any_for_period(period.key):
                raise PeriodLocked(f"Period {period.key} already has brokerage calculations",
                                   period_key=period.key)
            ids = sorted(set(client_ids)) if client_ids is not None else await uow.reference.client_ids()
            basis = await self.day_basis(uow, period)
            prices = await self.prices.snapshot(uow)

        summary.clients_total = len(ids)
        self.logger.info(f"🚀 Bulk brokerage {period.key}: {len(ids)} clients, batch size {self.batch_size}")

        semaphore = asyncio.Semaphore(self.batch_size)
        results: List[ClientAccrual] = []

        async def worker(client_id: int):
            async with semaphore:
                with log_context(client_id=client_id, period_key=period.key):
                    try:
                        async with self.db.unit_of_work() as read_uow:
                            accrual = await self.compute_for_client(read_uow, client_id, period, basis, prices)
                        results.append(accrual)
                    except Exception as e:
                        self.logger.error(f"❌ Client {client_id} failed: {e}", exc_info=True)
                        summary.failures.append(ClientFailure(client_id, type(e).__name__, str(e)))

        for offset in range(0, len(ids), self.batch_size):
            batch = ids[offset:offset + self.batch_size]
            await asyncio.gather(*(worker(cid) for cid in batch))
            self.logger.debug(f"Batch {offset // self.batch_size + 1}: {len(results)}/{len(ids)} computed")

        results.sort(key=lambda a: a.client_id)
        if results:
            async with self.db.unit_of_work() as uow:
                await self._persist(uow, results)

        summary.results = results
        summary.succeeded = len(results)
        summary.failed = len(summary.failures)
        summary.total_brokerage = quantize_money(sum((a.brokerage_amount for a in results), Decimal("0")))
        summary.duration_ms = int((time.perf_counter() - start_time) * 1000)

        self.logger.accrual(
            f"🎉 Bulk brokerage {period.key} complete: {summary.succeeded}/{summary.clients_total} clients, "
            f"{summary.failed} failed, total ₹{summary.total_brokerage:,.2f}, {summary.duration_ms:,}ms"
        )
        return summary

    # =========================================================================
    # PERSISTENCE & LOCKS
    # =========================================================================

    async def _persist(self, uow: UnitOfWork, accruals: List[ClientAccrual]) -> None:
        rows: List[Tuple[BrokerageCalculation, List[BrokerageDetail]]] = [
            (a.to_calculation(), [line.to_detail() for line in a.lines]) for a in accruals
        ]
        if len(rows) == 1:
            calc, details = rows[0]
            await uow.brokerage.save(calc, details)
        else:
            await uow.brokerage.save_many(rows, self.insert_chunk)

        for accrual, (calc, _) in zip(accruals, rows):
            accrual.calculation_id = calc.id

        trade_ids = set()
        for accrual in accruals:
            trade_ids |= accrual.referenced_trade_ids
        await self._apply_locks(uow, trade_ids)

    async def _apply_locks(self, uow: UnitOfWork, trade_ids: Iterable[int]) -> None:
        """Set each trade's locked_period to the latest calculation still referencing it."""
        ids = set(trade_ids)
        if not ids:
            return
        latest = await uow.brokerage.latest_lock_for_trades(ids)
        by_key: Dict[Optional[str], List[int]] = {}
        for trade_id in ids:
            by_key.setdefault(latest.get(trade_id), []).append(trade_id)
        for key, grouped in by_key.items():
            await uow.trades.set_locked_period(grouped, key)

        locked = len(ids) - len(by_key.get(None, []))
        self.logger.period_lock(f"🔒 {locked} trade(s) locked, {len(by_key.get(None, []))} unlocked")

    async def delete_calculation(self, period: AccrualPeriod, client_id: Optional[int] = None) -> int:
        """
        Delete a period's calculation(s) and unlock trades no other calculation references.

        Returns:
            Number of calculations deleted
        """
        async with self.db.unit_of_work() as uow:
            if client_id is not None:
                calc = await uow.brokerage.get(client_id, period.key)
                calculations = [calc] if calc else []
            else:
                calculations = await uow.brokerage.for_period(period.key)

            if not calculations:
                self.logger.warning(f"⚠️ No brokerage calculations for {period.key} (client={client_id or 'all'})")
                return 0

            calc_ids = [c.id for c in calculations]
            trade_ids = await uow.brokerage.referenced_trade_ids(calc_ids)
            deleted = await uow.brokerage.delete_calculations(calc_ids)
            await self._apply_locks(uow, trade_ids)

        self.logger.info(f"🗑️ Deleted {deleted} calculation(s) for {period.key}")
        return deleted

    async def get_calculation(self, client_id: int, period: AccrualPeriod):
        """(calculation, details) for a finalised period, or None."""
        async with self.db.unit_of_work() as uow:
            calc = await uow.brokerage.get(client_id, period.key)
            if calc is None:
                return None
            return calc, await uow.brokerage.details(calc.id)
