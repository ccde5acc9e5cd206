"""
Repositories bound to a unit of work session.

Each repository owns the queries for one entity; none of them commit. The
enclosing DatabaseSessionManager.unit_of_work() decides commit or rollback.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, delete, func, and_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from TableModels import (
    Trade,
    FifoAllocation,
    BrokerageCalculation,
    BrokerageDetail,
    Client,
    Stock,
    Holiday,
    TradingPeriod,
)


def _chunks(items: Sequence, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class TradeRepository:

    def __init__(self, session: AsyncSession, row_locks: bool = False):
        self.session = session
        self.row_locks = row_locks

    async def add(self, trade: Trade) -> Trade:
        self.session.add(trade)
        await self.session.flush()
        return trade

    async def get(self, trade_id: int, for_update: bool = False) -> Optional[Trade]:
        stmt = select(Trade).where(Trade.id == trade_id)
        if for_update and self.row_locks:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many(self, trade_ids: Iterable[int], for_update: bool = False) -> Dict[int, Trade]:
        ids = sorted(set(trade_ids))
        if not ids:
            return {}
        stmt = select(Trade).where(Trade.id.in_(ids)).order_by(Trade.id)
        if for_update and self.row_locks:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return {t.id: t for t in result.scalars()}

    async def open_lots(self, client_id: int, symbol: str, exchange: str, as_of: date) -> List[Trade]:
        """BUY lots with quantity left, traded on or before as_of, oldest first (ties by id)."""
        stmt = (
            select(Trade)
            .where(
                Trade.client_id == client_id,
                Trade.symbol == symbol,
                Trade.exchange == exchange,
                Trade.side == 'BUY',
                Trade.remaining_quantity > 0,
                Trade.trade_date <= as_of,
            )
            .order_by(Trade.trade_date, Trade.id)
        )
        if self.row_locks:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def buys_as_of(self, client_id: int, as_of: date) -> List[Trade]:
        stmt = (
            select(Trade)
            .where(Trade.client_id == client_id, Trade.side == 'BUY', Trade.trade_date <= as_of)
            .order_by(Trade.trade_date, Trade.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars())

    async def period_stats(self, client_id: int, start: date, end: date) -> Tuple[int, Decimal]:
        """(trade count, turnover) of trades dated inside [start, end]."""
        stmt = select(
            func.count(Trade.id),
            func.coalesce(func.sum(Trade.quantity * Trade.price), 0),
        ).where(Trade.client_id == client_id, Trade.trade_date >= start, Trade.trade_date <= end)
        count, turnover = (await self.session.execute(stmt)).one()
        return int(count or 0), Decimal(str(turnover or 0))

    async def set_locked_period(self, trade_ids: Iterable[int], period_key: Optional[str]) -> None:
        ids = sorted(set(trade_ids))
        for chunk in _chunks(ids, 500):
            await self.session.execute(
                update(Trade).where(Trade.id.in_(chunk)).values(locked_period=period_key)
            )

    async def delete(self, trade: Trade) -> None:
        await self.session.delete(trade)
        await self.session.flush()


class AllocationRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_all(self, allocations: List[FifoAllocation]) -> None:
        self.session.add_all(allocations)
        await self.session.flush()

    async def for_sell(self, sell_trade_id: int) -> List[FifoAllocation]:
        stmt = (
            select(FifoAllocation)
            .where(FifoAllocation.sell_trade_id == sell_trade_id)
            .order_by(FifoAllocation.buy_date, FifoAllocation.buy_trade_id)
        )
        return list((await self.session.execute(stmt)).scalars())

    async def for_buy(self, buy_trade_id: int) -> List[FifoAllocation]:
        stmt = (
            select(FifoAllocation)
            .where(FifoAllocation.buy_trade_id == buy_trade_id)
            .order_by(FifoAllocation.sell_date, FifoAllocation.id)
        )
        return list((await self.session.execute(stmt)).scalars())

    async def for_trade(self, trade: Trade) -> List[FifoAllocation]:
        if trade.is_sell:
            return await self.for_sell(trade.id)
        return await self.for_buy(trade.id)

    async def closed_in_period(self, client_id: int, start: date, end: date) -> List[FifoAllocation]:
        stmt = (
            select(FifoAllocation)
            .where(
                FifoAllocation.client_id == client_id,
                FifoAllocation.sell_date >= start,
                FifoAllocation.sell_date <= end,
            )
            .order_by(FifoAllocation.sell_date, FifoAllocation.buy_date, FifoAllocation.id)
        )
        return list((await self.session.execute(stmt)).scalars())

    async def allocated_after(self, client_id: int, as_of: date) -> Dict[int, int]:
        """Quantity per buy lot consumed by sells dated after as_of."""
        stmt = (
            select(FifoAllocation.buy_trade_id, func.sum(FifoAllocation.quantity_allocated))
            .where(FifoAllocation.client_id == client_id, FifoAllocation.sell_date > as_of)
            .group_by(FifoAllocation.buy_trade_id)
        )
        return {buy_id: int(qty) for buy_id, qty in (await self.session.execute(stmt)).all()}

    async def delete_for_sell(self, sell_trade_id: int) -> int:
        result = await self.session.execute(
            delete(FifoAllocation).where(FifoAllocation.sell_trade_id == sell_trade_id)
        )
        return result.rowcount or 0

    async def realized_profit_loss(self, client_id: int) -> Decimal:
        stmt = select(func.coalesce(func.sum(FifoAllocation.profit_loss), 0)).where(
            FifoAllocation.client_id == client_id
        )
        return Decimal(str((await self.session.execute(stmt)).scalar_one()))


class BrokerageRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, client_id: int, period_key: str) -> Optional[BrokerageCalculation]:
        stmt = select(BrokerageCalculation).where(
            BrokerageCalculation.client_id == client_id,
            BrokerageCalculation.period_key == period_key,
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def exists(self, client_id: int, period_key: str) -> bool:
        stmt = select(exists().where(
            BrokerageCalculation.client_id == client_id,
            BrokerageCalculation.period_key == period_key,
        ))
        return bool((await self.session.execute(stmt)).scalar())

    async def any_for_period(self, period_key: str) -> bool:
        stmt = select(exists().where(BrokerageCalculation.period_key == period_key))
        return bool((await self.session.execute(stmt)).scalar())

    async def for_period(self, period_key: str) -> List[BrokerageCalculation]:
        stmt = select(BrokerageCalculation).where(BrokerageCalculation.period_key == period_key) \
            .order_by(BrokerageCalculation.client_id)
        return list((await self.session.execute(stmt)).scalars())

    async def finalized_covering(self, client_id: int, day: date) -> Optional[str]:
        """Key of a finalised calculation of this client whose window contains day."""
        stmt = (
            select(BrokerageCalculation.period_key)
            .where(
                BrokerageCalculation.client_id == client_id,
                BrokerageCalculation.period_start <= day,
                BrokerageCalculation.period_end >= day,
            )
            .order_by(BrokerageCalculation.period_end.desc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def details(self, calculation_id: int) -> List[BrokerageDetail]:
        stmt = select(BrokerageDetail).where(BrokerageDetail.calculation_id == calculation_id) \
            .order_by(BrokerageDetail.id)
        return list((await self.session.execute(stmt)).scalars())

    async def save(self, calculation: BrokerageCalculation, details: List[BrokerageDetail]) -> BrokerageCalculation:
        self.session.add(calculation)
        await self.session.flush()
        for detail in details:
            detail.calculation_id = calculation.id
        self.session.add_all(details)
        await self.session.flush()
        return calculation

    async def save_many(self, rows: List[Tuple[BrokerageCalculation, List[BrokerageDetail]]],
                        chunk_size: int) -> None:
        """Insert summaries, then their details in chunks of chunk_size."""
        for chunk in _chunks(rows, chunk_size):
            self.session.add_all([calc for calc, _ in chunk])
            await self.session.flush()

        pending: List[BrokerageDetail] = []
        for calc, details in rows:
            for detail in details:
                detail.calculation_id = calc.id
                pending.append(detail)
        for chunk in _chunks(pending, chunk_size):
            self.session.add_all(chunk)
            await self.session.flush()

    async def referenced_trade_ids(self, calculation_ids: Iterable[int]) -> List[int]:
        ids = list(calculation_ids)
        if not ids:
            return []
        stmt = select(BrokerageDetail.trade_id, BrokerageDetail.sell_trade_id) \
            .where(BrokerageDetail.calculation_id.in_(ids))
        trade_ids = set()
        for buy_id, sell_id in (await self.session.execute(stmt)).all():
            trade_ids.add(buy_id)
            if sell_id is not None:
                trade_ids.add(sell_id)
        return sorted(trade_ids)

    async def delete_calculations(self, calculation_ids: Iterable[int]) -> int:
        ids = list(calculation_ids)
        if not ids:
            return 0
        await self.session.execute(delete(BrokerageDetail).where(BrokerageDetail.calculation_id.in_(ids)))
        result = await self.session.execute(delete(BrokerageCalculation).where(BrokerageCalculation.id.in_(ids)))
        return result.rowcount or 0

    async def latest_lock_for_trades(self, trade_ids: Iterable[int]) -> Dict[int, str]:
        """Most recent remaining period key (by period end) referencing each trade."""
        ids = sorted(set(trade_ids))
        if not ids:
            return {}
        latest: Dict[int, Tuple[date, str]] = {}
        for column in (BrokerageDetail.trade_id, BrokerageDetail.sell_trade_id):
            stmt = (
                select(column, BrokerageCalculation.period_end, BrokerageCalculation.period_key)
                .join(BrokerageCalculation, BrokerageCalculation.id == BrokerageDetail.calculation_id)
                .where(column.in_(ids))
            )
            for trade_id, period_end, period_key in (await self.session.execute(stmt)).all():
                current = latest.get(trade_id)
                if current is None or period_end > current[0]:
                    latest[trade_id] = (period_end, period_key)
        return {trade_id: key for trade_id, (_, key) in latest.items()}


class ReferenceDataRepository:
    """Read access to the collaborators' tables plus the trading-period cache."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def client_exists(self, client_id: int) -> bool:
        stmt = select(exists().where(Client.id == client_id))
        return bool((await self.session.execute(stmt)).scalar())

    async def client_ids(self) -> List[int]:
        return list((await self.session.execute(select(Client.id).order_by(Client.id))).scalars())

    async def find_stock(self, symbol: str, exchange: Optional[str] = None,
                         preferred_exchange: Optional[str] = None) -> Optional[Stock]:
        stmt = select(Stock).where(Stock.symbol == symbol)
        if exchange:
            stmt = stmt.where(Stock.exchange == exchange)
        candidates = list((await self.session.execute(stmt.order_by(Stock.exchange))).scalars())
        if not candidates:
            return None
        for stock in candidates:
            if stock.exchange == preferred_exchange:
                return stock
        return candidates[0]

    async def price_snapshot(self) -> Dict[Tuple[str, str], Decimal]:
        stmt = select(Stock.symbol, Stock.exchange, Stock.current_price).where(Stock.current_price.isnot(None))
        return {(s, e): Decimal(str(p)) for s, e, p in (await self.session.execute(stmt)).all()}

    async def holidays(self, exchanges: Optional[Iterable[str]] = None) -> List[Tuple[date, str]]:
        stmt = select(Holiday.holiday_date, Holiday.exchange)
        if exchanges:
            stmt = stmt.where(Holiday.exchange.in_(list(exchanges)))
        return [(d, e) for d, e in (await self.session.execute(stmt.order_by(Holiday.holiday_date))).all()]

    async def get_trading_period(self, year: int, quarter: int) -> Optional[TradingPeriod]:
        stmt = select(TradingPeriod).where(
            and_(TradingPeriod.year == year, TradingPeriod.quarter_number == quarter)
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def upsert_trading_period(self, year: int, quarter: int, start: date, end: date,
                                    tradeable_days: int) -> TradingPeriod:
        row = await self.get_trading_period(year, quarter)
        if row is None:
            row = TradingPeriod(year=year, quarter_number=quarter, start_date=start, end_date=end,
                                tradeable_days=tradeable_days)
            self.session.add(row)
        else:
            row.start_date = start
            row.end_date = end
            row.tradeable_days = tradeable_days
        await self.session.flush()
        return row
