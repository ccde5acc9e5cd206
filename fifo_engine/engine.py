"""
FIFO Allocator

Matches each SELL against the client's open BUY lots for the same
symbol/exchange, oldest first, and can undo that matching exactly.
Both operations run inside the caller's unit of work and never commit.
"""

from typing import Iterable, List

from Shared_Utils.ledger_exceptions import AllocationConflict, InsufficientShares, PeriodLocked
from Shared_Utils.logger import get_component_logger, log_context
from Shared_Utils.precision import safe_decimal
from TableModels import FifoAllocation, Trade
from database_manager.unit_of_work import UnitOfWork
from .models import AllocationResult, LotTake, ReversalResult


def plan_fifo(lots: Iterable[Trade], quantity: int, as_of=None) -> List[LotTake]:
    """
    Decide how much to take from each lot to cover quantity.

    Lots with nothing left, or traded after as_of, are ignored. The rest are
    consumed in (trade_date, id) order. Raises InsufficientShares without
    touching any lot when the eligible total falls short.
    """
    eligible = sorted(
        (lot for lot in lots
         if lot.remaining_quantity > 0 and (as_of is None or lot.trade_date <= as_of)),
        key=lambda lot: (lot.trade_date, lot.id),
    )
    available = sum(lot.remaining_quantity for lot in eligible)
    if available < quantity:
        raise InsufficientShares(available=available, requested=quantity)

    plan = []
    to_sell = quantity
    for lot in eligible:
        if to_sell == 0:
            break
        take = min(to_sell, lot.remaining_quantity)
        plan.append(LotTake(lot=lot, quantity=take))
        to_sell -= take
    return plan


def build_allocation(lot: Trade, sell: Trade, quantity: int) -> FifoAllocation:
    buy_price = safe_decimal(lot.price)
    sell_price = safe_decimal(sell.price)
    buy_value = quantity * buy_price
    sell_value = quantity * sell_price
    return FifoAllocation(
        sell_trade_id=sell.id,
        buy_trade_id=lot.id,
        client_id=sell.client_id,
        symbol=sell.symbol,
        exchange=sell.exchange,
        quantity_allocated=quantity,
        buy_price=buy_price,
        sell_price=sell_price,
        buy_date=lot.trade_date,
        sell_date=sell.trade_date,
        buy_value=buy_value,
        sell_value=sell_value,
        profit_loss=sell_value - buy_value,
        holding_days=(sell.trade_date - lot.trade_date).days,
    )


class FifoAllocator:
    """
    FIFO lot matching for sells.

    Usage:
        allocator = FifoAllocator()
        async with db.unit_of_work() as uow:
            result = await allocator.allocate(uow, sell_trade)
    """

    def __init__(self, logger=None):
        self.logger = logger or get_component_logger('fifo_engine')

    async def allocate(self, uow: UnitOfWork, sell: Trade) -> AllocationResult:
        """
        Consume open lots for a persisted, unallocated SELL.

        Locked lots are still consumable. On InsufficientShares nothing has
        been mutated; the caller's unit of work rolls back the sell itself.
        """
        if not sell.is_sell:
            raise AllocationConflict(sell.id, "only SELL trades can be allocated")
        if sell.sell_fully_allocated:
            raise AllocationConflict(sell.id, "sell is already allocated")

        with log_context(client_id=sell.client_id, symbol=sell.symbol, exchange=sell.exchange):
            lots = await uow.trades.open_lots(sell.client_id, sell.symbol, sell.exchange, sell.trade_date)
            try:
                plan = plan_fifo(lots, sell.quantity, as_of=sell.trade_date)
            except InsufficientShares as e:
                self.logger.warning(
                    f"⚠️ Sell {sell.id} rejected: {e.available} available, {e.requested} requested"
                )
                raise InsufficientShares(
                    available=e.available, requested=e.requested,
                    client_id=sell.client_id, symbol=sell.symbol, exchange=sell.exchange,
                ) from None

            result = AllocationResult(sell_trade_id=sell.id)
            for take in plan:
                lot = take.lot
                allocation = build_allocation(lot, sell, take.quantity)
                result.allocations.append(allocation)
                result.consumed_lots[lot.id] = take.quantity
                result.total_profit_loss += allocation.profit_loss

                lot.remaining_quantity -= take.quantity
                lot.is_fully_consumed = lot.remaining_quantity == 0

            sell.sell_fully_allocated = True
            await uow.allocations.add_all(result.allocations)

            self.logger.allocate(
                f"✅ Sell {sell.id}: {sell.quantity} shares from {len(plan)} lot(s), "
                f"P&L ₹{result.total_profit_loss:,.2f}"
            )
        return result

    async def reverse(self, uow: UnitOfWork, trade: Trade) -> ReversalResult:
        """
        Undo a trade's FIFO effects so it can be edited or deleted.

        BUY: refuses while any allocation consumes it. SELL: restores every
        consumed lot and drops the allocation rows; refuses if a consumed lot
        is locked by a brokerage period. Reversing an unallocated sell is a no-op.
        """
        result = ReversalResult(trade_id=trade.id, side=trade.side)

        if trade.is_buy:
            allocations = await uow.allocations.for_buy(trade.id)
            if allocations:
                raise AllocationConflict(
                    trade.id,
                    f"buy lot is consumed by {len(allocations)} allocation(s); reverse those sells first",
                    allocation_ids=[a.id for a in allocations],
                )
            return result

        allocations = await uow.allocations.for_sell(trade.id)
        if not allocations:
            trade.sell_fully_allocated = False
            return result

        lots = await uow.trades.get_many((a.buy_trade_id for a in allocations), for_update=True)
        for allocation in allocations:
            lot = lots[allocation.buy_trade_id]
            if lot.locked_period:
                raise PeriodLocked(
                    f"Buy lot {lot.id} is locked by brokerage period {lot.locked_period}",
                    trade_id=lot.id, period_key=lot.locked_period, client_id=lot.client_id,
                )

        for allocation in allocations:
            lot = lots[allocation.buy_trade_id]
            lot.remaining_quantity += allocation.quantity_allocated
            lot.is_fully_consumed = False
            result.restored_lots[lot.id] = result.restored_lots.get(lot.id, 0) + allocation.quantity_allocated

        result.allocations_removed = await uow.allocations.delete_for_sell(trade.id)
        trade.sell_fully_allocated = False
        await uow.flush()

        self.logger.reverse(
            f"↩️ Sell {trade.id}: restored {sum(result.restored_lots.values())} shares "
            f"to {len(result.restored_lots)} lot(s)",
            extra={'client_id': trade.client_id, 'symbol': trade.symbol},
        )
        return result

    async def realized_profit_loss(self, uow: UnitOfWork, client_id: int):
        return await uow.allocations.realized_profit_loss(client_id)


def total_profit_loss(allocations: Iterable[FifoAllocation]):
    total = safe_decimal(0)
    for a in allocations:
        total += safe_decimal(a.profit_loss)
    return total
