"""
Critical Path Tests: FIFO Allocation

Tests the FIFO (First-In-First-Out) matching of sells against buy lots and
its exact reversal. Realized P&L and every brokerage line depend on it.

Priority: 🔴 CRITICAL (P&L and brokerage accuracy)
"""

import asyncio
import pytest
from decimal import Decimal
from datetime import date

from Shared_Utils.ledger_exceptions import AllocationConflict, InsufficientShares
from fifo_engine import plan_fifo, build_allocation, total_profit_loss


class TestFifoPlanning:
    """Pure lot selection, no database"""

    @pytest.mark.critical
    def test_oldest_lots_consumed_first(self, three_lots):
        """
        Test: Sell spans two lots

        Given: Lots 50 @ 10, 30 @ 11, 40 @ 12 bought on consecutive days
        And: Sell 70
        Then: 50 come from the first lot and 20 from the second
        And: The third lot is untouched
        """
        plan = plan_fifo(three_lots, 70)

        assert [(take.lot.id, take.quantity) for take in plan] == [(1, 50), (2, 20)]
        assert plan[0].exhausts_lot
        assert not plan[1].exhausts_lot

    @pytest.mark.critical
    def test_input_order_does_not_matter(self, three_lots):
        """
        Given: The same lots passed newest first
        Then: The plan still follows trade date
        """
        plan = plan_fifo(list(reversed(three_lots)), 55)

        assert [(take.lot.id, take.quantity) for take in plan] == [(1, 50), (2, 5)]

    @pytest.mark.critical
    def test_same_day_lots_ordered_by_id(self, make_lot):
        """
        Given: Two lots on the same date, ids 9 and 4
        Then: Lot 4 (inserted earlier) is consumed first
        """
        lots = [make_lot(9, 10, date(2025, 6, 2)), make_lot(4, 10, date(2025, 6, 2))]

        plan = plan_fifo(lots, 12)

        assert [(take.lot.id, take.quantity) for take in plan] == [(4, 10), (9, 2)]

    @pytest.mark.critical
    def test_insufficient_shares_is_all_or_nothing(self, make_lot):
        """
        Test: Sell exceeds open quantity

        Given: One lot of 100
        And: Sell 150
        Then: InsufficientShares(available=100, requested=150)
        And: The lot keeps all 100 shares
        """
        lot = make_lot(1, 100, date(2025, 6, 1))

        with pytest.raises(InsufficientShares) as exc_info:
            plan_fifo([lot], 150)

        assert exc_info.value.available == 100
        assert exc_info.value.requested == 150
        assert lot.remaining_quantity == 100

    @pytest.mark.critical
    def test_lots_after_sell_date_are_ignored(self, make_lot):
        """
        Given: Lot A (Jun 1, 30 shares) and lot B (Jun 20, 100 shares)
        And: Sell 50 dated Jun 10
        Then: Only lot A is eligible, so 30 are available
        """
        lots = [make_lot(1, 30, date(2025, 6, 1)), make_lot(2, 100, date(2025, 6, 20))]

        with pytest.raises(InsufficientShares) as exc_info:
            plan_fifo(lots, 50, as_of=date(2025, 6, 10))

        assert exc_info.value.available == 30

    @pytest.mark.critical
    def test_exhausted_lots_skipped(self, make_lot):
        lots = [make_lot(1, 50, date(2025, 6, 1), remaining=0), make_lot(2, 50, date(2025, 6, 2))]

        plan = plan_fifo(lots, 20)

        assert [(take.lot.id, take.quantity) for take in plan] == [(2, 20)]


class TestAllocationValues:
    """Values stored on each allocation row"""

    @pytest.mark.critical
    def test_allocation_profit(self, make_lot, make_sell):
        """
        Given: Buy 40 @ 10 on Jun 1
        And: Sell 40 @ 12 on Jun 16
        Then: buy value 400, sell value 480, P&L 80, held 15 days
        """
        lot = make_lot(1, 100, date(2025, 6, 1), '10')
        sell = make_sell(2, 40, date(2025, 6, 16), '12')

        allocation = build_allocation(lot, sell, 40)

        assert allocation.buy_value == Decimal('400')
        assert allocation.sell_value == Decimal('480')
        assert allocation.profit_loss == Decimal('80')
        assert allocation.holding_days == 15
        assert allocation.buy_trade_id == 1
        assert allocation.sell_trade_id == 2

    @pytest.mark.critical
    def test_allocation_loss(self, make_lot, make_sell):
        lot = make_lot(1, 10, date(2025, 6, 1), '1450.50')
        sell = make_sell(2, 10, date(2025, 6, 3), '1400.25')

        allocation = build_allocation(lot, sell, 10)

        assert allocation.profit_loss == Decimal('-502.50')

    @pytest.mark.critical
    def test_total_profit_loss_sums_rows(self, three_lots, make_sell):
        sell = make_sell(10, 70, date(2025, 6, 10), '12')
        allocations = [build_allocation(t.lot, sell, t.quantity) for t in plan_fifo(three_lots, 70)]

        # (12 - 10) * 50 + (12 - 11) * 20
        assert total_profit_loss(allocations) == Decimal('120')


class TestLedgerAllocation:
    """Allocation and reversal through the ledger service"""

    async def _record_three_lots(self, service, buy):
        return [
            await service.record_trade(buy(50, date(2025, 6, 2), '10')),
            await service.record_trade(buy(30, date(2025, 6, 3), '11')),
            await service.record_trade(buy(40, date(2025, 6, 4), '12')),
        ]

    @pytest.mark.critical
    async def test_sell_allocates_across_lots(self, service, buy, sell):
        """
        Given: Lots 50 @ 10, 30 @ 11, 40 @ 12
        And: Sell 70 @ 12
        Then: Allocations 50 from lot 1 and 20 from lot 2
        And: Lot 2 keeps 10, lot 3 keeps 40
        And: Realized P&L is 120
        """
        lots = await self._record_three_lots(service, buy)

        trade = await service.record_trade(sell(70, date(2025, 6, 10)))
        detail = await service.get_trade_with_allocations(trade.id)

        assert trade.sell_fully_allocated
        assert [(a.buy_trade_id, a.quantity_allocated) for a in detail.allocations] == [
            (lots[0].id, 50), (lots[1].id, 20)
        ]
        assert detail.allocated_quantity == 70

        remaining = [(await service.get_trade_with_allocations(lot.id)).trade.remaining_quantity for lot in lots]
        assert remaining == [0, 10, 40]
        assert await service.realized_profit_loss(1) == Decimal('120')

    @pytest.mark.critical
    async def test_insufficient_shares_leaves_no_trace(self, service, buy, sell):
        """
        Test: All-or-nothing sell

        Given: Client 1 holds 100 INFY
        When: A sell of 150 is recorded
        Then: InsufficientShares(available=100, requested=150) is raised
        And: No sell row, no allocation, lot still holds 100
        """
        lot = await service.record_trade(buy(100, date(2025, 6, 1)))

        with pytest.raises(InsufficientShares) as exc_info:
            await service.record_trade(sell(150, date(2025, 6, 16)))

        assert exc_info.value.context['available'] == 100
        assert exc_info.value.context['requested'] == 150
        assert (await service.get_trade_with_allocations(lot.id)).trade.remaining_quantity == 100

        audit = await service.validate_allocations(client_id=1)
        assert audit.total_sells == 0
        assert audit.total_allocations == 0
        assert audit.is_valid

    @pytest.mark.critical
    async def test_lots_are_per_client_and_exchange(self, service, buy, sell):
        """
        Given: Client 2 holds INFY and client 1 holds RELIANCE on NSE
        Then: Client 1 cannot sell INFY, nor RELIANCE on BSE
        """
        await service.record_trade(buy(100, date(2025, 6, 1), client_id=2))
        await service.record_trade(buy(100, date(2025, 6, 1), symbol='RELIANCE', exchange='NSE'))

        with pytest.raises(InsufficientShares):
            await service.record_trade(sell(10, date(2025, 6, 5)))
        with pytest.raises(InsufficientShares) as exc_info:
            await service.record_trade(sell(10, date(2025, 6, 5), symbol='RELIANCE', exchange='BSE'))
        assert exc_info.value.available == 0

    @pytest.mark.critical
    async def test_delete_sell_restores_lots(self, service, buy, sell):
        """
        Test: Reversal round trip

        Given: Sell 70 allocated across two lots
        When: The sell is deleted
        Then: Every lot is back to its original quantity
        And: No allocations remain
        """
        lots = await self._record_three_lots(service, buy)
        trade = await service.record_trade(sell(70, date(2025, 6, 10)))

        assert await service.reverse_and_mutate_trade(trade.id) is None

        for lot in lots:
            restored = (await service.get_trade_with_allocations(lot.id)).trade
            assert restored.remaining_quantity == restored.original_quantity
            assert not restored.is_fully_consumed
        audit = await service.validate_allocations()
        assert audit.total_allocations == 0
        assert audit.is_valid
        assert await service.realized_profit_loss(1) == Decimal('0')

    @pytest.mark.critical
    async def test_consumed_buy_cannot_be_reversed(self, service, buy, sell):
        """
        Given: Lot 1 is consumed by a sell
        When: Lot 1 is deleted or edited
        Then: AllocationConflict is raised and the allocation survives
        """
        lots = await self._record_three_lots(service, buy)
        await service.record_trade(sell(20, date(2025, 6, 10)))

        with pytest.raises(AllocationConflict) as exc_info:
            await service.reverse_and_mutate_trade(lots[0].id)
        assert len(exc_info.value.allocation_ids) == 1

        detail = await service.get_trade_with_allocations(lots[0].id)
        assert detail.allocated_quantity == 20
        assert detail.trade.remaining_quantity == 30

    @pytest.mark.critical
    async def test_concurrent_sells_never_oversell(self, service, buy, sell):
        """
        Given: One lot of 100
        When: Two sells of 60 arrive together
        Then: Exactly one succeeds and the other gets InsufficientShares(40, 60)
        """
        await service.record_trade(buy(100, date(2025, 6, 1), exchange='NSE'))

        results = await asyncio.gather(
            service.record_trade(sell(60, date(2025, 6, 5), exchange='NSE')),
            service.record_trade(sell(60, date(2025, 6, 5), exchange='NSE')),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientShares)
        assert (failures[0].available, failures[0].requested) == (40, 60)
        assert len(service.locks) == 0

        audit = await service.validate_allocations()
        assert audit.is_valid
        assert audit.total_allocations == 1
