"""
Critical Path Tests: Period Locks

Once a client's brokerage period is finalised, the trades behind it must not
change. Deleting the calculation is the only way to reopen them.

Priority: 🔴 CRITICAL (billed amounts must stay reproducible)
"""

import pytest
from decimal import Decimal
from datetime import date

from Shared_Utils.ledger_exceptions import PeriodLocked
from trade_ledger import TradeChanges


async def locked_period(service, trade_id):
    return (await service.get_trade_with_allocations(trade_id)).trade.locked_period


class TestFinalisedPeriod:

    @pytest.mark.critical
    async def test_rerun_is_refused(self, service, buy):
        """
        Given: June is finalised for client 1
        When: June runs again for client 1
        Then: PeriodLocked naming 2025-06
        """
        await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.run_accrual('2025-06', client_id=1)

        with pytest.raises(PeriodLocked) as exc_info:
            await service.run_accrual('2025-06', client_id=1)

        assert exc_info.value.period_key == '2025-06'

    @pytest.mark.critical
    async def test_locked_trades_are_immutable(self, service, buy, sell):
        """
        Given: Buy and sell in June, June finalised
        Then: Editing the buy, deleting the sell and back-dating a new trade
              into June all raise PeriodLocked
        And: Nothing changed
        """
        lot = await service.record_trade(buy(100, date(2025, 6, 1)))
        sold = await service.record_trade(sell(40, date(2025, 6, 16)))
        await service.run_accrual('2025-06', client_id=1)

        with pytest.raises(PeriodLocked):
            await service.reverse_and_mutate_trade(lot.id, TradeChanges(price=Decimal('9')))
        with pytest.raises(PeriodLocked):
            await service.reverse_and_mutate_trade(sold.id)
        with pytest.raises(PeriodLocked):
            await service.record_trade(buy(5, date(2025, 6, 20)))

        detail = await service.get_trade_with_allocations(sold.id)
        assert detail.allocated_quantity == 40
        assert (await service.get_trade_with_allocations(lot.id)).trade.price == Decimal('10')

    @pytest.mark.critical
    async def test_unlocked_trade_cannot_move_into_finalised_period(self, service, buy):
        """
        Given: June finalised for client 1, a July buy that is not locked
        When: The July buy is re-dated to June 20
        Then: PeriodLocked
        """
        await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.run_accrual('2025-06', client_id=1)
        july = await service.record_trade(buy(10, date(2025, 7, 2)))

        with pytest.raises(PeriodLocked):
            await service.reverse_and_mutate_trade(july.id, TradeChanges(trade_date=date(2025, 6, 20)))

        assert (await service.get_trade_with_allocations(july.id)).trade.trade_date == date(2025, 7, 2)

    @pytest.mark.critical
    async def test_later_sell_may_consume_locked_lot(self, service, buy, sell):
        """
        Given: The June lot is locked
        When: A July sell consumes it
        Then: The sell is allocated
        But: Deleting it raises PeriodLocked until June is deleted
        """
        lot = await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.run_accrual('2025-06', client_id=1)

        july_sell = await service.record_trade(sell(30, date(2025, 7, 10)))
        assert july_sell.sell_fully_allocated

        with pytest.raises(PeriodLocked) as exc_info:
            await service.reverse_and_mutate_trade(july_sell.id)
        assert exc_info.value.trade_id == lot.id

        assert await service.delete_accrual('2025-06', client_id=1) == 1
        assert await locked_period(service, lot.id) is None

        await service.reverse_and_mutate_trade(july_sell.id)
        assert (await service.get_trade_with_allocations(lot.id)).trade.remaining_quantity == 100


class TestLockBookkeeping:

    @pytest.mark.critical
    async def test_lock_follows_latest_period(self, service, buy):
        """
        Given: A lot held through June and July, both finalised
        Then: It is locked by 2025-07
        When: July is deleted
        Then: It falls back to 2025-06
        When: June is deleted
        Then: It is unlocked
        """
        lot = await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.run_accrual('2025-06', client_id=1)
        await service.run_accrual('2025-07', client_id=1)
        assert await locked_period(service, lot.id) == '2025-07'

        await service.delete_accrual('2025-07', client_id=1)
        assert await locked_period(service, lot.id) == '2025-06'

        await service.delete_accrual('2025-06', client_id=1)
        assert await locked_period(service, lot.id) is None

    @pytest.mark.critical
    async def test_delete_then_rerun_reproduces_amount(self, service, buy, sell):
        await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.record_trade(sell(40, date(2025, 6, 16)))

        first = await service.run_accrual('2025-06', client_id=1)
        await service.delete_accrual('2025-06', client_id=1)
        second = await service.run_accrual('2025-06', client_id=1)

        assert first.brokerage_amount == second.brokerage_amount == Decimal('81.33')

    async def test_delete_missing_calculation_returns_zero(self, service):
        assert await service.delete_accrual('2025-06', client_id=1) == 0
        assert await service.delete_accrual('2025-06') == 0

    async def test_other_clients_unaffected(self, service, buy):
        """A finalised period of client 1 does not block client 2."""
        await service.record_trade(buy(100, date(2025, 6, 1)))
        await service.run_accrual('2025-06', client_id=1)

        trade = await service.record_trade(buy(5, date(2025, 6, 20), client_id=2))

        assert trade.id is not None
        assert trade.locked_period is None
