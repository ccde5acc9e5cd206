"""Recording, editing and deleting trades through the ledger service."""

import pytest
from decimal import Decimal
from datetime import date, datetime

import pytz

from Shared_Utils.ledger_exceptions import (
    ClientNotFound,
    InsufficientShares,
    StockNotFound,
    TradeNotFound,
    TradeValidationError,
)
from trade_ledger import TradeChanges, TradeInput


class TestTradeInput:

    def test_normalises_fields(self):
        data = TradeInput(1, ' infy ', 'buy', 10, '1450.5', '2025-06-02', exchange='nse').normalized()

        assert data.symbol == 'INFY'
        assert data.side == 'BUY'
        assert data.exchange == 'NSE'
        assert data.price == Decimal('1450.5')
        assert data.trade_date == date(2025, 6, 2)
        assert data.net_amount == Decimal('14505.0')

    def test_aware_timestamp_uses_exchange_date(self):
        # 20:00 UTC on Jun 2 is 01:30 IST on Jun 3
        stamp = pytz.utc.localize(datetime(2025, 6, 2, 20, 0))

        data = TradeInput(1, 'INFY', 'BUY', 10, Decimal('10'), stamp).normalized('Asia/Kolkata')

        assert data.trade_date == date(2025, 6, 3)

    @pytest.mark.parametrize('field, kwargs', [
        ('quantity', {'quantity': 0}),
        ('quantity', {'quantity': -5}),
        ('quantity', {'quantity': 2.5}),
        ('quantity', {'quantity': True}),
        ('price', {'price': Decimal('0')}),
        ('price', {'price': 'abc'}),
        ('side', {'side': 'HOLD'}),
        ('symbol', {'symbol': '  '}),
        ('trade_date', {'trade_date': 'not-a-date'}),
    ])
    def test_rejects_malformed_input(self, field, kwargs):
        values = dict(client_id=1, symbol='INFY', side='BUY', quantity=10,
                      price=Decimal('10'), trade_date=date(2025, 6, 2))
        values.update(kwargs)

        with pytest.raises(TradeValidationError) as exc_info:
            TradeInput(**values).normalized()

        assert exc_info.value.field == field


class TestRecordTrade:

    async def test_buy_opens_a_lot(self, service, buy):
        trade = await service.record_trade(buy(100, date(2025, 6, 2)))

        assert trade.id is not None
        assert trade.exchange == 'NSE'
        assert trade.remaining_quantity == 100
        assert trade.original_quantity == 100
        assert not trade.is_fully_consumed
        assert trade.net_amount == Decimal('1000')

    async def test_default_exchange_preferred(self, service, buy):
        """RELIANCE is listed on NSE and BSE; with no exchange given NSE wins."""
        trade = await service.record_trade(buy(10, date(2025, 6, 2), symbol='RELIANCE'))

        assert trade.exchange == 'NSE'

    async def test_single_listing_used(self, service, buy):
        trade = await service.record_trade(buy(10, date(2025, 6, 2), symbol='SBIN'))

        assert trade.exchange == 'BSE'

    async def test_unknown_stock(self, service, buy):
        with pytest.raises(StockNotFound):
            await service.record_trade(buy(10, date(2025, 6, 2), symbol='NOPE'))
        with pytest.raises(StockNotFound):
            await service.record_trade(buy(10, date(2025, 6, 2), symbol='SBIN', exchange='NSE'))

    async def test_unknown_client(self, service, buy):
        with pytest.raises(ClientNotFound):
            await service.record_trade(buy(10, date(2025, 6, 2), client_id=42))

    async def test_full_sell_consumes_lot(self, service, buy, sell):
        lot = await service.record_trade(buy(100, date(2025, 6, 2)))
        await service.record_trade(sell(100, date(2025, 6, 9)))

        consumed = (await service.get_trade_with_allocations(lot.id)).trade
        assert consumed.remaining_quantity == 0
        assert consumed.is_fully_consumed


class TestMutateTrade:

    async def test_update_buy_keeps_id(self, service, buy):
        lot = await service.record_trade(buy(100, date(2025, 6, 2)))

        updated = await service.reverse_and_mutate_trade(lot.id, TradeChanges(quantity=120, price=Decimal('11')))

        assert updated.id == lot.id
        assert updated.quantity == 120
        assert updated.remaining_quantity == 120
        assert updated.net_amount == Decimal('1320')

    async def test_update_sell_reallocates(self, service, buy, sell):
        """
        Given: Lots 50 and 50, a sell of 30
        When: The sell grows to 80
        Then: It is re-matched 50 + 30 and keeps its id
        """
        first = await service.record_trade(buy(50, date(2025, 6, 2)))
        second = await service.record_trade(buy(50, date(2025, 6, 3)))
        sold = await service.record_trade(sell(30, date(2025, 6, 9)))

        await service.reverse_and_mutate_trade(sold.id, TradeChanges(quantity=80))

        detail = await service.get_trade_with_allocations(sold.id)
        assert [(a.buy_trade_id, a.quantity_allocated) for a in detail.allocations] == [
            (first.id, 50), (second.id, 30)
        ]
        audit = await service.validate_allocations(client_id=1)
        assert audit.is_valid

    async def test_failed_update_rolls_back(self, service, buy, sell):
        """Growing a sell past what is held leaves the original allocation in place."""
        await service.record_trade(buy(50, date(2025, 6, 2)))
        sold = await service.record_trade(sell(30, date(2025, 6, 9)))

        with pytest.raises(InsufficientShares):
            await service.reverse_and_mutate_trade(sold.id, TradeChanges(quantity=80))

        detail = await service.get_trade_with_allocations(sold.id)
        assert detail.trade.quantity == 30
        assert detail.allocated_quantity == 30

    async def test_sell_moved_before_its_lot(self, service, buy, sell):
        await service.record_trade(buy(50, date(2025, 6, 5)))
        sold = await service.record_trade(sell(30, date(2025, 6, 9)))

        with pytest.raises(InsufficientShares):
            await service.reverse_and_mutate_trade(sold.id, TradeChanges(trade_date=date(2025, 6, 1)))

    async def test_delete_buy(self, service, buy):
        lot = await service.record_trade(buy(50, date(2025, 6, 5)))

        await service.reverse_and_mutate_trade(lot.id)

        with pytest.raises(TradeNotFound):
            await service.get_trade_with_allocations(lot.id)

    async def test_unknown_trade(self, service):
        with pytest.raises(TradeNotFound):
            await service.reverse_and_mutate_trade(404)
        with pytest.raises(TradeNotFound):
            await service.reverse_and_mutate_trade(404, TradeChanges(quantity=1))

    async def test_realized_pnl_unknown_client(self, service):
        with pytest.raises(ClientNotFound):
            await service.realized_profit_loss(42)
