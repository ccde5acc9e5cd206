"""
Critical Path Test Fixtures

Shared fixtures for money-critical path testing: in-memory trade rows for
the pure FIFO planner and sample positions for the proration formula.
"""

import pytest
from decimal import Decimal
from datetime import date

from TableModels import Trade


@pytest.fixture
def make_lot():
    """Transient BUY row; nothing is persisted."""
    def make(trade_id, quantity, trade_date, price='10', remaining=None):
        return Trade(
            id=trade_id,
            client_id=1,
            symbol='INFY',
            exchange='NSE',
            side='BUY',
            quantity=quantity,
            price=Decimal(price),
            trade_date=trade_date,
            net_amount=quantity * Decimal(price),
            original_quantity=quantity,
            remaining_quantity=quantity if remaining is None else remaining,
            is_fully_consumed=remaining == 0,
            sell_fully_allocated=False,
        )
    return make


@pytest.fixture
def make_sell():
    def make(trade_id, quantity, trade_date, price='12'):
        return Trade(
            id=trade_id,
            client_id=1,
            symbol='INFY',
            exchange='NSE',
            side='SELL',
            quantity=quantity,
            price=Decimal(price),
            trade_date=trade_date,
            net_amount=quantity * Decimal(price),
            original_quantity=quantity,
            remaining_quantity=0,
            is_fully_consumed=False,
            sell_fully_allocated=False,
        )
    return make


@pytest.fixture
def three_lots(make_lot):
    """50 @ 10 (Jun 2), 30 @ 11 (Jun 3), 40 @ 12 (Jun 4)."""
    return [
        make_lot(1, 50, date(2025, 6, 2), '10'),
        make_lot(2, 30, date(2025, 6, 3), '11'),
        make_lot(3, 40, date(2025, 6, 4), '12'),
    ]
