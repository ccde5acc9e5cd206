"""
Shared test fixtures.

Every database test gets its own SQLite file under tmp_path, seeded with a
few clients, NSE/BSE stocks and the 2025 Q1 NSE holidays.
"""

import os

os.environ.setdefault('LOG_TO_FILE', 'false')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from datetime import date
from decimal import Decimal

import pytest

from TableModels import Client, Holiday, Stock
from calendar_service import CalendarService
from database_manager.database_session_manager import DatabaseSessionManager
from trade_ledger import LedgerService, TradeInput


NSE_HOLIDAYS_Q1_2025 = [
    (date(2025, 2, 26), 'NSE'),  # Mahashivratri
    (date(2025, 3, 14), 'NSE'),  # Holi
    (date(2025, 3, 31), 'NSE'),  # Id-Ul-Fitr
]


@pytest.fixture
async def db(tmp_path):
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    yield manager
    await manager.disconnect()


@pytest.fixture
async def seeded_db(db):
    async with db.unit_of_work() as uow:
        uow.session.add_all([
            Client(id=1, name='Asha Rao'),
            Client(id=2, name='Vikram Shah'),
            Client(id=3, name='Meera Iyer'),
        ])
        uow.session.add_all([
            Stock(symbol='INFY', exchange='NSE', name='Infosys'),
            Stock(symbol='TCS', exchange='NSE', name='Tata Consultancy', current_price=Decimal('20')),
            Stock(symbol='RELIANCE', exchange='NSE', name='Reliance Industries'),
            Stock(symbol='RELIANCE', exchange='BSE', name='Reliance Industries'),
            Stock(symbol='SBIN', exchange='BSE', name='State Bank of India'),
        ])
        uow.session.add_all([
            Holiday(holiday_date=day, exchange=exchange) for day, exchange in NSE_HOLIDAYS_Q1_2025
        ])
    return db


@pytest.fixture
def calendar():
    return CalendarService(NSE_HOLIDAYS_Q1_2025)


@pytest.fixture
def service(seeded_db, calendar):
    return LedgerService(seeded_db, calendar)


@pytest.fixture
def buy():
    """Factory for BUY inputs (client 1, INFY, price 10 unless overridden)."""
    def make(quantity, trade_date, price='10', client_id=1, symbol='INFY', exchange=None):
        return TradeInput(client_id, symbol, 'BUY', quantity, Decimal(price), trade_date, exchange=exchange)
    return make


@pytest.fixture
def sell():
    """Factory for SELL inputs (client 1, INFY, price 12 unless overridden)."""
    def make(quantity, trade_date, price='12', client_id=1, symbol='INFY', exchange=None):
        return TradeInput(client_id, symbol, 'SELL', quantity, Decimal(price), trade_date, exchange=exchange)
    return make
