"""
Trade Ledger

Records client trades, keeps FIFO state consistent across edits, and exposes
the service facade used by the transport layer.

Usage:
    from trade_ledger import LedgerService, TradeInput

    service = LedgerService(db, calendar)
    trade = await service.record_trade(TradeInput(7, 'INFY', 'BUY', 100, Decimal('1450'), date(2025, 3, 3)))
"""

from .key_locks import KeyedLockArena, lot_key
from .ledger import TradeLedger
from .ledger_service import LedgerService
from .models import TradeChanges, TradeInput, TradeWithAllocations

__all__ = [
    'KeyedLockArena',
    'lot_key',
    'TradeLedger',
    'LedgerService',
    'TradeChanges',
    'TradeInput',
    'TradeWithAllocations',
]
