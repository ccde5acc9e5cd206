"""
Ledger error taxonomy.

Every error carries a ``context`` dict so callers (and the structured logger)
can report the offending ids without parsing the message.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for recoverable ledger failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class InsufficientShares(LedgerError):
    """Raised when open lots cannot cover a sell."""

    def __init__(self, available: int, requested: int, client_id=None, symbol: Optional[str] = None,
                 exchange: Optional[str] = None):
        self.available = available
        self.requested = requested
        msg = f"Insufficient shares: available {available}, requested {requested}"
        if symbol:
            msg += f" ({symbol}/{exchange})"
        super().__init__(msg, {
            'available': available,
            'requested': requested,
            'client_id': client_id,
            'symbol': symbol,
            'exchange': exchange,
        })


class StockNotFound(LedgerError):
    def __init__(self, symbol: str, exchange: Optional[str] = None):
        self.symbol = symbol
        self.exchange = exchange
        where = f" on {exchange}" if exchange else ""
        super().__init__(f"Stock {symbol}{where} not found", {'symbol': symbol, 'exchange': exchange})


class ClientNotFound(LedgerError):
    def __init__(self, client_id):
        self.client_id = client_id
        super().__init__(f"Client {client_id} not found", {'client_id': client_id})


class TradeNotFound(LedgerError):
    def __init__(self, trade_id):
        self.trade_id = trade_id
        super().__init__(f"Trade {trade_id} not found", {'trade_id': trade_id})


class AllocationConflict(LedgerError):
    """Raised when a lot is referenced by allocations that would be orphaned."""

    def __init__(self, trade_id, reason: str, allocation_ids=None):
        self.trade_id = trade_id
        self.allocation_ids = list(allocation_ids or [])
        super().__init__(f"Trade {trade_id}: {reason}", {
            'trade_id': trade_id,
            'allocation_ids': self.allocation_ids,
        })


class PeriodLocked(LedgerError):
    """Raised when a change would touch a finalised brokerage period."""

    def __init__(self, reason: str, trade_id=None, period_key: Optional[str] = None, client_id=None):
        self.trade_id = trade_id
        self.period_key = period_key
        self.client_id = client_id
        super().__init__(reason, {
            'trade_id': trade_id,
            'period_key': period_key,
            'client_id': client_id,
        })


class InvalidPeriod(LedgerError):
    def __init__(self, reason: str, **context):
        super().__init__(f"Invalid period: {reason}", context)


class TradeValidationError(LedgerError):
    """Raised for malformed trade input (non-positive quantity or price, bad side)."""

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid trade {field}={value!r}: {reason}", {'field': field, 'value': value})
