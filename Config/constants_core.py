"""
Core system constants shared across all modules.

These define fundamental ledger behavior and rarely change.
Changes to these values affect every brokerage calculation.
"""
from decimal import Decimal

# ============================================================================
# Precision
# ============================================================================

MONEY_QUANT = Decimal('0.01')
"""Fees and per-line amounts are rounded to paise"""

# ============================================================================
# Brokerage Defaults
# ============================================================================

DEFAULT_BROKERAGE_RATE = Decimal('10')
"""Percent of deployed capital charged per full period"""

CURRENCY_SYMBOL = '₹'

# ============================================================================
# Calendar
# ============================================================================

MIN_PERIOD_YEAR = 2000
MAX_PERIOD_YEAR = 2100

DEFAULT_EXCHANGES = ('NSE', 'BSE')
"""Listing exchanges; the first is the default for trades that name none"""

EXCHANGE_TIMEZONE = 'Asia/Kolkata'

WEEKMASK = 'Mon Tue Wed Thu Fri'

# ============================================================================
# System Limits (Hard Limits)
# ============================================================================

ACCRUAL_BATCH_SIZE = 10
"""Clients computed concurrently during a bulk run"""

DETAIL_INSERT_CHUNK = 500
"""Rows per add_all() flush when persisting a bulk run"""

DB_POOL_MAX_SIZE = 50
"""Maximum database connection pool size"""
