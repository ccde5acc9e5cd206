"""
Allocation Validator

Audits stored allocations against the FIFO quantity-conservation rules.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from sqlalchemy import select

from database_manager.database_session_manager import DatabaseSessionManager
from Shared_Utils.logger import get_component_logger
from Shared_Utils.precision import safe_decimal
from TableModels import FifoAllocation, Trade
from .models import ValidationResult


class AllocationValidator:
    """
    Validates FIFO allocations to ensure correctness.

    Checks:
    - Every allocated sell is matched for exactly its quantity (no gaps or excess)
    - Unallocated sells have no allocation rows
    - Each lot's allocations equal original minus remaining quantity
    - Temporal consistency (buy date <= sell date)
    - Stored values agree with quantity x price
    """

    def __init__(self, database_session_manager: DatabaseSessionManager, logger=None):
        self.db = database_session_manager
        self.logger = logger or get_component_logger('fifo_engine')

    async def validate(self, client_id: Optional[int] = None, strict: bool = False) -> ValidationResult:
        """
        Validate allocations, optionally for one client.

        Args:
            client_id: Restrict to one client's trades
            strict: If True, treat warnings as errors
        """
        self.logger.info(f"🔍 Validating allocations (client={client_id or 'all'}, strict={strict})")
        result = ValidationResult(is_valid=True)

        async with self.db.async_session() as session:
            trade_stmt = select(Trade)
            alloc_stmt = select(FifoAllocation)
            if client_id is not None:
                trade_stmt = trade_stmt.where(Trade.client_id == client_id)
                alloc_stmt = alloc_stmt.where(FifoAllocation.client_id == client_id)
            trades = list((await session.execute(trade_stmt)).scalars())
            allocations = list((await session.execute(alloc_stmt.order_by(FifoAllocation.id))).scalars())

        sells = [t for t in trades if t.is_sell]
        buys = [t for t in trades if t.is_buy]
        result.total_sells = len(sells)
        result.total_buys = len(buys)
        result.total_allocations = len(allocations)

        by_sell: Dict[int, int] = defaultdict(int)
        by_buy: Dict[int, int] = defaultdict(int)
        for a in allocations:
            by_sell[a.sell_trade_id] += a.quantity_allocated
            by_buy[a.buy_trade_id] += a.quantity_allocated

        self._check_sells(sells, by_sell, result)
        self._check_lots(buys, by_buy, result)
        self._check_allocations(allocations, result)

        result.total_profit_loss = sum((safe_decimal(a.profit_loss) for a in allocations), safe_decimal(0))

        if result.has_errors:
            result.is_valid = False
            self.logger.error("❌ Allocation validation FAILED")
        elif result.has_warnings and strict:
            result.is_valid = False
            self.logger.warning("⚠️  Allocation validation FAILED (strict mode)")
        else:
            self.logger.info("✅ Allocation validation PASSED")

        return result

    # =========================================================================
    # VALIDATION CHECKS
    # =========================================================================

    @staticmethod
    def _check_sells(sells: List[Trade], by_sell: Dict[int, int], result: ValidationResult):
        for sell in sells:
            allocated = by_sell.get(sell.id, 0)
            if not sell.sell_fully_allocated:
                if allocated:
                    result.over_allocated_sells += 1
                    result.add_error(f"Sell {sell.id} is not marked allocated but has {allocated} allocated")
                else:
                    result.add_warning(f"Sell {sell.id} has no allocations")
                continue
            if allocated < sell.quantity:
                result.under_allocated_sells += 1
                result.add_error(f"Sell {sell.id}: allocated {allocated} of {sell.quantity}")
            elif allocated > sell.quantity:
                result.over_allocated_sells += 1
                result.add_error(f"Sell {sell.id}: allocated {allocated} exceeds {sell.quantity}")

    @staticmethod
    def _check_lots(buys: List[Trade], by_buy: Dict[int, int], result: ValidationResult):
        for lot in buys:
            consumed = lot.original_quantity - lot.remaining_quantity
            allocated = by_buy.get(lot.id, 0)
            if consumed != allocated or lot.remaining_quantity < 0:
                result.inconsistent_lots += 1
                result.add_error(
                    f"Lot {lot.id}: original {lot.original_quantity} - remaining {lot.remaining_quantity} "
                    f"!= allocated {allocated}"
                )
            elif lot.is_fully_consumed != (lot.remaining_quantity == 0):
                result.add_warning(f"Lot {lot.id}: is_fully_consumed flag out of date")

    @staticmethod
    def _check_allocations(allocations: List[FifoAllocation], result: ValidationResult):
        for a in allocations:
            if a.buy_date > a.sell_date:
                result.temporal_violations += 1
                result.add_error(f"Allocation {a.id}: buy {a.buy_date} after sell {a.sell_date}")

            qty = a.quantity_allocated
            buy_value = qty * safe_decimal(a.buy_price)
            sell_value = qty * safe_decimal(a.sell_price)
            if (safe_decimal(a.buy_value) != buy_value
                    or safe_decimal(a.sell_value) != sell_value
                    or safe_decimal(a.profit_loss) != sell_value - buy_value):
                result.value_mismatches += 1
                result.add_error(f"Allocation {a.id}: stored values disagree with quantity x price")
