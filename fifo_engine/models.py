"""
Data models for the FIFO allocator.

Defines the result structures returned by allocation, reversal and validation.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from TableModels import FifoAllocation, Trade


@dataclass
class LotTake:
    """How much of one buy lot a sell will consume."""

    lot: Trade
    quantity: int

    @property
    def exhausts_lot(self) -> bool:
        return self.quantity == self.lot.remaining_quantity


@dataclass
class AllocationResult:
    """
    Result of allocating one sell.

    consumed_lots maps buy trade id to the quantity taken from it.
    """

    sell_trade_id: int
    allocations: List[FifoAllocation] = field(default_factory=list)
    consumed_lots: Dict[int, int] = field(default_factory=dict)
    total_profit_loss: Decimal = Decimal("0")

    @property
    def quantity_allocated(self) -> int:
        return sum(a.quantity_allocated for a in self.allocations)

    def __str__(self) -> str:
        return (
            f"AllocationResult(sell {self.sell_trade_id}: {self.quantity_allocated} shares "
            f"from {len(self.consumed_lots)} lots, P&L ₹{self.total_profit_loss:,.2f})"
        )


@dataclass
class ReversalResult:
    """Result of reversing a trade's allocations."""

    trade_id: int
    side: str
    restored_lots: Dict[int, int] = field(default_factory=dict)
    allocations_removed: int = 0

    @property
    def was_noop(self) -> bool:
        return self.allocations_removed == 0


@dataclass
class ValidationResult:
    """
    Result of allocation validation.

    Contains validation checks and any discrepancies found.
    """

    is_valid: bool

    total_allocations: int = 0
    total_sells: int = 0
    total_buys: int = 0

    under_allocated_sells: int = 0
    over_allocated_sells: int = 0
    inconsistent_lots: int = 0
    temporal_violations: int = 0
    value_mismatches: int = 0

    total_profit_loss: Optional[Decimal] = None

    error_messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return not self.is_valid or len(self.error_messages) > 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    @property
    def has_discrepancies(self) -> bool:
        return (
            self.under_allocated_sells > 0 or
            self.over_allocated_sells > 0 or
            self.inconsistent_lots > 0 or
            self.temporal_violations > 0 or
            self.value_mismatches > 0
        )

    def add_error(self, message: str):
        self.error_messages.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        self.warnings.append(message)

    def __str__(self) -> str:
        status = "✅ VALID" if self.is_valid else "❌ INVALID"

        parts = [
            f"ValidationResult({status})",
            f"  Allocations: {self.total_allocations}",
            f"  Sells: {self.total_sells}  Buys: {self.total_buys}",
        ]

        if self.has_discrepancies:
            parts.append("  ⚠️  Discrepancies found:")
            if self.under_allocated_sells > 0:
                parts.append(f"    - Under-allocated sells: {self.under_allocated_sells}")
            if self.over_allocated_sells > 0:
                parts.append(f"    - Over-allocated sells: {self.over_allocated_sells}")
            if self.inconsistent_lots > 0:
                parts.append(f"    - Lots out of balance: {self.inconsistent_lots}")
            if self.temporal_violations > 0:
                parts.append(f"    - Sells before their buys: {self.temporal_violations}")
            if self.value_mismatches > 0:
                parts.append(f"    - Value/P&L mismatches: {self.value_mismatches}")

        if self.total_profit_loss is not None:
            parts.append(f"  Realized P&L: ₹{self.total_profit_loss:,.2f}")

        if self.has_errors:
            parts.append(f"  ❌ Errors: {len(self.error_messages)}")
            for err in self.error_messages[:3]:
                parts.append(f"    - {err}")

        if self.has_warnings:
            parts.append(f"  ⚠️  Warnings: {len(self.warnings)}")
            for warn in self.warnings[:3]:
                parts.append(f"    - {warn}")

        return "\n".join(parts)
