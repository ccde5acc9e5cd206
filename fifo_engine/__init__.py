"""
FIFO Allocation Engine

Matches sells against buy lots First-In-First-Out to derive realized P&L
and holding periods, and reverses that matching when a trade is edited.

Key Components:
- FifoAllocator: allocate a sell / reverse a trade inside a unit of work
- AllocationValidator: audits allocation invariants
- Models: result structures

Usage:
    from fifo_engine import FifoAllocator

    allocator = FifoAllocator()
    async with db.unit_of_work() as uow:
        result = await allocator.allocate(uow, sell_trade)
"""

from .engine import FifoAllocator, plan_fifo, build_allocation, total_profit_loss
from .validator import AllocationValidator
from .models import AllocationResult, LotTake, ReversalResult, ValidationResult

__all__ = [
    'FifoAllocator',
    'AllocationValidator',
    'AllocationResult',
    'LotTake',
    'ReversalResult',
    'ValidationResult',
    'plan_fifo',
    'build_allocation',
    'total_profit_loss',
]

__version__ = '1.0.0'
