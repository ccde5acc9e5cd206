from sqlalchemy import (Column, Integer, String, Date, DateTime, ForeignKey, Index,
                        CheckConstraint, func)
from sqlalchemy.types import DECIMAL
from TableModels.base import Base


class FifoAllocation(Base):
    """How much of a sell was matched to one buy lot. Created by allocate, destroyed by reverse."""
    __tablename__ = 'fifo_allocations'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    sell_trade_id = Column(Integer, ForeignKey('trades.id'), nullable=False)
    buy_trade_id = Column(Integer, ForeignKey('trades.id'), nullable=False)

    # Denormalised for period queries
    client_id = Column(Integer, nullable=False)
    symbol = Column(String(32), nullable=False)
    exchange = Column(String(8), nullable=False)

    quantity_allocated = Column(Integer, nullable=False)
    buy_price = Column(DECIMAL(20, 4), nullable=False)
    sell_price = Column(DECIMAL(20, 4), nullable=False)
    buy_date = Column(Date, nullable=False)
    sell_date = Column(Date, nullable=False)
    buy_value = Column(DECIMAL(20, 4), nullable=False)
    sell_value = Column(DECIMAL(20, 4), nullable=False)
    profit_loss = Column(DECIMAL(20, 4), nullable=False)
    holding_days = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint('quantity_allocated > 0', name='positive_allocation'),
        Index('idx_fifo_alloc_sell', 'sell_trade_id'),
        Index('idx_fifo_alloc_buy', 'buy_trade_id'),
        Index('idx_fifo_alloc_client_sell_date', 'client_id', 'sell_date'),
    )

    def __repr__(self) -> str:
        return (f"FifoAllocation(sell={self.sell_trade_id} <- buy={self.buy_trade_id}: "
                f"{self.quantity_allocated} {self.symbol}, pnl={self.profit_loss})")
