from sqlalchemy import (Column, Integer, String, Date, DateTime, Boolean, Text, ForeignKey,
                        Index, CheckConstraint, func)
from sqlalchemy.types import DECIMAL
from TableModels.base import Base


class Trade(Base):
    """
    One client buy or sell event.

    BUY rows are FIFO lots: remaining_quantity starts at quantity and is only
    decreased by allocation (or restored by reversal). SELL rows keep
    remaining_quantity at 0 and flip sell_fully_allocated when matched.
    locked_period holds the latest brokerage period key that references the row.
    """
    __tablename__ = 'trades'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, ForeignKey('clients.id'), nullable=False)
    symbol = Column(String(32), nullable=False)
    exchange = Column(String(8), nullable=False)
    side = Column(String(4), nullable=False)  # 'BUY' / 'SELL'
    quantity = Column(Integer, nullable=False)
    price = Column(DECIMAL(20, 4), nullable=False)
    trade_date = Column(Date, nullable=False)
    net_amount = Column(DECIMAL(20, 4), nullable=False)

    # FIFO state
    original_quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False, default=0)
    is_fully_consumed = Column(Boolean, nullable=False, default=False)
    sell_fully_allocated = Column(Boolean, nullable=False, default=False)

    locked_period = Column(String(16), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("side IN ('BUY', 'SELL')", name='valid_side'),
        CheckConstraint('quantity > 0', name='positive_quantity'),
        CheckConstraint('price > 0', name='positive_price'),
        CheckConstraint('remaining_quantity >= 0', name='non_negative_remaining'),
        Index('idx_trades_lot_key', 'client_id', 'symbol', 'exchange', 'trade_date'),
        Index('idx_trades_client_date', 'client_id', 'trade_date'),
    )

    @property
    def is_buy(self) -> bool:
        return self.side == 'BUY'

    @property
    def is_sell(self) -> bool:
        return self.side == 'SELL'

    @property
    def lot_key(self):
        return self.client_id, self.symbol, self.exchange

    def __repr__(self) -> str:
        return (f"Trade(id={self.id}, {self.side} {self.quantity} {self.symbol}/{self.exchange} "
                f"@ {self.price} on {self.trade_date}, remaining={self.remaining_quantity})")
