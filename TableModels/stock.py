from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, func
from sqlalchemy.types import DECIMAL
from TableModels.base import Base


class Stock(Base):
    """Listed instrument; current_price is refreshed by the price-file ingester."""
    __tablename__ = 'stocks'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    symbol = Column(String(32), nullable=False, index=True)
    exchange = Column(String(8), nullable=False)  # 'NSE' or 'BSE'
    name = Column(String(200), nullable=True)
    current_price = Column(DECIMAL(20, 4), nullable=True)
    price_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('symbol', 'exchange', name='uq_stocks_symbol_exchange'),
    )
