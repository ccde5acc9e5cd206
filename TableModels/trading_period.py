from sqlalchemy import Column, Integer, Date, DateTime, UniqueConstraint, func
from TableModels.base import Base


class TradingPeriod(Base):
    """Tradeable-day count of one calendar quarter, shared by every client's quarterly accrual."""
    __tablename__ = 'trading_periods'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    year = Column(Integer, nullable=False)
    quarter_number = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    tradeable_days = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('year', 'quarter_number', name='uq_trading_periods_year_quarter'),
    )
