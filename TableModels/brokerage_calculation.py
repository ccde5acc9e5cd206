from sqlalchemy import Column, Integer, String, Date, DateTime, UniqueConstraint, Index, func
from sqlalchemy.types import DECIMAL
from TableModels.base import Base


class BrokerageCalculation(Base):
    """Per-client brokerage summary for one period. Its existence locks the referenced trades."""
    __tablename__ = 'brokerage_calculations'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    client_id = Column(Integer, nullable=False)
    period_key = Column(String(16), nullable=False)  # '2025-03', '2025-Q1', '2025-03-14'
    period_type = Column(String(10), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_days_in_period = Column(Integer, nullable=False)

    total_holding_value = Column(DECIMAL(20, 4), nullable=False, default=0)
    total_holding_days = Column(Integer, nullable=False, default=0)
    rate = Column(DECIMAL(8, 4), nullable=False)
    brokerage_amount = Column(DECIMAL(20, 2), nullable=False, default=0)
    total_positions = Column(Integer, nullable=False, default=0)
    total_trades = Column(Integer, nullable=False, default=0)
    total_turnover = Column(DECIMAL(20, 4), nullable=False, default=0)
    calculated_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('client_id', 'period_key', name='uq_brokerage_client_period'),
        Index('idx_brokerage_period', 'period_key'),
    )
