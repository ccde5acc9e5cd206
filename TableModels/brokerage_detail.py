from sqlalchemy import (Column, Integer, String, Date, Boolean, Text, ForeignKey, Index)
from sqlalchemy.types import DECIMAL
from TableModels.base import Base


class BrokerageDetail(Base):
    """One contributing position (open lot or closed allocation) of a brokerage calculation."""
    __tablename__ = 'brokerage_details'

    id = Column(Integer, primary_key=True)
    calculation_id = Column(Integer, ForeignKey('brokerage_calculations.id', ondelete='CASCADE'),
                            nullable=False)
    trade_id = Column(Integer, ForeignKey('trades.id'), nullable=False)  # the buy lot
    sell_trade_id = Column(Integer, ForeignKey('trades.id'), nullable=True)

    symbol = Column(String(32), nullable=False)
    exchange = Column(String(8), nullable=False)
    quantity = Column(Integer, nullable=False)
    buy_price = Column(DECIMAL(20, 4), nullable=False)
    buy_date = Column(Date, nullable=False)
    holding_start_date = Column(Date, nullable=False)
    holding_end_date = Column(Date, nullable=False)
    holding_days = Column(Integer, nullable=False)
    total_days_in_period = Column(Integer, nullable=False)
    position_value = Column(DECIMAL(20, 4), nullable=False)
    brokerage_rate = Column(DECIMAL(8, 4), nullable=False)
    brokerage_amount = Column(DECIMAL(20, 2), nullable=False)

    is_closed_in_period = Column(Boolean, nullable=False, default=False)
    sell_date = Column(Date, nullable=True)
    sell_price = Column(DECIMAL(20, 4), nullable=True)
    sell_value = Column(DECIMAL(20, 4), nullable=True)
    calculation_formula = Column(Text, nullable=False)

    __table_args__ = (
        Index('idx_brokerage_detail_calc', 'calculation_id'),
        Index('idx_brokerage_detail_trade', 'trade_id'),
        Index('idx_brokerage_detail_sell', 'sell_trade_id'),
    )
