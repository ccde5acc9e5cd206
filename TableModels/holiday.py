from sqlalchemy import Column, Integer, String, Date, UniqueConstraint
from TableModels.base import Base


class Holiday(Base):
    __tablename__ = 'holidays'

    id = Column(Integer, primary_key=True)
    holiday_date = Column(Date, nullable=False, index=True)
    exchange = Column(String(8), nullable=False)
    name = Column(String(120), nullable=True)

    __table_args__ = (
        UniqueConstraint('holiday_date', 'exchange', name='uq_holidays_date_exchange'),
    )
