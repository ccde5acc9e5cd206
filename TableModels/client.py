from sqlalchemy import Column, Integer, String, DateTime, func
from TableModels.base import Base


class Client(Base):
    """Client master record. Owned by the client-management collaborator; the ledger only reads it."""
    __tablename__ = 'clients'
    __mapper_args__ = {'eager_defaults': True}

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    pan = Column(String(10), unique=True, nullable=True)
    email = Column(String(254), nullable=True)
    mobile = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
