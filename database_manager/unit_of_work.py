from sqlalchemy.ext.asyncio import AsyncSession

from database_manager.repositories import (
    TradeRepository,
    AllocationRepository,
    BrokerageRepository,
    ReferenceDataRepository,
)


class UnitOfWork:
    """Session-bound handle exposing one repository per entity."""

    def __init__(self, session: AsyncSession, row_locks: bool = False):
        self.session = session
        self.trades = TradeRepository(session, row_locks=row_locks)
        self.allocations = AllocationRepository(session)
        self.brokerage = BrokerageRepository(session)
        self.reference = ReferenceDataRepository(session)

    async def flush(self) -> None:
        await self.session.flush()
