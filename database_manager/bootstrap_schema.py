import TableModels  # noqa: F401  registers every model on Base.metadata
from TableModels.base import Base


async def ensure_ledger_schema(async_engine) -> None:
    """
    Idempotent: safe to run on every startup.
    Creates any missing ledger tables, indexes and constraints.
    """
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

