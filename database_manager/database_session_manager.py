import os
import asyncio
import functools
import asyncpg

from sqlalchemy import text
from typing import Awaitable, Callable, Optional, TypeVar
from sqlalchemy.orm import sessionmaker
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

from Config.config_manager import get_config
from Shared_Utils.logger import get_component_logger
from database_manager.unit_of_work import UnitOfWork

T = TypeVar("T")


def normalize_dsn(dsn: str) -> str:
    """Point plain Postgres/SQLite URLs at their async drivers."""
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
    if dsn.startswith("postgresql://") and "+asyncpg" not in dsn:
        return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
    if dsn.startswith("sqlite://") and "+aiosqlite" not in dsn:
        return dsn.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return dsn


class DatabaseSessionManager:
    """Creates the async engine, yields sessions and units of work, runs a one-time schema bootstrap."""

    def __init__(self, dsn: str, auto_create_schema: bool = True, pool_size: Optional[int] = None, **engine_kw):
        self.logger = get_component_logger('database_manager')
        self.dsn = normalize_dsn(dsn)
        self.auto_create_schema = auto_create_schema
        self.pool_size = pool_size if pool_size is not None else get_config().db_pool_size

        if self.dsn.startswith("sqlite"):
            defaults = dict(
                echo=False,
                future=True,
                connect_args={"timeout": float(os.getenv("DB_CONNECT_TIMEOUT", "30"))},
            )
        else:
            defaults = dict(
                echo=False,
                pool_size=self.pool_size,
                max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "10")),
                pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "300")),  # 5m
                pool_pre_ping=True,
                future=True,
                connect_args={
                    "timeout": float(os.getenv("DB_CONNECT_TIMEOUT", "5")),
                    "command_timeout": float(os.getenv("DB_COMMAND_TIMEOUT", "30")),
                    "server_settings": {
                        "application_name": os.getenv("DB_APP_NAME", "brokerage_ledger"),
                        "statement_timeout": os.getenv("DB_STATEMENT_TIMEOUT_MS", "60000"),
                    },
                },
            )
        for k, v in defaults.items():
            engine_kw.setdefault(k, v)

        self.engine = create_async_engine(self.dsn, **engine_kw)
        self._async_session_factory = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=AsyncSession
        )

        self._schema_lock = asyncio.Lock()
        self._schema_ready = False

    @property
    def supports_row_locks(self) -> bool:
        """SELECT ... FOR UPDATE is honoured (Postgres) rather than ignored (SQLite)."""
        return self.engine.dialect.name == "postgresql"

    # ---------- bootstrap / session ----------

    async def _ensure_schema_once(self):
        if self._schema_ready or not self.auto_create_schema:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            from database_manager.bootstrap_schema import ensure_ledger_schema
            await ensure_ledger_schema(self.engine)
            self.logger.debug("Ledger schema ensured")
            self._schema_ready = True

    @asynccontextmanager
    async def async_session(self):
        await self._ensure_schema_once()
        async with self._async_session_factory() as session:
            yield session

    @asynccontextmanager
    async def unit_of_work(self):
        """
        One atomic unit of work: commits when the block exits cleanly,
        rolls back on any exception (which is re-raised).
        """
        async with self.async_session() as session:
            async with session.begin():
                yield UnitOfWork(session, row_locks=self.supports_row_locks)

    async def run_in_unit_of_work(self, callback: Callable[[UnitOfWork], Awaitable[T]]) -> T:
        async with self.unit_of_work() as uow:
            return await callback(uow)

    # ---------- retry helper ----------

    @staticmethod
    def is_retryable_db_error(e: Exception) -> bool:
        RETRYABLE_SNIPPETS = (
            "ConnectionDoesNotExistError",
            "connection was closed",
            "server closed the connection",
            "could not receive data from server",
            "terminating connection due to administrator command",
            "Connection reset by peer",
            "transport closed",
        )
        s = str(e)
        return isinstance(e, (ConnectionError, OSError, OperationalError, DBAPIError, asyncpg.PostgresError)) \
            and any(sn in s for sn in RETRYABLE_SNIPPETS)

    @staticmethod
    def db_retry_once(func):
        """Retry an async method once after disposing the pool on a dropped connection."""
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except Exception as e:
                if not DatabaseSessionManager.is_retryable_db_error(e):
                    raise
                db = getattr(self, "db", self)
                await db.engine.dispose()
                await asyncio.sleep(float(os.getenv("DB_RETRY_BACKOFF_SEC", "0.5")))
                return await func(self, *args, **kwargs)

        return wrapper

    # ---------- light engine warm-up ----------

    async def initialize(self) -> None:
        """Warm the pool and verify connectivity (single retry)."""
        last_exc = None
        for attempt in (1, 2):
            try:
                async with self.async_session() as s:
                    await s.execute(text("SELECT 1"))
                self.logger.info("✅ Database reachable")
                return
            except (OSError, ConnectionError, OperationalError, DBAPIError, asyncpg.PostgresError) as e:
                last_exc = e
                self.logger.warning(f"⚠️ Database warm-up attempt {attempt} failed: {e}")
                await self.engine.dispose()
                if attempt == 1:
                    await asyncio.sleep(0.75)
        raise last_exc

    async def disconnect(self):
        """Close the SQLAlchemy database engine."""
        try:
            if self.engine:
                await self.engine.dispose()
                self.logger.info("✅ SQLAlchemy engine disposed successfully.")
        except (OSError, DBAPIError) as e:
            self.logger.error(f"❌ Error while disposing SQLAlchemy engine: {e}", exc_info=True)
