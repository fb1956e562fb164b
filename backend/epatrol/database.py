"""
Database connection and session management.

The remote store is reached through an async SQLAlchemy engine. Nothing is
connected at import time: an unconfigured client must be able to start and
report a configuration error instead.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from epatrol.config import Settings, get_settings
from epatrol.errors import ConfigurationError

# Base class for models
Base = declarative_base()


def async_database_url(database_url: str) -> str:
    """Convert a standard PostgreSQL URL to the asyncpg variant."""
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite:///"):
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return database_url


def build_engine(database_url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine for the given URL."""
    url = async_database_url(database_url)
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", True)  # Verify connections before using
    return create_async_engine(url, echo=echo, **kwargs)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@lru_cache
def _engine_for(database_url: str, echo: bool) -> AsyncEngine:
    return build_engine(database_url, echo=echo)


@lru_cache
def _session_maker_for(database_url: str, echo: bool) -> async_sessionmaker[AsyncSession]:
    return build_session_maker(_engine_for(database_url, echo))


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """
    Engine for the configured database, one per URL.

    Raises ConfigurationError when no database URL is set.
    """
    settings = settings or get_settings()
    if not settings.is_backend_configured:
        raise ConfigurationError("Backend is not configured: DATABASE_URL is missing")
    return _engine_for(settings.database_url.strip(), settings.debug)


def get_session_maker(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Session factory for the configured database."""
    settings = settings or get_settings()
    get_engine(settings)  # validates configuration
    return _session_maker_for(settings.database_url.strip(), settings.debug)


class SqlStore:
    """
    Base for store adapters.

    The session factory is resolved on first use so an unconfigured client
    can still be constructed.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self._session_maker = session_maker

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker(self.settings)
        return self._session_maker


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    # Register every model on Base.metadata
    import epatrol.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
