"""Database engine and session factory management."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from chatledger.config import Settings, get_settings
from chatledger.infrastructure.database.models.base import Base

# Engine and session factory (lazy initialized)
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        if settings is None:
            settings = get_settings()
        options: dict[str, object] = {"echo": settings.app_debug}
        if not settings.database_url.startswith("sqlite"):
            options["pool_size"] = settings.database_pool_size
            options["max_overflow"] = settings.database_max_overflow
            options["pool_pre_ping"] = True
        _engine = create_async_engine(settings.database_url, **options)
    assert _engine is not None
    return _engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = build_session_factory(get_engine(settings))
    assert _async_session_factory is not None
    return _async_session_factory


async def create_schema(engine: AsyncEngine) -> None:
    """Create missing tables (development and tests)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the shared engine (used at app shutdown)."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_factory = None
