"""Async engine, request-scoped sessions and schema bootstrap."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fitpulse.config import settings
from fitpulse.db.base import Base

engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create missing tables and make sure every catalog badge has a definition row."""
    import fitpulse.models  # noqa: F401
    from fitpulse.services.badges import seed_badge_definitions

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_maker.begin() as session:
        await seed_badge_definitions(session)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One transaction per request: committed when the endpoint returns, rolled back if it raises."""
    async with async_session_maker() as session, session.begin():
        yield session
