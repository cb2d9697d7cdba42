from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from ..core.settings import DATABASE_URL
from .base import Base

engine = create_async_engine(DATABASE_URL, echo=False, future=True)
AsyncSessionLocal = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def create_session_factory(database_url: str, **engine_options) -> "tuple[AsyncEngine, sessionmaker]":
    """Build a separate engine and session factory, e.g. for a throwaway database."""
    other_engine = create_async_engine(database_url, echo=False, future=True, **engine_options)
    factory = sessionmaker(other_engine, expire_on_commit=False, class_=AsyncSession)
    return other_engine, factory


async def initialise_database(session_factory: sessionmaker = AsyncSessionLocal) -> None:
    # Import models so their tables are registered on Base.metadata
    from .. import models  # noqa: F401

    async with session_factory() as session:
        connection = await session.connection()
        await connection.run_sync(Base.metadata.create_all)
        await session.commit()


__all__ = [
    "Base",
    "engine",
    "AsyncSessionLocal",
    "create_session_factory",
    "initialise_database",
]
