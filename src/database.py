from __future__ import annotations

from collections.abc import AsyncGenerator
import os
import sys

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.config import settings


_engine_kwargs: dict = {"pool_pre_ping": True}

# FastAPI's sync TestClient runs requests through an AnyIO portal, so pooled
# async connections can end up bound to a different event loop. Disable
# pooling under pytest (collection imports this module before
# PYTEST_CURRENT_TEST is set, hence the sys.modules check).
if os.getenv("PYTEST_CURRENT_TEST") or ("pytest" in sys.modules):
    _engine_kwargs["poolclass"] = NullPool

engine = create_async_engine(settings.database_url, **_engine_kwargs)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that spans several transactions (job worker, syncs)."""

    return SessionLocal
