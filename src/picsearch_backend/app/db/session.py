# src/picsearch_backend/app/db/session.py
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Base class for ORM models
# ------------------------------------------------------------
class Base(DeclarativeBase):
    """Base for all ORM models."""
    pass


# ------------------------------------------------------------
# Process-wide engine handle (connect-or-reuse)
# ------------------------------------------------------------
class Database:
    """
    Lazily opens one AsyncEngine per process and hands it to every caller.

    connect() is safe to call from many request tasks at once: the first
    caller starts the connection attempt, everyone else awaits that same
    task. A failed attempt is forgotten so the next caller retries.
    """

    def __init__(self, url: str, *, echo: bool = False, create_tables: bool = False):
        self.url = url
        self.echo = echo
        self.create_tables = create_tables
        self._engine: Optional[AsyncEngine] = None
        self._pending: Optional[asyncio.Task] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def connected(self) -> bool:
        return self._engine is not None

    async def _open(self) -> AsyncEngine:
        engine = create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if self.create_tables:
                    from . import models  # noqa: F401  (register tables)
                    await conn.run_sync(Base.metadata.create_all)
        except Exception:
            await engine.dispose()
            raise
        logger.info("database connected (%s)", engine.url.render_as_string(hide_password=True))
        return engine

    async def connect(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._open())
        pending = self._pending
        try:
            # shield: one cancelled waiter must not cancel the shared attempt
            engine = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise
        if self._engine is None:
            self._engine = engine
            self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
        return self._engine

    async def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        await self.connect()
        assert self._sessionmaker is not None
        return self._sessionmaker

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._pending = None
        self._sessionmaker = None
