"""Datastore client — owns the async engine and the session factory.

The event store, the notification registry, the ledger and the delivery
dispatcher all open short sessions from one :class:`Datastore`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from nodegaze.datastore.engines import create_engine

if TYPE_CHECKING:
    from nodegaze.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


class Datastore:
    """Engine plus session factory for one database.

    Sessions keep loaded objects usable after commit so services can hand
    them back to callers once the session is closed.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    async def open(self) -> None:  # noqa: ASYNC910
        """Create the engine. Tables are created separately by ``run_auto_migrate``."""
        if self._engine is not None:
            return
        self._engine = create_engine(self._config)
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        logger.info("Datastore opened (%s)", self._engine.dialect.name)

    async def close(self) -> None:
        """Dispose the engine and release all connections (idempotent)."""
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        """Raises RuntimeError if the datastore is not open."""
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    def session(self) -> AsyncSession:
        """New session; use as ``async with datastore.session() as session``."""
        if self._sessions is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._sessions()

    async def ping(self) -> bool:
        """Round-trip ``SELECT 1``; False when closed or unreachable."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Datastore ping failed")
            return False
        return True
