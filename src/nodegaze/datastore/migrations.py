"""Schema creation helpers.

Versioned migrations belong to the deployment tooling; this module only
provides the create-all path used on startup and in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nodegaze.engine.models.base import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


async def run_auto_migrate(engine: AsyncEngine) -> None:
    """Create all tables defined by ORM models (idempotent).

    Args:
        engine: The async SQLAlchemy engine to migrate.
    """
    # Import all models to register them with Base.metadata
    import nodegaze.engine.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

