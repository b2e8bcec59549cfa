"""Database schema bootstrap.

Creates every table declared on ``app.db.models.Base`` that does not exist
yet. Safe to call from startup, tests and manual operations.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db import models
from app.db.core import get_engine

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when the schema cannot be created."""

    pass


async def run_all_migrations(engine: AsyncEngine | None = None) -> None:
    """Create all tables.

    Raises:
        MigrationError: If the DDL fails
    """
    engine = engine or get_engine()
    tables = sorted(models.Base.metadata.tables)
    logger.info("Starting database migrations", extra={"meta": {"tables": tables}})
    try:
        async with engine.begin() as conn:
            await conn.run_sync(models.Base.metadata.create_all)
    except SQLAlchemyError as e:
        logger.error("Schema creation failed", exc_info=True)
        raise MigrationError(f"Schema creation failed: {e}") from e
    logger.info("All database migrations completed successfully")


async def drop_all(engine: AsyncEngine | None = None) -> None:
    """Drop every table. Test and dev use only."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.drop_all)


# CLI interface for manual migrations
if __name__ == "__main__":
    import sys

    from app.logging_config import configure_logging

    configure_logging()
    try:
        asyncio.run(run_all_migrations())
        print("✅ All migrations completed successfully")
    except MigrationError as e:
        print(f"❌ Migration failed: {e}")
        sys.exit(1)
