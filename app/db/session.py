"""Unit-of-work helper for code that runs outside a request."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def session_scope(
    factory: Callable[[], AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session, commit when the block exits cleanly, roll back otherwise.

    The session is always closed::

        async with session_scope(AsyncSessionLocal) as db:
            db.add(row)
    """
    db = factory()
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    finally:
        await db.close()


__all__ = ["session_scope"]
