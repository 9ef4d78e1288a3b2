"""
Database Dependencies for FastAPI Routes

This module provides dependency injection functions for database sessions.

Routes declare what they need and FastAPI provides it:

    @router.get("/videos/summaries")
    async def list_summaries(db: DBSession):
        ...

Tests swap the real session for a test one through
`app.dependency_overrides[get_db] = get_db_override(session)`.

Learning Resources:
- FastAPI Dependencies: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from collections.abc import AsyncGenerator, Callable
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    The session is rolled back on error and closed after the request.
    Writes are committed explicitly by the record store.

    Yields:
        AsyncSession: Database session for the current request
    """
    async for session in get_session():
        yield session


# Reusable type annotation for database dependencies
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_db_override(session: AsyncSession) -> Callable[[], AsyncGenerator[AsyncSession, None]]:
    """
    Create a dependency override for testing.

    Args:
        session: The session to use instead of the real one

    Returns:
        A function that yields the test session
    """
    async def _override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    return _override


__all__ = [
    "get_db",
    "DBSession",
    "get_db_override",
]
