"""Shared FastAPI dependencies.

Provides the canonical database session dependency used by all route files.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session from the factory on app.state.

    Routes commit explicitly after a successful mutation; anything left
    uncommitted is rolled back when the session closes.
    """
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session
