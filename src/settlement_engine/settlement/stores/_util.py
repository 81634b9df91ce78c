"""Helpers shared by the SQL stores."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncGenerator, overload

from sqlalchemy.ext.asyncio import AsyncSession


@overload
def utc(value: datetime) -> datetime: ...


@overload
def utc(value: datetime | None) -> datetime | None: ...


def utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def plain(value: Any) -> Any:
    """Unwrap enums into their stored values."""
    return value.value if isinstance(value, Enum) else value


@asynccontextmanager
async def committing(session: AsyncSession) -> AsyncGenerator[None, None]:
    """Commit on success, roll back on failure so the session stays usable."""
    try:
        yield
        await session.commit()
    except Exception:
        await session.rollback()
        raise
