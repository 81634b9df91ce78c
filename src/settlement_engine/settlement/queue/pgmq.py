"""pgmq-backed work queue."""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.settlement.types import QueueMessage


class PgmqQueue:
    """Work queue over the pgmq PostgreSQL extension."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def read(
        self, queue_name: str, visibility_timeout: int, n: int
    ) -> list[QueueMessage]:
        result = await self.session.execute(
            text("""
                SELECT msg_id, read_ct, enqueued_at, vt, message
                FROM pgmq.read(:queue_name, :vt, :qty)
            """),
            {"queue_name": queue_name, "vt": visibility_timeout, "qty": n},
        )
        rows = result.mappings().all()
        await self.session.commit()
        return [
            QueueMessage(
                msg_id=row["msg_id"],
                read_ct=row["read_ct"],
                enqueued_at=row["enqueued_at"],
                vt=row["vt"],
                message=_decode(row["message"]),
            )
            for row in rows
        ]

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        result = await self.session.execute(
            text("SELECT pgmq.delete(:queue_name, CAST(:msg_id AS bigint))"),
            {"queue_name": queue_name, "msg_id": msg_id},
        )
        deleted = result.scalar()
        await self.session.commit()
        return bool(deleted)

    async def send(
        self, queue_name: str, payload: dict[str, Any], delay_seconds: int = 0
    ) -> int:
        result = await self.session.execute(
            text("SELECT pgmq.send(:queue_name, CAST(:message AS jsonb), :delay)"),
            {
                "queue_name": queue_name,
                "message": json.dumps(payload, default=str),
                "delay": delay_seconds,
            },
        )
        msg_id = result.scalar_one()
        await self.session.commit()
        return int(msg_id)


def _decode(message: Any) -> dict[str, Any]:
    # asyncpg hands jsonb back as text unless a codec is registered
    if isinstance(message, (str, bytes)):
        return json.loads(message)
    return dict(message)
