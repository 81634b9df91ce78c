"""Work queue protocol (pgmq semantics)."""

from __future__ import annotations

from typing import Any, Protocol

from settlement_engine.settlement.types import QueueMessage


class WorkQueue(Protocol):
    """Durable queue with leased reads and delayed sends.

    read() hides returned messages for visibility_timeout seconds; a message
    that is not deleted becomes readable again afterwards.
    """

    async def read(
        self, queue_name: str, visibility_timeout: int, n: int
    ) -> list[QueueMessage]: ...

    async def delete(self, queue_name: str, msg_id: int) -> bool: ...

    async def send(
        self, queue_name: str, payload: dict[str, Any], delay_seconds: int = 0
    ) -> int: ...
