"""In-memory work queue for tests and local development."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from settlement_engine.settlement.types import Clock, QueueMessage, utcnow


@dataclass
class _Stored:
    msg_id: int
    message: dict[str, Any]
    enqueued_at: datetime
    vt: datetime
    read_ct: int = 0


class InMemoryQueue:
    """Queue honouring visibility timeouts and delayed delivery.

    Args:
        clock: Returns the current time. Tests pass a controllable clock.
    """

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock
        self._queues: dict[str, dict[int, _Stored]] = {}
        self._next_id = 1

    async def read(
        self, queue_name: str, visibility_timeout: int, n: int
    ) -> list[QueueMessage]:
        now = self.clock()
        visible = [
            stored
            for stored in self._queues.get(queue_name, {}).values()
            if stored.vt <= now
        ]
        leased = []
        for stored in sorted(visible, key=lambda s: s.msg_id)[:n]:
            stored.read_ct += 1
            stored.vt = now + timedelta(seconds=visibility_timeout)
            leased.append(
                QueueMessage(
                    msg_id=stored.msg_id,
                    read_ct=stored.read_ct,
                    enqueued_at=stored.enqueued_at,
                    vt=stored.vt,
                    message=copy.deepcopy(stored.message),
                )
            )
        return leased

    async def delete(self, queue_name: str, msg_id: int) -> bool:
        return self._queues.get(queue_name, {}).pop(msg_id, None) is not None

    async def send(
        self, queue_name: str, payload: dict[str, Any], delay_seconds: int = 0
    ) -> int:
        now = self.clock()
        msg_id = self._next_id
        self._next_id += 1
        self._queues.setdefault(queue_name, {})[msg_id] = _Stored(
            msg_id=msg_id,
            message=copy.deepcopy(payload),
            enqueued_at=now,
            vt=now + timedelta(seconds=delay_seconds),
        )
        return msg_id

    def messages(self, queue_name: str) -> list[QueueMessage]:
        """All messages in a queue, visible or not, without leasing them."""
        return [
            QueueMessage(
                msg_id=s.msg_id,
                read_ct=s.read_ct,
                enqueued_at=s.enqueued_at,
                vt=s.vt,
                message=copy.deepcopy(s.message),
            )
            for s in sorted(self._queues.get(queue_name, {}).values(), key=lambda s: s.msg_id)
        ]
