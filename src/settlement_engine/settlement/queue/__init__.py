"""Work queue adapters."""

from settlement_engine.settlement.queue.base import WorkQueue
from settlement_engine.settlement.queue.memory import InMemoryQueue
from settlement_engine.settlement.queue.pgmq import PgmqQueue

__all__ = ["InMemoryQueue", "PgmqQueue", "WorkQueue"]
