"""Tests for TicketConsumer - queue drain with retry and dead-lettering.

Tests verify:
1. Successful messages are deleted and never re-enqueued
2. Failures are re-enqueued with a delay and an incremented retry_count
3. Exhausted messages land in the dead-letter queue exactly once
4. One poisoned message never blocks the rest
"""

from datetime import timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest

from settlement_engine.settlement.config import QueueConfig
from settlement_engine.settlement.engine import SettlementEngine
from settlement_engine.settlement.exceptions import (
    InsufficientFundsError,
    TransferPreviouslyFailedError,
)
from settlement_engine.settlement.queue import InMemoryQueue
from settlement_engine.settlement.services.ticket_consumer import TicketConsumer
from settlement_engine.settlement.types import TicketPaymentPayload
from tests.settlement.conftest import FixedClock, SettlementTestData

QUEUE = "ticket_payments"
DLQ = "ticket_payments_errors"


class RecordingOrchestrator:
    """Stands in for PaymentOrchestrator; fails for chosen tickets."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.calls: list[str] = []

    async def process_payment(self, ticket_id: UUID | str) -> None:
        self.calls.append(str(ticket_id))
        if str(ticket_id) in self.failing:
            raise RuntimeError(f"settlement failed for {ticket_id}")


def payload(ticket_id: str, retry_count: int = 0) -> dict[str, Any]:
    return TicketPaymentPayload(
        ticket_id=ticket_id,
        assigned_to=str(uuid4()),
        created_by=str(uuid4()),
        retry_count=retry_count,
    ).to_dict()


def make_consumer(
    queue: InMemoryQueue, orchestrator: RecordingOrchestrator, clock: FixedClock, **config: Any
) -> TicketConsumer:
    return TicketConsumer(
        queue=queue, orchestrator=orchestrator, config=QueueConfig(**config), clock=clock
    )


class TestProcessAllReadyMessages:
    """Test the drain loop."""

    async def test_empty_queue(self, queue: InMemoryQueue, clock: FixedClock):
        result = await make_consumer(queue, RecordingOrchestrator(), clock).process_all_ready_messages()

        assert result.processed == 0
        assert result.errors == 0

    async def test_successful_message_is_consumed(self, queue: InMemoryQueue, clock: FixedClock):
        """Processed messages are neither re-enqueued nor dead-lettered."""
        orchestrator = RecordingOrchestrator()
        await queue.send(QUEUE, payload("t-1"))

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.processed == 1
        assert result.errors == 0
        assert orchestrator.calls == ["t-1"]
        assert queue.messages(QUEUE) == []
        assert queue.messages(DLQ) == []

    async def test_drains_every_ready_message(self, queue: InMemoryQueue, clock: FixedClock):
        orchestrator = RecordingOrchestrator()
        for i in range(5):
            await queue.send(QUEUE, payload(f"t-{i}"))

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.processed == 5
        assert orchestrator.calls == [f"t-{i}" for i in range(5)]

    async def test_delayed_messages_are_left_alone(self, queue: InMemoryQueue, clock: FixedClock):
        orchestrator = RecordingOrchestrator()
        await queue.send(QUEUE, payload("later"), delay_seconds=60)

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.processed == 0
        assert orchestrator.calls == []
        assert len(queue.messages(QUEUE)) == 1

    async def test_poisoned_message_does_not_block_others(
        self, queue: InMemoryQueue, clock: FixedClock
    ):
        orchestrator = RecordingOrchestrator(failing={"bad"})
        await queue.send(QUEUE, payload("bad"))
        await queue.send(QUEUE, payload("good"))

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.processed == 1
        assert result.errors == 1
        assert orchestrator.calls == ["bad", "good"]

    async def test_read_failure_aborts_the_drain(self, clock: FixedClock):
        class BrokenQueue(InMemoryQueue):
            async def read(self, queue_name: str, visibility_timeout: int, n: int):
                raise ConnectionError("queue unavailable")

        with pytest.raises(ConnectionError):
            await make_consumer(
                BrokenQueue(clock), RecordingOrchestrator(), clock
            ).process_all_ready_messages()


class TestRetries:
    """Test re-enqueue and dead-letter routing."""

    async def test_failure_is_reenqueued_with_delay(self, queue: InMemoryQueue, clock: FixedClock):
        await queue.send(QUEUE, payload("t-1"))

        result = await make_consumer(
            queue, RecordingOrchestrator(failing={"t-1"}), clock
        ).process_all_ready_messages()

        assert result.errors == 1
        [retry] = queue.messages(QUEUE)
        assert retry.message["retry_count"] == 1
        assert retry.message["assigned_to"] is not None
        assert retry.vt == clock() + timedelta(seconds=1800)
        assert queue.messages(DLQ) == []

    async def test_exhausted_message_is_dead_lettered_once(
        self, queue: InMemoryQueue, clock: FixedClock
    ):
        """Retries 1..3 go back on the queue; the fourth failure goes to the DLQ."""
        orchestrator = RecordingOrchestrator(failing={"t-1"})
        consumer = make_consumer(queue, orchestrator, clock)
        await queue.send(QUEUE, payload("t-1"))

        seen_retry_counts = []
        for _ in range(6):
            seen_retry_counts.extend(m.message.get("retry_count", 0) for m in queue.messages(QUEUE))
            await consumer.process_all_ready_messages()
            clock.advance(seconds=1800)

        assert seen_retry_counts == [0, 1, 2, 3]
        assert len(orchestrator.calls) == 4
        assert queue.messages(QUEUE) == []
        [dead] = queue.messages(DLQ)
        assert dead.message["ticket_id"] == "t-1"
        assert dead.message["retry_count"] == 3
        assert dead.message["error"] == "settlement failed for t-1"
        assert dead.message["timestamp"]
        assert dead.vt == dead.enqueued_at

    async def test_configured_retry_policy(self, queue: InMemoryQueue, clock: FixedClock):
        await queue.send(QUEUE, payload("t-1", retry_count=1))

        await make_consumer(
            queue,
            RecordingOrchestrator(failing={"t-1"}),
            clock,
            max_retries=1,
            retry_delay_seconds=60,
        ).process_all_ready_messages()

        assert queue.messages(QUEUE) == []
        assert len(queue.messages(DLQ)) == 1

    @pytest.mark.parametrize(
        "error",
        [
            TransferPreviouslyFailedError("t-1", "card_declined"),
            InsufficientFundsError(required=2000, available=0, pending=0),
        ],
    )
    async def test_terminal_errors_are_dead_lettered_at_once(
        self, queue: InMemoryQueue, clock: FixedClock, error: Exception
    ):
        class TerminalOrchestrator(RecordingOrchestrator):
            async def process_payment(self, ticket_id):
                self.calls.append(str(ticket_id))
                raise error

        orchestrator = TerminalOrchestrator()
        await queue.send(QUEUE, payload("t-1", retry_count=1))

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.errors == 1
        assert queue.messages(QUEUE) == []
        [dead] = queue.messages(DLQ)
        assert dead.message["ticket_id"] == "t-1"
        assert dead.message["retry_count"] == 1
        assert dead.message["error"] == str(error)

    async def test_malformed_message_is_dead_lettered(
self, queue: InMemoryQueue, clock: FixedClock):
        orchestrator = RecordingOrchestrator()
        await queue.send(QUEUE, {"assigned_to": "someone"})

        result = await make_consumer(queue, orchestrator, clock).process_all_ready_messages()

        assert result.errors == 1
        assert orchestrator.calls == []
        assert queue.messages(QUEUE) == []
        [dead] = queue.messages(DLQ)
        assert dead.message["ticket_id"] is None
        assert "ticket_id" in dead.message["error"]

    async def test_requeue_failure_is_logged_not_raised(
        self, clock: FixedClock, caplog: pytest.LogCaptureFixture
    ):
        class NoRequeueQueue(InMemoryQueue):
            async def send(self, queue_name: str, payload: dict[str, Any], delay_seconds: int = 0) -> int:
                if delay_seconds:
                    raise ConnectionError("send failed")
                return await super().send(queue_name, payload, delay_seconds)

        queue = NoRequeueQueue(clock)
        await queue.send(QUEUE, payload("t-1"))

        result = await make_consumer(
            queue, RecordingOrchestrator(failing={"t-1"}), clock
        ).process_all_ready_messages()

        assert result.errors == 1
        assert "Failed to re-queue message for ticket t-1" in caplog.text


class TestQueueToSettlement:
    """Test the consumer wired to the real orchestrator."""

    async def test_queued_ticket_is_settled(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        queue: InMemoryQueue,
    ):
        setup = await test_data.settleable_ticket()
        await queue.send(QUEUE, payload(str(setup.ticket_id)))

        result = await settlement.process_queue()

        assert result.processed == 1
        assert await test_data.fetch_ticket_status(setup.ticket_id) == "completed"

    async def test_duplicate_messages_pay_once(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        queue: InMemoryQueue,
        stripe,
    ):
        """A ticket enqueued twice is settled once; the second message is a no-op."""
        setup = await test_data.settleable_ticket()
        await queue.send(QUEUE, payload(str(setup.ticket_id)))
        await queue.send(QUEUE, payload(str(setup.ticket_id)))

        result = await settlement.process_queue()

        assert result.processed == 2
        assert result.errors == 0
        assert len(stripe.transfers) == 1

    async def test_previously_failed_ticket_is_not_retried(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        queue: InMemoryQueue,
        clock: FixedClock,
    ):
        setup = await test_data.settleable_ticket()
        await test_data.create_transfer(
            engineer_id=setup.engineer_id,
            customer_id=setup.customer_id,
            ticket_id=setup.ticket_id,
            amount=2000,
            status="failed",
            service="stripe_connect",
        )
        await queue.send(QUEUE, payload(str(setup.ticket_id)))

        result = await settlement.process_queue()
        clock.advance(seconds=1800)
        later = await settlement.process_queue()

        assert result.errors == 1
        assert later.errors == 0
        assert queue.messages(QUEUE) == []
        assert len(queue.messages(DLQ)) == 1
