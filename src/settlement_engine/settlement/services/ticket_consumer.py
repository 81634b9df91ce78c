"""Queue consumer for ticket payment requests.

Messages are deleted the moment they are read. Redelivery after a failure is
an explicit re-enqueue with a delay; after max_retries the message goes to the
dead-letter queue instead. Errors that need manual triage are dead-lettered
at once. Duplicate payouts are prevented by the
orchestrator's TransferRecord, not by the queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from settlement_engine.settlement.config import QueueConfig
from settlement_engine.settlement.exceptions import (
    InsufficientFundsError,
    TransferPreviouslyFailedError,
)
from settlement_engine.settlement.queue.base import WorkQueue
from settlement_engine.settlement.types import (
    Clock,
    QueueMessage,
    TicketPaymentPayload,
    utcnow,
)

logger = logging.getLogger(__name__)

TERMINAL_ERRORS = (TransferPreviouslyFailedError, InsufficientFundsError)


class PaymentProcessor(Protocol):
    async def process_payment(self, ticket_id: UUID | str) -> Any: ...


@dataclass(frozen=True)
class ProcessResult:
    """Messages settled successfully vs. messages that failed."""

    processed: int = 0
    errors: int = 0


class TicketConsumer:
    """Drains the ticket payment queue."""

    def __init__(
        self,
        *,
        queue: WorkQueue,
        orchestrator: PaymentProcessor,
        config: QueueConfig | None = None,
        clock: Clock = utcnow,
    ):
        self.queue = queue
        self.orchestrator = orchestrator
        self.config = config or QueueConfig()
        self.clock = clock

    async def process_all_ready_messages(self) -> ProcessResult:
        """Process messages one at a time until none are ready.

        A failing message never stops the loop. A failing queue read does.
        """
        processed = errors = 0
        logger.info("Processing ready messages from %s", self.config.queue_name)

        while True:
            messages = await self.queue.read(
                self.config.queue_name, self.config.visibility_timeout_seconds, 1
            )
            if not messages:
                break
            for message in messages:
                try:
                    await self.process_message(message)
                    processed += 1
                except Exception as exc:
                    errors += 1
                    logger.error(
                        "Error processing message %s, continuing: %s", message.msg_id, exc
                    )

        logger.info("Processed %d message(s), %d error(s)", processed, errors)
        return ProcessResult(processed=processed, errors=errors)

    async def process_message(self, message: QueueMessage) -> None:
        """Dequeue, then settle. Failures are re-enqueued or dead-lettered, then re-raised."""
        deleted = await self.queue.delete(self.config.queue_name, message.msg_id)
        if not deleted:
            logger.warning("Message %s was already gone when deleted", message.msg_id)

        try:
            payload = TicketPaymentPayload.from_dict(message.message)
        except (TypeError, ValueError) as exc:
            # Retrying a malformed message cannot succeed
            await self._dead_letter(message.message, 0, str(exc))
            raise

        logger.info("Processing message %s for ticket %s", message.msg_id, payload.ticket_id)
        try:
            await self.orchestrator.process_payment(payload.ticket_id)
        except TERMINAL_ERRORS as exc:
            # Needs manual triage; redelivery cannot succeed
            logger.error("Ticket %s cannot be retried: %s", payload.ticket_id, exc)
            await self._dead_letter(message.message, payload.retry_count, str(exc))
            raise
        except Exception as exc:
            logger.error("Error processing ticket %s: %s", payload.ticket_id, exc)
            await self.handle_failure(message.message, payload.retry_count, exc)
            raise
        logger.info("Successfully processed ticket %s", payload.ticket_id)

    async def handle_failure(
        self, body: dict[str, Any], retry_count: int, error: Exception
    ) -> None:
        """Re-enqueue with a delay, or dead-letter once retries are exhausted."""
        ticket_id = body.get("ticket_id")
        if retry_count < self.config.max_retries:
            try:
                await self.queue.send(
                    self.config.queue_name,
                    {**body, "retry_count": retry_count + 1},
                    self.config.retry_delay_seconds,
                )
            except Exception:
                logger.exception("Failed to re-queue message for ticket %s", ticket_id)
                return
            logger.info(
                "Re-queued ticket %s for retry %d/%d in %ds",
                ticket_id,
                retry_count + 1,
                self.config.max_retries,
                self.config.retry_delay_seconds,
            )
            return

        logger.error(
            "Max retries (%d) exceeded for ticket %s, sending to %s",
            self.config.max_retries,
            ticket_id,
            self.config.error_queue_name,
        )
        await self._dead_letter(body, retry_count, str(error))

    async def _dead_letter(self, body: dict[str, Any], retry_count: int, error: str) -> None:
        try:
            await self.queue.send(
                self.config.error_queue_name,
                {
                    "ticket_id": body.get("ticket_id"),
                    "retry_count": retry_count,
                    "error": error,
                    "timestamp": self.clock().isoformat(),
                },
                0,
            )
        except Exception:
            logger.exception(
                "Failed to send ticket %s to %s",
                body.get("ticket_id"),
                self.config.error_queue_name,
            )
