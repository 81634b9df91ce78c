"""Settlement configuration objects.

Explicit configuration for the settlement services. Amounts are in minor
currency units.

Pattern:
    config = SettlementConfig(
        payout=PayoutConfig(bank_transfer_payout_amount=2000),
        queue=QueueConfig(max_retries=3),
    )

Immutable after creation (frozen dataclasses).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from settlement_engine.config import Settings


@dataclass(frozen=True)
class PayoutConfig:
    """
    Payout rules.

    Attributes:
        max_credits_per_ticket: Upper bound on credits consumed by one ticket.
            One credit is charged per started hour. Default 2.
        bank_transfer_payout_amount: Flat engineer payout per ticket on the
            batched rail. Default 2000.
        currency: Settlement currency for batch items. Default "USD".
        batch_item_reference: Reference printed on bank-transfer payouts.
    """

    max_credits_per_ticket: int = 2
    bank_transfer_payout_amount: int = 2000
    currency: str = "USD"
    batch_item_reference: str = "Unjam"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_credits_per_ticket < 1:
            raise ValueError("max_credits_per_ticket must be at least 1")
        if self.bank_transfer_payout_amount <= 0:
            raise ValueError("bank_transfer_payout_amount must be positive")
        if len(self.currency) != 3:
            raise ValueError("currency must be a 3-letter ISO code")


@dataclass(frozen=True)
class QueueConfig:
    """
    Ticket payment queue behaviour.

    Attributes:
        queue_name: Queue drained by the consumer.
        error_queue_name: Dead-letter queue for exhausted messages.
        visibility_timeout_seconds: Lease duration for a read. Default 30.
        retry_delay_seconds: Delay before a failed message is redelivered.
            Default 1800 (30 minutes).
        max_retries: Retries before dead-lettering. Default 3.
    """

    queue_name: str = "ticket_payments"
    error_queue_name: str = "ticket_payments_errors"
    visibility_timeout_seconds: int = 30
    retry_delay_seconds: int = 1800
    max_retries: int = 3

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.queue_name or not self.error_queue_name:
            raise ValueError("queue names are required")
        if self.queue_name == self.error_queue_name:
            raise ValueError("error_queue_name must differ from queue_name")
        if self.visibility_timeout_seconds < 1:
            raise ValueError("visibility_timeout_seconds must be at least 1")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds cannot be negative")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")


@dataclass(frozen=True)
class SettlementConfig:
    """Top-level settlement configuration."""

    payout: PayoutConfig = field(default_factory=PayoutConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> SettlementConfig:
        """Build configuration from application settings."""
        return cls(
            payout=PayoutConfig(
                bank_transfer_payout_amount=settings.bank_transfer_payout_amount,
            ),
            queue=QueueConfig(
                queue_name=settings.queue_name,
                error_queue_name=settings.error_queue_name,
                retry_delay_seconds=settings.queue_retry_seconds,
                max_retries=settings.queue_max_retries,
            ),
        )
