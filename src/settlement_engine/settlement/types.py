"""Value types shared across settlement services.

Money is always an integer number of minor currency units (cents).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable
from uuid import UUID


class TicketStatus(str, Enum):
    """Ticket statuses written by the settlement pipeline."""

    PENDING_PAYMENT = "pending-payment"
    COMPLETED = "completed"
    PAYMENT_FAILED = "payment-failed"


class TransferStatus(str, Enum):
    """TransferRecord lifecycle."""

    PENDING = "pending"
    PENDING_FUNDS = "pending_funds"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutService(str, Enum):
    """Payout rails."""

    STRIPE_CONNECT = "stripe_connect"
    BANK_TRANSFER = "bank_transfer"


class BatchGroupStatus(str, Enum):
    """Local batch group statuses."""

    CREATED = "CREATED"
    SCHEDULED = "SCHEDULED"


def as_uuid(value: UUID | str) -> UUID:
    """Coerce an identifier to UUID."""
    return value if isinstance(value, UUID) else UUID(str(value))


@dataclass(frozen=True)
class TicketBillingInfo:
    """The slice of a ticket that settlement needs."""

    id: UUID
    customer_id: UUID
    engineer_id: UUID | None
    status: str
    created_at: datetime
    claimed_at: datetime | None = None
    mark_as_fixed_at: datetime | None = None
    resolved_at: datetime | None = None


@dataclass(frozen=True)
class EngineerAccount:
    """Immediate-rail connected account."""

    account_id: str
    charges_enabled: bool
    payouts_enabled: bool

    @property
    def can_receive_transfers(self) -> bool:
        return self.charges_enabled and self.payouts_enabled


@dataclass(frozen=True)
class BankTransferAccount:
    """Batched-rail beneficiary."""

    beneficiary_id: str
    active: bool


@dataclass(frozen=True)
class InvoiceLineItem:
    """Credits purchased on one invoice line."""

    invoice_id: str
    credits_from_line_item: int
    credit_price: int


@dataclass(frozen=True)
class PaidInvoice:
    """A paid invoice and its credit-bearing line items."""

    id: str
    paid_at: datetime
    line_items: list[InvoiceLineItem] = field(default_factory=list)


@dataclass(frozen=True)
class AllocatedLineItem:
    """Credits consumed from one invoice line."""

    invoice_id: str
    credits_allocated: int
    credit_price: int

    @property
    def value(self) -> int:
        return self.credits_allocated * self.credit_price


@dataclass(frozen=True)
class TransferRecord:
    """Durable per-ticket settlement record."""

    id: UUID
    ticket_id: UUID
    engineer_id: UUID
    customer_id: UUID
    service: PayoutService
    status: TransferStatus
    credits_used: int
    credit_value: int
    amount: int = 0
    platform_profit: int = 0
    provider_transfer_id: str | None = None
    error_message: str | None = None
    batch_group_item_id: UUID | None = None
    available_for_transfer_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class EngineerTransferGroup:
    """Pending bank transfers aggregated for one engineer."""

    engineer_id: UUID
    total_amount: int
    total_platform_profit: int
    transfer_ids: list[UUID] = field(default_factory=list)


@dataclass(frozen=True)
class BatchGroupRecord:
    """Persisted batch group."""

    id: UUID
    external_batch_group_id: str
    name: str
    version: int
    status: str


@dataclass(frozen=True)
class BatchGroupItemRecord:
    """Persisted batch group item."""

    id: UUID
    external_id: str
    batch_group_id: UUID
    engineer_id: UUID
    external_engineer_id: str
    total_amount: int
    total_platform_profit: int
    status: str


@dataclass(frozen=True)
class QueueMessage:
    """A message leased from a work queue."""

    msg_id: int
    read_ct: int
    enqueued_at: datetime
    vt: datetime
    message: dict[str, Any]


@dataclass(frozen=True)
class TicketPaymentPayload:
    """Body of a ticket_payments queue message."""

    ticket_id: str
    assigned_to: str | None = None
    created_by: str | None = None
    marked_as_fixed_at: str | None = None
    auto_complete_timeout_at: str | None = None
    retry_count: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TicketPaymentPayload:
        """Parse a queue message body.

        Raises:
            ValueError: If ticket_id is missing or retry_count is not an integer.
        """
        ticket_id = data.get("ticket_id")
        if not ticket_id:
            raise ValueError("Queue message is missing ticket_id")
        return cls(
            ticket_id=str(ticket_id),
            assigned_to=data.get("assigned_to"),
            created_by=data.get("created_by"),
            marked_as_fixed_at=data.get("marked_as_fixed_at"),
            auto_complete_timeout_at=data.get("auto_complete_timeout_at"),
            retry_count=int(data.get("retry_count") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "assigned_to": self.assigned_to,
            "created_by": self.created_by,
            "marked_as_fixed_at": self.marked_as_fixed_at,
            "auto_complete_timeout_at": self.auto_complete_timeout_at,
            "retry_count": self.retry_count,
        }


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current UTC time. Services take a Clock so tests can pin it."""
    return datetime.now(timezone.utc)
