"""Precondition validation: credits consumed and FIFO allocation against paid invoices.

Pure read/compute. Nothing here writes, so a failure leaves no trace and the
ticket can be settled again once the underlying problem is fixed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from settlement_engine.settlement.config import PayoutConfig
from settlement_engine.settlement.exceptions import (
    InsufficientCreditsError,
    InvalidTicketStateError,
    MissingBillingIdentityError,
    NoPaidInvoicesError,
    TicketNotFoundError,
)
from settlement_engine.settlement.providers.base import BillingInvoiceService
from settlement_engine.settlement.stores.base import BillingCustomerStore, TicketStore
from settlement_engine.settlement.types import (
    AllocatedLineItem,
    Clock,
    PaidInvoice,
    TicketBillingInfo,
    utcnow,
)

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class TransferPrerequisites:
    """Everything the orchestrator needs to pay for a ticket."""

    ticket: TicketBillingInfo
    engineer_id: UUID
    provider_customer_id: str
    credits_used: int
    credit_value: int
    allocated_line_items: list[AllocatedLineItem] = field(default_factory=list)

    @property
    def customer_id(self) -> UUID:
        return self.ticket.customer_id


def compute_credits_used(ticket: TicketBillingInfo, now: datetime, cap: int) -> int:
    """One credit per started hour of engineer time, capped.

    Time runs from claim (or creation) to resolution (or mark-as-fixed, or now).
    """
    start = ticket.claimed_at or ticket.created_at
    end = ticket.resolved_at or ticket.mark_as_fixed_at or now
    elapsed_hours = (end - start).total_seconds() / SECONDS_PER_HOUR
    if elapsed_hours <= 0:
        return 0
    return min(math.ceil(elapsed_hours), cap)


def allocate_credits_fifo(
    invoices: list[PaidInvoice], credits_needed: int
) -> list[AllocatedLineItem]:
    """Allocate credits oldest invoice first, earliest line item first.

    Raises:
        InsufficientCreditsError: If the invoices hold fewer credits than needed.
            Nothing is allocated in that case.
    """
    allocations: list[AllocatedLineItem] = []
    remaining = credits_needed

    for invoice in sorted(invoices, key=lambda inv: inv.paid_at):
        for item in invoice.line_items:
            if remaining <= 0:
                break
            take = min(item.credits_from_line_item, remaining)
            if take <= 0:
                continue
            allocations.append(
                AllocatedLineItem(
                    invoice_id=item.invoice_id,
                    credits_allocated=take,
                    credit_price=item.credit_price,
                )
            )
            remaining -= take
        if remaining <= 0:
            break

    if remaining > 0:
        available = sum(
            item.credits_from_line_item for inv in invoices for item in inv.line_items
        )
        raise InsufficientCreditsError(needed=credits_needed, available=available)

    return allocations


class PreconditionValidator:
    """Loads and checks everything a settlement depends on."""

    def __init__(
        self,
        *,
        ticket_store: TicketStore,
        customer_store: BillingCustomerStore,
        invoice_service: BillingInvoiceService,
        config: PayoutConfig | None = None,
        clock: Clock = utcnow,
    ):
        self.ticket_store = ticket_store
        self.customer_store = customer_store
        self.invoice_service = invoice_service
        self.config = config or PayoutConfig()
        self.clock = clock

    async def validate(self, ticket_id: UUID) -> TransferPrerequisites:
        """Validate a ticket for settlement.

        Raises:
            TicketNotFoundError: No billing info for the ticket.
            InvalidTicketStateError: The ticket has no engineer assigned.
            MissingBillingIdentityError: The customer has no provider identity.
            NoPaidInvoicesError: The customer never paid an invoice.
            InsufficientCreditsError: Paid credits do not cover the ticket.
        """
        ticket = await self.ticket_store.fetch_billing_info(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        if ticket.engineer_id is None:
            raise InvalidTicketStateError(ticket_id, "no engineer assigned")

        provider_customer_id = await self.customer_store.get_by_profile_id(
            ticket.customer_id
        )
        if not provider_customer_id:
            raise MissingBillingIdentityError(ticket.customer_id)

        credits_used = compute_credits_used(
            ticket, self.clock(), self.config.max_credits_per_ticket
        )

        invoices = await self.invoice_service.fetch_paid_invoices_with_products(
            provider_customer_id
        )
        if not invoices:
            raise NoPaidInvoicesError(ticket.customer_id)

        allocations = allocate_credits_fifo(invoices, credits_used)
        credit_value = sum(a.value for a in allocations)

        logger.info(
            "Ticket %s consumed %d credit(s) worth %d across %d line item(s)",
            ticket_id,
            credits_used,
            credit_value,
            len(allocations),
        )
        return TransferPrerequisites(
            ticket=ticket,
            engineer_id=ticket.engineer_id,
            provider_customer_id=provider_customer_id,
            credits_used=credits_used,
            credit_value=credit_value,
            allocated_line_items=allocations,
        )
