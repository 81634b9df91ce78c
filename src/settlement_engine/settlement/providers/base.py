"""Base protocols and types for billing and payout providers.

Services depend on these protocols only. Concrete adapters are injected
at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from settlement_engine.settlement.types import PaidInvoice


@dataclass(frozen=True)
class TransferResult:
    """Result of an immediate-rail transfer."""

    transfer_id: str
    amount: int
    platform_profit: int


@dataclass(frozen=True)
class BalanceInfo:
    """Platform balance on the immediate rail."""

    available: int
    pending: int
    currency: str = "usd"


@dataclass(frozen=True)
class BatchGroupResponse:
    """External payout batch."""

    id: str
    name: str
    status: str


@dataclass(frozen=True)
class AddBatchItemRequest:
    """One payout line submitted to a batch. Amount is in major units."""

    beneficiary_id: str
    transfer_amount: Decimal
    request_id: str
    reference: str
    source_currency: str = "USD"
    transfer_currency: str = "USD"
    transfer_method: str = "LOCAL"
    reason: str = "Contractor payment"


@dataclass(frozen=True)
class BatchItemResponse:
    """A batch item as reported by the payout network."""

    id: str
    request_id: str
    beneficiary_id: str
    transfer_amount: Decimal
    status: str


class BillingInvoiceService(Protocol):
    """Read paid invoices for a customer."""

    async def fetch_paid_invoices_with_products(
        self, provider_customer_id: str
    ) -> list[PaidInvoice]:
        """Return paid invoices, oldest paid first."""
        ...


class BillingMeterService(Protocol):
    """Usage metering against the customer's credits."""

    async def record_ticket_completion(
        self,
        *,
        customer_id: str,
        ticket_id: str,
        value: int,
        idempotency_key: str,
    ) -> None:
        """Record credits consumed by a ticket."""
        ...


class BillingEngineerPayoutService(Protocol):
    """Immediate-rail payouts to connected accounts."""

    async def fetch_payout_amount(self, account_id: str) -> int:
        """Return the per-ticket payout configured for the account."""
        ...

    async def create_transfer(
        self,
        *,
        ticket_id: str,
        engineer_id: str,
        engineer_account_id: str,
        customer_id: str,
        credit_value: int,
        payout_amount: int,
        idempotency_key: str,
    ) -> TransferResult:
        """Move payout_amount to the engineer's account."""
        ...


class BillingBalanceService(Protocol):
    """Platform balance queries."""

    async def get_balance(self) -> BalanceInfo:
        """Return available and pending balance."""
        ...


class BillingBatchGroupService(Protocol):
    """External payout batches."""

    async def create_batch_group(self, *, name: str, request_id: str) -> BatchGroupResponse:
        """Open a new batch."""
        ...

    async def submit_batch_group(self, batch_group_id: str) -> BatchGroupResponse:
        """Submit a batch for execution."""
        ...


class BillingBatchGroupItemService(Protocol):
    """Items within an external payout batch."""

    max_items_per_request: int

    async def add_items_to_batch(
        self, batch_group_id: str, items: list[AddBatchItemRequest]
    ) -> None:
        """Add items to an open batch (at most max_items_per_request)."""
        ...

    async def get_batch_items(self, batch_group_id: str) -> list[BatchItemResponse]:
        """List all items in a batch."""
        ...
