"""Settlement error taxonomy.

Validation errors are raised before any TransferRecord exists and leave no
trace. Errors raised after the record exists are recorded on it by the
orchestrator and re-raised as PaymentFailedError.
"""

from __future__ import annotations

from uuid import UUID


class SettlementError(Exception):
    """Base class for settlement failures."""


class TicketNotFoundError(SettlementError):
    """Raised when a ticket has no billing info."""

    def __init__(self, ticket_id: UUID | str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class InvalidTicketStateError(SettlementError):
    """Raised when a ticket cannot be settled in its current state."""

    def __init__(self, ticket_id: UUID | str, reason: str):
        self.ticket_id = ticket_id
        self.reason = reason
        super().__init__(f"Ticket {ticket_id} cannot be settled: {reason}")


class MissingBillingIdentityError(SettlementError):
    """Raised when the customer has no invoicing-provider identity."""

    def __init__(self, customer_id: UUID | str):
        self.customer_id = customer_id
        super().__init__(f"No billing customer found for profile {customer_id}")


class NoPaidInvoicesError(SettlementError):
    """Raised when the customer has never paid an invoice."""

    def __init__(self, customer_id: UUID | str):
        self.customer_id = customer_id
        super().__init__(f"No paid invoices found for customer {customer_id}")


class InsufficientCreditsError(SettlementError):
    """Raised when paid invoices cannot cover the consumed credits."""

    def __init__(self, needed: int, available: int):
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient credits: need {needed}, only {available} available"
        )


class NoPayoutAccountError(SettlementError):
    """Raised when the engineer has no usable payout rail."""

    def __init__(
        self,
        engineer_id: UUID | str,
        *,
        has_connected_account: bool,
        charges_enabled: bool,
        payouts_enabled: bool,
        has_bank_account: bool,
    ):
        self.engineer_id = engineer_id
        super().__init__(
            f"No payout account available for engineer {engineer_id} "
            f"(connected account: {has_connected_account}, "
            f"charges_enabled: {charges_enabled}, "
            f"payouts_enabled: {payouts_enabled}, "
            f"active bank transfer account: {has_bank_account})"
        )


class AlreadyInProgressError(SettlementError):
    """Raised when a non-terminal TransferRecord already exists for the ticket."""

    def __init__(self, ticket_id: UUID | str, status: str | None = None):
        self.ticket_id = ticket_id
        self.status = status
        msg = f"Transfer already in progress for ticket {ticket_id}"
        if status:
            msg += f" (status: {status})"
        super().__init__(msg)


class TransferPreviouslyFailedError(SettlementError):
    """Raised when the ticket's TransferRecord is already failed.

    Failed records are not retried automatically; they need manual triage.
    """

    def __init__(self, ticket_id: UUID | str, error_message: str | None):
        self.ticket_id = ticket_id
        self.error_message = error_message
        super().__init__(
            f"Transfer previously failed for ticket {ticket_id}: "
            f"{error_message or 'unknown error'}"
        )


class InsufficientFundsError(SettlementError):
    """Raised when neither available nor pending balance covers a payout."""

    MESSAGE = "Insufficient funds (both available and pending balance). Manual triage required."

    def __init__(self, required: int, available: int, pending: int):
        self.required = required
        self.available = available
        self.pending = pending
        super().__init__(self.MESSAGE)


class BatchItemMismatchError(SettlementError):
    """Raised when a submitted batch item cannot be found after creation."""

    def __init__(self, batch_id: str, request_ids: list[str]):
        self.batch_id = batch_id
        self.request_ids = request_ids
        super().__init__(
            f"Batch {batch_id} is missing items for request ids: {', '.join(request_ids)}"
        )


class ProviderError(SettlementError):
    """Raised when an external provider call fails."""

    def __init__(self, provider: str, operation: str, message: str):
        self.provider = provider
        self.operation = operation
        super().__init__(f"{provider} {operation} failed: {message}")


class PaymentFailedError(SettlementError):
    """Raised after a failure was recorded on the ticket's TransferRecord."""

    def __init__(self, ticket_id: UUID | str, transfer_id: UUID, message: str):
        self.ticket_id = ticket_id
        self.transfer_id = transfer_id
        super().__init__(f"Payment failed for ticket {ticket_id}: {message}")
