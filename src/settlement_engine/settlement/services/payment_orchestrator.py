"""Payment orchestrator - settles one ticket end to end.

Flow:
    idempotency check -> preconditions -> rail selection -> TransferRecord
    -> immediate or batched rail -> record outcome -> ticket status

The TransferRecord is written before any money moves so a crash mid-transfer
always leaves an inspectable row. Its unique ticket_id is the only guard
against paying a ticket twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from settlement_engine.settlement.config import PayoutConfig
from settlement_engine.settlement.exceptions import (
    AlreadyInProgressError,
    InsufficientFundsError,
    NoPayoutAccountError,
    PaymentFailedError,
    TransferPreviouslyFailedError,
)
from settlement_engine.settlement.providers.base import (
    BillingBalanceService,
    BillingEngineerPayoutService,
    BillingInvoiceService,
    BillingMeterService,
)
from settlement_engine.settlement.services.balance_gate import PendingFunds
from settlement_engine.settlement.services.precondition_validator import (
    PreconditionValidator,
    TransferPrerequisites,
)
from settlement_engine.settlement.services.transfer_executor import (
    TransferCompleted,
    TransferExecutor,
)
from settlement_engine.settlement.stores.base import (
    BankTransferAccountStore,
    BillingCustomerStore,
    BillingEngineerStore,
    BillingEngineerTransferStore,
    TicketStore,
)
from settlement_engine.settlement.types import (
    Clock,
    PayoutService,
    TicketStatus,
    TransferRecord,
    TransferStatus,
    as_uuid,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a successful (or deferred) settlement."""

    ticket_id: UUID
    transfer_id: UUID
    status: TransferStatus
    service: PayoutService
    amount: int = 0
    platform_profit: int = 0
    already_settled: bool = False


@dataclass(frozen=True)
class RailSelection:
    service: PayoutService
    account_id: str


class PaymentOrchestrator:
    """Settles tickets through the immediate or batched payout rail."""

    def __init__(
        self,
        *,
        ticket_store: TicketStore,
        customer_store: BillingCustomerStore,
        engineer_store: BillingEngineerStore,
        bank_account_store: BankTransferAccountStore,
        transfer_store: BillingEngineerTransferStore,
        invoice_service: BillingInvoiceService,
        meter_service: BillingMeterService,
        payout_service: BillingEngineerPayoutService,
        balance_service: BillingBalanceService,
        config: PayoutConfig | None = None,
        clock: Clock = utcnow,
    ):
        config = config or PayoutConfig()
        self.ticket_store = ticket_store
        self.engineer_store = engineer_store
        self.bank_account_store = bank_account_store
        self.transfer_store = transfer_store
        self.clock = clock
        self.validator = PreconditionValidator(
            ticket_store=ticket_store,
            customer_store=customer_store,
            invoice_service=invoice_service,
            config=config,
            clock=clock,
        )
        self.executor = TransferExecutor(
            meter_service=meter_service,
            payout_service=payout_service,
            balance_service=balance_service,
            config=config,
        )

    async def process_payment(self, ticket_id: UUID | str) -> SettlementResult:
        """Settle payment for a ticket.

        Returns:
            SettlementResult. A deferred payout (pending funds, or batched rail)
            is a success.

        Raises:
            TransferPreviouslyFailedError: The ticket's transfer already failed.
            AlreadyInProgressError: The ticket's transfer is pending elsewhere.
            InsufficientFundsError: No balance can cover the payout.
            PaymentFailedError: Anything else after the TransferRecord existed.
            SettlementError: Precondition failures (no record is created).
        """
        ticket_id = as_uuid(ticket_id)

        existing = await self.transfer_store.fetch_by_ticket_id(ticket_id)
        if existing is not None:
            return self._short_circuit(existing)

        prerequisites = await self.validator.validate(ticket_id)
        rail = await self.select_rail(prerequisites.engineer_id)

        transfer = await self.transfer_store.create_if_absent(
            ticket_id=ticket_id,
            engineer_id=prerequisites.engineer_id,
            customer_id=prerequisites.customer_id,
            service=rail.service,
            credits_used=prerequisites.credits_used,
            credit_value=prerequisites.credit_value,
        )
        if transfer is None:
            # Lost the insert race to a concurrent worker
            raise AlreadyInProgressError(ticket_id)

        logger.info(
            "Settling ticket %s via %s (transfer %s, %d credit(s), value %d)",
            ticket_id,
            rail.service.value,
            transfer.id,
            prerequisites.credits_used,
            prerequisites.credit_value,
        )

        try:
            if rail.service is PayoutService.STRIPE_CONNECT:
                updated = await self._settle_immediate(transfer, prerequisites, rail)
            else:
                updated = await self._settle_batched(transfer, prerequisites)
        except InsufficientFundsError:
            raise
        except Exception as exc:
            logger.error("Payment failed for ticket %s: %s", ticket_id, exc)
            await self._record_failure(transfer, str(exc))
            raise PaymentFailedError(ticket_id, transfer.id, str(exc)) from exc

        ticket_status = (
            TicketStatus.COMPLETED
            if updated.status is TransferStatus.COMPLETED
            else TicketStatus.PENDING_PAYMENT
        )
        await self.ticket_store.update_status(ticket_id, ticket_status)

        return SettlementResult(
            ticket_id=ticket_id,
            transfer_id=updated.id,
            status=updated.status,
            service=updated.service,
            amount=updated.amount,
            platform_profit=updated.platform_profit,
        )

    async def select_rail(self, engineer_id: UUID) -> RailSelection:
        """Prefer the immediate rail, fall back to an active bank-transfer account."""
        engineer = await self.engineer_store.get_by_profile_id(engineer_id)
        if engineer is not None and engineer.can_receive_transfers:
            return RailSelection(PayoutService.STRIPE_CONNECT, engineer.account_id)

        bank_account = await self.bank_account_store.get_by_profile_id(engineer_id)
        if bank_account is not None and bank_account.active:
            return RailSelection(PayoutService.BANK_TRANSFER, bank_account.beneficiary_id)

        raise NoPayoutAccountError(
            engineer_id,
            has_connected_account=engineer is not None,
            charges_enabled=bool(engineer and engineer.charges_enabled),
            payouts_enabled=bool(engineer and engineer.payouts_enabled),
            has_bank_account=False,
        )

    def _short_circuit(self, existing: TransferRecord) -> SettlementResult:
        if existing.status is TransferStatus.COMPLETED:
            logger.info(
                "Ticket %s already settled by transfer %s", existing.ticket_id, existing.id
            )
            return SettlementResult(
                ticket_id=existing.ticket_id,
                transfer_id=existing.id,
                status=existing.status,
                service=existing.service,
                amount=existing.amount,
                platform_profit=existing.platform_profit,
                already_settled=True,
            )
        if existing.status is TransferStatus.FAILED:
            raise TransferPreviouslyFailedError(existing.ticket_id, existing.error_message)
        raise AlreadyInProgressError(existing.ticket_id, existing.status.value)

    async def _settle_immediate(
        self,
        transfer: TransferRecord,
        prerequisites: TransferPrerequisites,
        rail: RailSelection,
    ) -> TransferRecord:
        outcome = await self.executor.execute_immediate(
            transfer=transfer,
            prerequisites=prerequisites,
            engineer_account_id=rail.account_id,
        )

        if isinstance(outcome, TransferCompleted):
            return await self.transfer_store.update(
                transfer.id,
                status=TransferStatus.COMPLETED,
                amount=outcome.amount,
                platform_profit=outcome.platform_profit,
                provider_transfer_id=outcome.transfer_id,
                available_for_transfer_at=self.clock(),
            )

        if isinstance(outcome.outcome, PendingFunds):
            return await self.transfer_store.update(
                transfer.id,
                status=TransferStatus.PENDING_FUNDS,
                amount=outcome.amount,
                platform_profit=outcome.platform_profit,
            )

        error = InsufficientFundsError(
            required=outcome.outcome.required,
            available=outcome.outcome.available,
            pending=outcome.outcome.pending,
        )
        await self.transfer_store.update(
            transfer.id,
            status=TransferStatus.FAILED,
            amount=outcome.amount,
            platform_profit=outcome.platform_profit,
            error_message=str(error),
        )
        await self.ticket_store.update_status(transfer.ticket_id, TicketStatus.PAYMENT_FAILED)
        logger.error(
            "Ticket %s needs manual triage: payout %d exceeds available %d and pending %d",
            transfer.ticket_id,
            error.required,
            error.available,
            error.pending,
        )
        raise error

    async def _settle_batched(
        self, transfer: TransferRecord, prerequisites: TransferPrerequisites
    ) -> TransferRecord:
        plan = await self.executor.execute_batched(
            transfer=transfer, prerequisites=prerequisites
        )
        return await self.transfer_store.update(
            transfer.id,
            status=TransferStatus.PENDING,
            amount=plan.amount,
            platform_profit=plan.platform_profit,
        )

    async def _record_failure(self, transfer: TransferRecord, message: str) -> None:
        """Best-effort failure bookkeeping. Never masks the original error."""
        try:
            await self.transfer_store.update(
                transfer.id, status=TransferStatus.FAILED, error_message=message
            )
        except Exception:
            logger.exception("Could not mark transfer %s as failed", transfer.id)
        try:
            await self.ticket_store.update_status(
                transfer.ticket_id, TicketStatus.PAYMENT_FAILED
            )
        except Exception:
            logger.exception(
                "Could not mark ticket %s as payment-failed", transfer.ticket_id
            )
