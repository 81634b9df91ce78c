"""Transfer execution for both payout rails.

Both rails record the customer's usage first. The immediate rail then
consults a fresh BalanceGate and moves money; the batched rail only prices
the payout and leaves the money movement to the weekly batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from settlement_engine.settlement.config import PayoutConfig
from settlement_engine.settlement.providers.base import (
    BillingBalanceService,
    BillingEngineerPayoutService,
    BillingMeterService,
)
from settlement_engine.settlement.services.balance_gate import (
    BalanceGate,
    InsufficientFunds,
    PendingFunds,
    Sufficient,
)
from settlement_engine.settlement.services.precondition_validator import (
    TransferPrerequisites,
)
from settlement_engine.settlement.types import TransferRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferCompleted:
    """Money moved on the immediate rail."""

    transfer_id: str
    amount: int
    platform_profit: int


@dataclass(frozen=True)
class TransferDeferred:
    """Immediate-rail payout not attempted because funds are not available."""

    outcome: Union[PendingFunds, InsufficientFunds]
    amount: int
    platform_profit: int


ImmediateOutcome = Union[TransferCompleted, TransferDeferred]


@dataclass(frozen=True)
class BatchedTransferPlan:
    """Priced payout waiting for the batch job."""

    amount: int
    platform_profit: int


def meter_idempotency_key(transfer: TransferRecord) -> str:
    return f"ticket-completion-{transfer.id}"


def transfer_idempotency_key(transfer: TransferRecord) -> str:
    return f"engineer-transfer-{transfer.id}"


class TransferExecutor:
    """Executes payouts against the provider services."""

    def __init__(
        self,
        *,
        meter_service: BillingMeterService,
        payout_service: BillingEngineerPayoutService,
        balance_service: BillingBalanceService,
        config: PayoutConfig | None = None,
    ):
        self.meter_service = meter_service
        self.payout_service = payout_service
        self.balance_service = balance_service
        self.config = config or PayoutConfig()

    async def record_usage(
        self, transfer: TransferRecord, prerequisites: TransferPrerequisites
    ) -> None:
        """Record the ticket's credits against the customer."""
        await self.meter_service.record_ticket_completion(
            customer_id=prerequisites.provider_customer_id,
            ticket_id=str(transfer.ticket_id),
            value=prerequisites.credits_used,
            idempotency_key=meter_idempotency_key(transfer),
        )

    async def execute_immediate(
        self,
        *,
        transfer: TransferRecord,
        prerequisites: TransferPrerequisites,
        engineer_account_id: str,
    ) -> ImmediateOutcome:
        await self.record_usage(transfer, prerequisites)

        payout_amount = await self.payout_service.fetch_payout_amount(engineer_account_id)
        platform_profit = prerequisites.credit_value - payout_amount

        outcome = await BalanceGate(self.balance_service).evaluate(payout_amount)
        if not isinstance(outcome, Sufficient):
            logger.warning(
                "Ticket %s payout of %d deferred: %s (available=%d, pending=%d)",
                transfer.ticket_id,
                payout_amount,
                outcome.kind,
                outcome.available,
                outcome.pending,
            )
            return TransferDeferred(
                outcome=outcome, amount=payout_amount, platform_profit=platform_profit
            )

        result = await self.payout_service.create_transfer(
            ticket_id=str(transfer.ticket_id),
            engineer_id=str(transfer.engineer_id),
            engineer_account_id=engineer_account_id,
            customer_id=str(transfer.customer_id),
            credit_value=prerequisites.credit_value,
            payout_amount=payout_amount,
            idempotency_key=transfer_idempotency_key(transfer),
        )
        logger.info(
            "Ticket %s paid %d to %s (transfer %s)",
            transfer.ticket_id,
            result.amount,
            engineer_account_id,
            result.transfer_id,
        )
        return TransferCompleted(
            transfer_id=result.transfer_id,
            amount=result.amount,
            platform_profit=result.platform_profit,
        )

    async def execute_batched(
        self, *, transfer: TransferRecord, prerequisites: TransferPrerequisites
    ) -> BatchedTransferPlan:
        await self.record_usage(transfer, prerequisites)
        amount = self.config.bank_transfer_payout_amount
        return BatchedTransferPlan(
            amount=amount,
            platform_profit=prerequisites.credit_value - amount,
        )
