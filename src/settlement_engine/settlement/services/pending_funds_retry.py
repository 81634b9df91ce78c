"""Re-check of transfers deferred for pending funds.

Runs on a schedule. Each `pending_funds` record is paid once the platform's
available balance covers it; the rest stay deferred for the next run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from settlement_engine.settlement.providers.base import (
    BillingBalanceService,
    BillingEngineerPayoutService,
    TransferResult,
)
from settlement_engine.settlement.services.balance_gate import BalanceGate, Sufficient
from settlement_engine.settlement.services.transfer_executor import transfer_idempotency_key
from settlement_engine.settlement.stores.base import (
    BillingEngineerStore,
    BillingEngineerTransferStore,
    TicketStore,
)
from settlement_engine.settlement.types import (
    Clock,
    EngineerAccount,
    TicketStatus,
    TransferRecord,
    TransferStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    processed: int = 0
    completed: int = 0
    still_pending: int = 0
    errors: int = 0




class PendingFundsRetryJob:
    """Pays deferred immediate-rail transfers whose funds have settled."""

    def __init__(
        self,
        *,
        transfer_store: BillingEngineerTransferStore,
        ticket_store: TicketStore,
        engineer_store: BillingEngineerStore,
        payout_service: BillingEngineerPayoutService,
        balance_service: BillingBalanceService,
        clock: Clock = utcnow,
    ):
        self.transfer_store = transfer_store
        self.ticket_store = ticket_store
        self.engineer_store = engineer_store
        self.payout_service = payout_service
        self.balance_service = balance_service
        self.clock = clock

    async def run(self) -> RetryResult:
        """Retry every pending_funds transfer. Per-record errors never stop the run.

        A record only becomes `failed` when paying it raised. An engineer
        without a usable account, or a bookkeeping error after the payout,
        leaves the record `pending_funds` for the next run.
        """
        transfers = await self.transfer_store.fetch_by_status(TransferStatus.PENDING_FUNDS)
        logger.info("Retrying %d pending_funds transfer(s)", len(transfers))

        completed = still_pending = errors = 0
        for transfer in transfers:
            try:
                engineer = await self._payable_engineer(transfer)
            except Exception as exc:
                errors += 1
                logger.error("Could not load engineer for transfer %s: %s", transfer.id, exc)
                continue
            if engineer is None:
                errors += 1
                continue

            try:
                result = await self._pay(transfer, engineer)
            except Exception as exc:
                errors += 1
                logger.error("Retry failed for transfer %s: %s", transfer.id, exc)
                await self._record_failure(transfer, f"Retry failed: {exc}")
                continue
            if result is None:
                still_pending += 1
                continue

            try:
                await self.transfer_store.update(
                    transfer.id,
                    status=TransferStatus.COMPLETED,
                    amount=result.amount,
                    platform_profit=result.platform_profit,
                    provider_transfer_id=result.transfer_id,
                    available_for_transfer_at=self.clock(),
                )
            except Exception:
                # The idempotency key replays this payout on the next run
                errors += 1
                logger.exception(
                    "Transfer %s paid as %s but not recorded", transfer.id, result.transfer_id
                )
                continue

            completed += 1
            logger.info("Transfer %s completed on retry (%s)", transfer.id, result.transfer_id)
            try:
                await self.ticket_store.update_status(transfer.ticket_id, TicketStatus.COMPLETED)
            except Exception:
                logger.exception("Could not mark ticket %s as completed", transfer.ticket_id)

        return RetryResult(
            processed=len(transfers),
            completed=completed,
            still_pending=still_pending,
            errors=errors,
        )

    async def _payable_engineer(self, transfer: TransferRecord) -> EngineerAccount | None:
        engineer = await self.engineer_store.get_by_profile_id(transfer.engineer_id)
        if engineer is None or not engineer.can_receive_transfers:
            logger.warning(
                "Transfer %s left pending: engineer %s has no usable connected account",
                transfer.id,
                transfer.engineer_id,
            )
            return None
        return engineer

    async def _pay(
        self, transfer: TransferRecord, engineer: EngineerAccount
    ) -> TransferResult | None:
        outcome = await BalanceGate(self.balance_service).evaluate(transfer.amount)
        if not isinstance(outcome, Sufficient):
            logger.info(
                "Transfer %s still waiting on funds (need %d, available %d)",
                transfer.id,
                transfer.amount,
                outcome.available,
            )
            return None

        return await self.payout_service.create_transfer(
            ticket_id=str(transfer.ticket_id),
            engineer_id=str(transfer.engineer_id),
            engineer_account_id=engineer.account_id,
            customer_id=str(transfer.customer_id),
            credit_value=transfer.credit_value,
            payout_amount=transfer.amount,
            idempotency_key=transfer_idempotency_key(transfer),
        )

    async def _record_failure(self, transfer: TransferRecord, message: str) -> None:
        try:
            await self.transfer_store.update(
                transfer.id, status=TransferStatus.FAILED, error_message=message
            )
            await self.ticket_store.update_status(
                transfer.ticket_id, TicketStatus.PAYMENT_FAILED
            )
        except Exception:
            logger.exception("Could not record retry failure for transfer %s", transfer.id)
