"""Tests for PendingFundsRetryJob."""

from typing import Any
from uuid import UUID, uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.models import BillingEngineer
from settlement_engine.settlement.engine import SettlementEngine
from settlement_engine.settlement.providers import StripeStubProvider
from settlement_engine.settlement.types import PayoutService, TicketStatus, TransferStatus
from tests.settlement.conftest import NOW, SettlementTestData


class FailingTicketStore:
    """Ticket store whose writes of one status raise."""

    def __init__(self, inner: Any, failing_status: TicketStatus):
        self.inner = inner
        self.failing_status = failing_status

    async def fetch_billing_info(self, ticket_id):
        return await self.inner.fetch_billing_info(ticket_id)

    async def update_status(self, ticket_id, status):
        if status == self.failing_status:
            raise ConnectionError("database unavailable")
        await self.inner.update_status(ticket_id, status)


class FailingCompletionStore:
    """Transfer store that cannot record a completed transfer."""

    def __init__(self, inner: Any):
        self.inner = inner

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)

    async def update(self, transfer_id, **changes):
        if changes.get("status") == TransferStatus.COMPLETED:
            raise ConnectionError("database unavailable")
        return await self.inner.update(transfer_id, **changes)


async def deferred_transfer(
    test_data: SettlementTestData,
    *,
    amount: int = 2000,
    payouts_enabled: bool = True,
) -> tuple[UUID, UUID]:
    """A connected-account ticket whose transfer is waiting on funds."""
    customer_id, _ = await test_data.create_customer()
    engineer_id, _ = await test_data.create_connect_engineer(payouts_enabled=payouts_enabled)
    ticket_id = await test_data.create_ticket(
        customer_id=customer_id, engineer_id=engineer_id, resolved_at=NOW
    )
    await test_data.create_transfer(
        engineer_id=engineer_id,
        customer_id=customer_id,
        ticket_id=ticket_id,
        amount=amount,
        status=TransferStatus.PENDING_FUNDS.value,
        service=PayoutService.STRIPE_CONNECT.value,
    )
    return ticket_id, engineer_id


class TestPendingFundsRetry:
    """Test the scheduled re-check of deferred transfers."""

    async def test_nothing_to_retry(self, settlement: SettlementEngine):
        result = await settlement.retry_pending_transfers()

        assert result.processed == 0
        assert result.completed == 0

    async def test_pays_once_funds_are_available(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        ticket_id, _ = await deferred_transfer(test_data)

        result = await settlement.retry_pending_transfers()

        assert result.processed == 1
        assert result.completed == 1
        transfer = await test_data.fetch_transfer(ticket_id)
        assert transfer.status == TransferStatus.COMPLETED
        assert transfer.provider_transfer_id.startswith("tr_")
        assert transfer.available_for_transfer_at is not None
        assert await test_data.fetch_ticket_status(ticket_id) == "completed"
        assert stripe.available == 100_000 - 2000

    async def test_stays_deferred_while_funds_are_pending(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        ticket_id, _ = await deferred_transfer(test_data)
        stripe.simulate_balance(available=500, pending=5000)

        result = await settlement.retry_pending_transfers()

        assert result.still_pending == 1
        assert result.completed == 0
        transfer = await test_data.fetch_transfer(ticket_id)
        assert transfer.status == TransferStatus.PENDING_FUNDS
        assert stripe.transfers == []

    async def test_retry_does_not_pay_twice(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        await deferred_transfer(test_data)

        await settlement.retry_pending_transfers()
        second = await settlement.retry_pending_transfers()

        assert second.processed == 0
        assert len(stripe.transfers) == 1

    async def test_unusable_account_leaves_record_deferred(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        """A restricted connected account is an error, not a final failure."""
        ticket_id, _ = await deferred_transfer(test_data, payouts_enabled=False)

        result = await settlement.retry_pending_transfers()

        assert result.errors == 1
        assert result.completed == 0
        transfer = await test_data.fetch_transfer(ticket_id)
        assert transfer.status == TransferStatus.PENDING_FUNDS
        assert transfer.error_message is None
        assert await test_data.fetch_ticket_status(ticket_id) == "pending-payment"
        assert stripe.transfers == []

    async def test_missing_account_leaves_record_deferred(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
    ):
        engineer_id = uuid4()
        await test_data.create_transfer(
            engineer_id=engineer_id,
            amount=2000,
            status=TransferStatus.PENDING_FUNDS.value,
            service=PayoutService.STRIPE_CONNECT.value,
        )

        result = await settlement.retry_pending_transfers()

        assert result.errors == 1
        [transfer] = await settlement.transfer_store.fetch_by_status(TransferStatus.PENDING_FUNDS)
        assert transfer.engineer_id == engineer_id

    async def test_account_enabled_later_is_paid(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        db: AsyncSession,
    ):
        ticket_id, engineer_id = await deferred_transfer(test_data, payouts_enabled=False)
        await settlement.retry_pending_transfers()

        await db.execute(
            update(BillingEngineer)
            .where(BillingEngineer.profile_id == engineer_id)
            .values(payouts_enabled=True)
        )
        await db.commit()
        result = await settlement.retry_pending_transfers()

        assert result.completed == 1
        assert (await test_data.fetch_transfer(ticket_id)).status == TransferStatus.COMPLETED

    async def test_ticket_status_error_keeps_transfer_completed(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
        caplog: pytest.LogCaptureFixture,
    ):
        """Money moved, so the record stays completed even if the ticket write fails."""
        ticket_id, _ = await deferred_transfer(test_data)
        job = settlement.retry_job()
        job.ticket_store = FailingTicketStore(job.ticket_store, TicketStatus.COMPLETED)

        result = await job.run()

        assert result.completed == 1
        assert result.errors == 0
        transfer = await test_data.fetch_transfer(ticket_id)
        assert transfer.status == TransferStatus.COMPLETED
        assert transfer.error_message is None
        assert len(stripe.transfers) == 1
        assert f"Could not mark ticket {ticket_id} as completed" in caplog.text

    async def test_unrecorded_payout_is_replayed_not_failed(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        """A payout that could not be recorded is retried under the same key."""
        ticket_id, _ = await deferred_transfer(test_data)
        job = settlement.retry_job()
        job.transfer_store = FailingCompletionStore(job.transfer_store)

        first = await job.run()

        assert first.errors == 1
        assert (await test_data.fetch_transfer(ticket_id)).status == TransferStatus.PENDING_FUNDS

        second = await settlement.retry_pending_transfers()

        assert second.completed == 1
        assert (await test_data.fetch_transfer(ticket_id)).status == TransferStatus.COMPLETED
        assert len(stripe.transfers) == 1
        assert stripe.available == 100_000 - 2000


    async def test_one_failure_does_not_stop_the_run(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        stripe: StripeStubProvider,
    ):
        await deferred_transfer(test_data)
        await deferred_transfer(test_data)
        stripe.simulate_failure("create_transfer", "card_declined")

        result = await settlement.retry_pending_transfers()

        assert result.processed == 2
        assert result.errors == 1
        assert result.completed == 1
        assert len(stripe.transfers) == 1

    @pytest.mark.parametrize("status", [TransferStatus.PENDING, TransferStatus.FAILED])
    async def test_ignores_other_statuses(
        self,
        settlement: SettlementEngine,
        test_data: SettlementTestData,
        status: TransferStatus,
    ):
        engineer_id, _ = await test_data.create_connect_engineer()
        await test_data.create_transfer(
            engineer_id=engineer_id,
            amount=2000,
            status=status.value,
            service=PayoutService.STRIPE_CONNECT.value,
        )

        result = await settlement.retry_pending_transfers()

        assert result.processed == 0
