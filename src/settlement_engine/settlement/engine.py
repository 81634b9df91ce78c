"""Settlement engine facade.

Wires the SQL stores for one database session to the provider adapters and
exposes the pipeline's entry points.

Usage:
    async with get_session() as session:
        engine = SettlementEngine(session, providers=providers, config=config)
        result = await engine.process_queue()
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.settlement.config import SettlementConfig
from settlement_engine.settlement.providers import (
    AirwallexStubProvider,
    BillingBalanceService,
    BillingBatchGroupItemService,
    BillingBatchGroupService,
    BillingEngineerPayoutService,
    BillingInvoiceService,
    BillingMeterService,
    StripeStubProvider,
)
from settlement_engine.settlement.queue import PgmqQueue, WorkQueue
from settlement_engine.settlement.services import (
    BatchSettlementJob,
    BatchSettlementResult,
    PaymentOrchestrator,
    PendingFundsRetryJob,
    ProcessResult,
    RetryResult,
    SettlementResult,
    TicketConsumer,
)
from settlement_engine.settlement.stores import (
    SqlBankTransferAccountStore,
    SqlBillingBatchGroupItemStore,
    SqlBillingBatchGroupStore,
    SqlBillingCustomerStore,
    SqlBillingEngineerStore,
    SqlBillingEngineerTransferStore,
    SqlTicketStore,
)
from settlement_engine.settlement.types import Clock, utcnow


@dataclass(frozen=True)
class SettlementProviders:
    """External billing and payout collaborators."""

    invoices: BillingInvoiceService
    meter: BillingMeterService
    payouts: BillingEngineerPayoutService
    balance: BillingBalanceService
    batch_groups: BillingBatchGroupService
    batch_items: BillingBatchGroupItemService

    @classmethod
    def stubs(
        cls,
        stripe: StripeStubProvider | None = None,
        airwallex: AirwallexStubProvider | None = None,
    ) -> SettlementProviders:
        """In-memory providers for development and tests."""
        stripe = stripe or StripeStubProvider()
        airwallex = airwallex or AirwallexStubProvider()
        return cls(
            invoices=stripe,
            meter=stripe,
            payouts=stripe,
            balance=stripe,
            batch_groups=airwallex,
            batch_items=airwallex,
        )


@lru_cache(maxsize=1)
def get_providers() -> SettlementProviders:
    """Process-wide provider set.

    Stub adapters until production adapters are wired in. Override this
    dependency in the API, or pass providers explicitly, to swap them.
    """
    return SettlementProviders.stubs()


class SettlementEngine:
    """Entry points of the settlement pipeline for one session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        providers: SettlementProviders,
        config: SettlementConfig | None = None,
        queue: WorkQueue | None = None,
        clock: Clock = utcnow,
    ):
        self.session = session
        self.providers = providers
        self.config = config or SettlementConfig()
        self.queue = queue if queue is not None else PgmqQueue(session)
        self.clock = clock

        self.ticket_store = SqlTicketStore(session)
        self.customer_store = SqlBillingCustomerStore(session)
        self.engineer_store = SqlBillingEngineerStore(session)
        self.bank_account_store = SqlBankTransferAccountStore(session)
        self.transfer_store = SqlBillingEngineerTransferStore(session)
        self.batch_group_store = SqlBillingBatchGroupStore(session)
        self.batch_group_item_store = SqlBillingBatchGroupItemStore(session)

    def orchestrator(self) -> PaymentOrchestrator:
        return PaymentOrchestrator(
            ticket_store=self.ticket_store,
            customer_store=self.customer_store,
            engineer_store=self.engineer_store,
            bank_account_store=self.bank_account_store,
            transfer_store=self.transfer_store,
            invoice_service=self.providers.invoices,
            meter_service=self.providers.meter,
            payout_service=self.providers.payouts,
            balance_service=self.providers.balance,
            config=self.config.payout,
            clock=self.clock,
        )

    def consumer(self) -> TicketConsumer:
        return TicketConsumer(
            queue=self.queue,
            orchestrator=self.orchestrator(),
            config=self.config.queue,
            clock=self.clock,
        )

    def batch_job(self) -> BatchSettlementJob:
        return BatchSettlementJob(
            transfer_store=self.transfer_store,
            bank_account_store=self.bank_account_store,
            batch_group_store=self.batch_group_store,
            batch_group_item_store=self.batch_group_item_store,
            batch_group_service=self.providers.batch_groups,
            batch_item_service=self.providers.batch_items,
            config=self.config.payout,
            clock=self.clock,
        )

    def retry_job(self) -> PendingFundsRetryJob:
        return PendingFundsRetryJob(
            transfer_store=self.transfer_store,
            ticket_store=self.ticket_store,
            engineer_store=self.engineer_store,
            payout_service=self.providers.payouts,
            balance_service=self.providers.balance,
            clock=self.clock,
        )

    async def process_payment(self, ticket_id: str) -> SettlementResult:
        return await self.orchestrator().process_payment(ticket_id)

    async def process_queue(self) -> ProcessResult:
        return await self.consumer().process_all_ready_messages()

    async def run_batch_transfer(self) -> BatchSettlementResult:
        return await self.batch_job().run()

    async def retry_pending_transfers(self) -> RetryResult:
        return await self.retry_job().run()
