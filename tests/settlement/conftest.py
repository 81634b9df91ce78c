"""Settlement test fixtures with database setup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.models import (
    BillingCustomer,
    BillingEngineer,
    BillingEngineerBankTransferAccount,
    EngineerTransfer,
    Ticket,
)
from settlement_engine.settlement.config import SettlementConfig
from settlement_engine.settlement.engine import SettlementEngine, SettlementProviders
from settlement_engine.settlement.providers import AirwallexStubProvider, StripeStubProvider
from settlement_engine.settlement.queue import InMemoryQueue
from settlement_engine.settlement.stores import (
    SqlBillingEngineerTransferStore,
    SqlTicketStore,
)
from settlement_engine.settlement.types import (
    InvoiceLineItem,
    PaidInvoice,
    PayoutService,
    TransferRecord,
)

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)
CREDIT_PRICE = 3000


class FixedClock:
    """Controllable clock for services and the in-memory queue."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass(frozen=True)
class TicketSetup:
    """Ids created for one settleable ticket."""

    ticket_id: UUID
    customer_id: UUID
    engineer_id: UUID
    provider_customer_id: str
    payout_account_id: str


class SettlementTestData:
    """Test data generator for settlement tests."""

    def __init__(self, db: AsyncSession, stripe: StripeStubProvider):
        self.db = db
        self.stripe = stripe

    async def create_customer(self, provider_customer_id: str | None = None) -> tuple[UUID, str]:
        """Create a customer profile with an invoicing identity."""
        profile_id = uuid4()
        provider_customer_id = provider_customer_id or f"cus_{uuid4().hex[:14]}"
        self.db.add(
            BillingCustomer(profile_id=profile_id, stripe_customer_id=provider_customer_id)
        )
        await self.db.commit()
        return profile_id, provider_customer_id

    async def create_connect_engineer(
        self,
        *,
        charges_enabled: bool = True,
        payouts_enabled: bool = True,
    ) -> tuple[UUID, str]:
        """Create an engineer with a connected account."""
        profile_id = uuid4()
        account_id = f"acct_{uuid4().hex[:16]}"
        self.db.add(
            BillingEngineer(
                profile_id=profile_id,
                stripe_account_id=account_id,
                charges_enabled=charges_enabled,
                payouts_enabled=payouts_enabled,
            )
        )
        await self.db.commit()
        return profile_id, account_id

    async def add_bank_account(
        self, engineer_id: UUID, *, active: bool = True
    ) -> str:
        """Attach a bank-transfer beneficiary to an engineer."""
        beneficiary_id = f"ben_{uuid4().hex[:16]}"
        self.db.add(
            BillingEngineerBankTransferAccount(
                profile_id=engineer_id,
                beneficiary_id=beneficiary_id,
                name="Test Engineer",
                country="PH",
                active=active,
            )
        )
        await self.db.commit()
        return beneficiary_id

    async def create_bank_engineer(self, *, active: bool = True) -> tuple[UUID, str]:
        """Create an engineer paid by bank transfer only."""
        profile_id = uuid4()
        beneficiary_id = await self.add_bank_account(profile_id, active=active)
        return profile_id, beneficiary_id

    async def create_ticket(
        self,
        *,
        customer_id: UUID,
        engineer_id: UUID | None,
        claimed_at: datetime | None = None,
        resolved_at: datetime | None = None,
        mark_as_fixed_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> UUID:
        """Create a ticket awaiting payment."""
        ticket_id = uuid4()
        self.db.add(
            Ticket(
                id=ticket_id,
                created_by=customer_id,
                assigned_to=engineer_id,
                status="pending-payment",
                created_at=created_at or NOW - timedelta(hours=4),
                claimed_at=claimed_at,
                resolved_at=resolved_at,
                mark_as_fixed_at=mark_as_fixed_at,
            )
        )
        await self.db.commit()
        return ticket_id

    def add_paid_invoice(
        self,
        provider_customer_id: str,
        credits: int,
        *,
        credit_price: int = CREDIT_PRICE,
        paid_at: datetime | None = None,
    ) -> PaidInvoice:
        """Register a paid invoice with one credit line item."""
        invoice_id = f"in_{uuid4().hex[:14]}"
        invoice = PaidInvoice(
            id=invoice_id,
            paid_at=paid_at or NOW - timedelta(days=30),
            line_items=[
                InvoiceLineItem(
                    invoice_id=invoice_id,
                    credits_from_line_item=credits,
                    credit_price=credit_price,
                )
            ],
        )
        self.stripe.add_paid_invoice(provider_customer_id, invoice)
        return invoice

    async def settleable_ticket(
        self,
        *,
        rail: PayoutService = PayoutService.STRIPE_CONNECT,
        hours: float = 1.5,
        credits_bought: int = 10,
        engineer_id: UUID | None = None,
    ) -> TicketSetup:
        """Create a resolved ticket with a paying customer and a payable engineer."""
        customer_id, provider_customer_id = await self.create_customer()
        self.add_paid_invoice(provider_customer_id, credits_bought)

        if engineer_id is not None:
            payout_account_id = ""
        elif rail is PayoutService.STRIPE_CONNECT:
            engineer_id, payout_account_id = await self.create_connect_engineer()
        else:
            engineer_id, payout_account_id = await self.create_bank_engineer()

        claimed_at = NOW - timedelta(hours=3)
        ticket_id = await self.create_ticket(
            customer_id=customer_id,
            engineer_id=engineer_id,
            claimed_at=claimed_at,
            resolved_at=claimed_at + timedelta(hours=hours),
        )
        return TicketSetup(
            ticket_id=ticket_id,
            customer_id=customer_id,
            engineer_id=engineer_id,
            provider_customer_id=provider_customer_id,
            payout_account_id=payout_account_id,
        )

    async def create_transfer(
        self,
        *,
        engineer_id: UUID,
        amount: int,
        platform_profit: int = 1000,
        status: str = "pending",
        service: str = "bank_transfer",
        ticket_id: UUID | None = None,
        customer_id: UUID | None = None,
    ) -> UUID:
        """Insert a TransferRecord directly."""
        transfer_id = uuid4()
        self.db.add(
            EngineerTransfer(
                id=transfer_id,
                ticket_id=ticket_id or uuid4(),
                engineer_id=engineer_id,
                customer_id=customer_id or uuid4(),
                service=service,
                amount=amount,
                credits_used=1,
                credit_value=amount + platform_profit,
                platform_profit=platform_profit,
                status=status,
            )
        )
        await self.db.commit()
        return transfer_id

    async def fetch_transfer(self, ticket_id: UUID) -> TransferRecord | None:
        return await SqlBillingEngineerTransferStore(self.db).fetch_by_ticket_id(ticket_id)

    async def fetch_ticket_status(self, ticket_id: UUID) -> str:
        info = await SqlTicketStore(self.db).fetch_billing_info(ticket_id)
        assert info is not None
        return info.status


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def stripe() -> StripeStubProvider:
    """Stripe stub with enough available balance for a few payouts."""
    return StripeStubProvider(available=100_000, pending=0)


@pytest.fixture
def airwallex() -> AirwallexStubProvider:
    return AirwallexStubProvider()


@pytest.fixture
def providers(
    stripe: StripeStubProvider, airwallex: AirwallexStubProvider
) -> SettlementProviders:
    return SettlementProviders.stubs(stripe=stripe, airwallex=airwallex)


@pytest.fixture
def queue(clock: FixedClock) -> InMemoryQueue:
    return InMemoryQueue(clock=clock)


@pytest.fixture
def settlement(
    db: AsyncSession,
    providers: SettlementProviders,
    queue: InMemoryQueue,
    clock: FixedClock,
) -> SettlementEngine:
    """Settlement engine over the test database and stub providers."""
    return SettlementEngine(
        db,
        providers=providers,
        config=SettlementConfig(),
        queue=queue,
        clock=clock,
    )


@pytest.fixture
def test_data(db: AsyncSession, stripe: StripeStubProvider) -> SettlementTestData:
    """Create test data generator."""
    return SettlementTestData(db, stripe)
