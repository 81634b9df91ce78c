"""SQL stores for tickets and billing identities."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.models import (
    BillingCustomer,
    BillingEngineer,
    BillingEngineerBankTransferAccount,
    Ticket,
)
from settlement_engine.settlement.stores._util import committing, plain, utc
from settlement_engine.settlement.types import (
    BankTransferAccount,
    EngineerAccount,
    TicketBillingInfo,
    TicketStatus,
)


class SqlTicketStore:
    """Ticket reads and status writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_billing_info(self, ticket_id: UUID) -> TicketBillingInfo | None:
        ticket = await self.session.get(Ticket, ticket_id, populate_existing=True)
        if ticket is None:
            return None
        return TicketBillingInfo(
            id=ticket.id,
            customer_id=ticket.created_by,
            engineer_id=ticket.assigned_to,
            status=ticket.status,
            created_at=utc(ticket.created_at),
            claimed_at=utc(ticket.claimed_at),
            mark_as_fixed_at=utc(ticket.mark_as_fixed_at),
            resolved_at=utc(ticket.resolved_at),
        )

    async def update_status(self, ticket_id: UUID, status: TicketStatus) -> None:
        async with committing(self.session):
            await self.session.execute(
                update(Ticket).where(Ticket.id == ticket_id).values(status=plain(status))
            )


class SqlBillingCustomerStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_profile_id(self, profile_id: UUID) -> str | None:
        result = await self.session.execute(
            select(BillingCustomer.stripe_customer_id).where(
                BillingCustomer.profile_id == profile_id
            )
        )
        return result.scalar_one_or_none()


class SqlBillingEngineerStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_profile_id(self, profile_id: UUID) -> EngineerAccount | None:
        result = await self.session.execute(
            select(BillingEngineer).where(BillingEngineer.profile_id == profile_id)
        )
        engineer = result.scalar_one_or_none()
        if engineer is None:
            return None
        return EngineerAccount(
            account_id=engineer.stripe_account_id,
            charges_enabled=engineer.charges_enabled,
            payouts_enabled=engineer.payouts_enabled,
        )


class SqlBankTransferAccountStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_profile_id(self, profile_id: UUID) -> BankTransferAccount | None:
        result = await self.session.execute(
            select(BillingEngineerBankTransferAccount).where(
                BillingEngineerBankTransferAccount.profile_id == profile_id
            )
        )
        account = result.scalar_one_or_none()
        if account is None:
            return None
        return BankTransferAccount(
            beneficiary_id=account.beneficiary_id,
            active=account.active,
        )
