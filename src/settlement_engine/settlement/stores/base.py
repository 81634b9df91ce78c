"""Persistence protocols used by the settlement services."""

from __future__ import annotations

from typing import Any, Protocol
from uuid import UUID

from settlement_engine.settlement.types import (
    BankTransferAccount,
    BatchGroupItemRecord,
    BatchGroupRecord,
    EngineerAccount,
    EngineerTransferGroup,
    PayoutService,
    TicketBillingInfo,
    TicketStatus,
    TransferRecord,
    TransferStatus,
)


class TicketStore(Protocol):
    async def fetch_billing_info(self, ticket_id: UUID) -> TicketBillingInfo | None: ...

    async def update_status(self, ticket_id: UUID, status: TicketStatus) -> None: ...


class BillingCustomerStore(Protocol):
    async def get_by_profile_id(self, profile_id: UUID) -> str | None:
        """Return the invoicing-provider customer id for a profile."""
        ...


class BillingEngineerStore(Protocol):
    async def get_by_profile_id(self, profile_id: UUID) -> EngineerAccount | None: ...


class BankTransferAccountStore(Protocol):
    async def get_by_profile_id(self, profile_id: UUID) -> BankTransferAccount | None: ...


class BillingEngineerTransferStore(Protocol):
    async def fetch_by_ticket_id(self, ticket_id: UUID) -> TransferRecord | None: ...

    async def create_if_absent(
        self,
        *,
        ticket_id: UUID,
        engineer_id: UUID,
        customer_id: UUID,
        service: PayoutService,
        credits_used: int,
        credit_value: int,
    ) -> TransferRecord | None:
        """Insert a pending record; return None if the ticket already has one."""
        ...

    async def update(self, transfer_id: UUID, **changes: Any) -> TransferRecord: ...

    async def fetch_by_status(self, status: TransferStatus) -> list[TransferRecord]: ...

    async def fetch_pending_bank_transfers_grouped_by_engineer(
        self,
    ) -> dict[UUID, EngineerTransferGroup]: ...

    async def update_batch_group_item_id(
        self, transfer_ids: list[UUID], batch_group_item_id: UUID
    ) -> int: ...


class BillingBatchGroupStore(Protocol):
    async def create(
        self, *, external_batch_group_id: str, name: str, status: str
    ) -> BatchGroupRecord: ...

    async def update_status(self, batch_group_id: UUID, status: str) -> BatchGroupRecord: ...


class BillingBatchGroupItemStore(Protocol):
    async def create(
        self,
        *,
        external_id: str,
        batch_group_id: UUID,
        engineer_id: UUID,
        external_engineer_id: str,
        total_amount: int,
        total_platform_profit: int,
        status: str = "pending",
    ) -> BatchGroupItemRecord: ...
