"""SQL store for per-ticket TransferRecords.

The unique constraint on engineer_transfers.ticket_id is the only guard
against paying a ticket twice; create_if_absent relies on it atomically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.models import EngineerTransfer
from settlement_engine.settlement.stores._util import committing, plain, utc
from settlement_engine.settlement.types import (
    EngineerTransferGroup,
    PayoutService,
    TransferRecord,
    TransferStatus,
)

_table = EngineerTransfer.__table__

_UPDATABLE = frozenset(
    {
        "status",
        "amount",
        "platform_profit",
        "provider_transfer_id",
        "error_message",
        "available_for_transfer_at",
        "batch_group_item_id",
    }
)


def _to_record(row: RowMapping | dict[str, Any]) -> TransferRecord:
    return TransferRecord(
        id=row["id"],
        ticket_id=row["ticket_id"],
        engineer_id=row["engineer_id"],
        customer_id=row["customer_id"],
        service=PayoutService(row["service"]),
        status=TransferStatus(row["status"]),
        credits_used=row["credits_used"],
        credit_value=row["credit_value"],
        amount=row["amount"],
        platform_profit=row["platform_profit"],
        provider_transfer_id=row["provider_transfer_id"],
        error_message=row["error_message"],
        batch_group_item_id=row["batch_group_item_id"],
        available_for_transfer_at=utc(row["available_for_transfer_at"]),
        created_at=utc(row["created_at"]),
        updated_at=utc(row["updated_at"]),
    )


class SqlBillingEngineerTransferStore:
    """TransferRecord persistence. Every write is committed immediately."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_by_ticket_id(self, ticket_id: UUID) -> TransferRecord | None:
        result = await self.session.execute(
            select(_table).where(_table.c.ticket_id == ticket_id)
        )
        row = result.mappings().first()
        return _to_record(row) if row is not None else None

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
        now = datetime.now(timezone.utc)
        insert = self._dialect_insert()
        stmt = (
            insert(_table)
            .values(
                id=uuid4(),
                ticket_id=ticket_id,
                engineer_id=engineer_id,
                customer_id=customer_id,
                service=plain(service),
                status=TransferStatus.PENDING.value,
                amount=0,
                platform_profit=0,
                credits_used=credits_used,
                credit_value=credit_value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["ticket_id"])
            .returning(*_table.c)
        )
        async with committing(self.session):
            result = await self.session.execute(stmt)
            row = result.mappings().first()
        return _to_record(row) if row is not None else None

    async def update(self, transfer_id: UUID, **changes: Any) -> TransferRecord:
        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update TransferRecord fields: {sorted(unknown)}")

        values = {key: plain(value) for key, value in changes.items()}
        values["updated_at"] = datetime.now(timezone.utc)
        async with committing(self.session):
            result = await self.session.execute(
                update(_table)
                .where(_table.c.id == transfer_id)
                .values(**values)
                .returning(*_table.c)
            )
            row = result.mappings().first()
        if row is None:
            raise LookupError(f"TransferRecord {transfer_id} not found")
        return _to_record(row)

    async def fetch_by_status(self, status: TransferStatus) -> list[TransferRecord]:
        result = await self.session.execute(
            select(_table)
            .where(_table.c.status == plain(status))
            .order_by(_table.c.created_at)
        )
        return [_to_record(row) for row in result.mappings()]

    async def fetch_pending_bank_transfers_grouped_by_engineer(
        self,
    ) -> dict[UUID, EngineerTransferGroup]:
        result = await self.session.execute(
            select(
                _table.c.id,
                _table.c.engineer_id,
                _table.c.amount,
                _table.c.platform_profit,
            )
            .where(_table.c.status == TransferStatus.PENDING.value)
            .where(_table.c.service == PayoutService.BANK_TRANSFER.value)
            .where(_table.c.batch_group_item_id.is_(None))
            .order_by(_table.c.created_at)
        )

        totals: dict[UUID, dict[str, Any]] = {}
        for row in result.mappings():
            group = totals.setdefault(
                row["engineer_id"], {"amount": 0, "profit": 0, "ids": []}
            )
            group["amount"] += row["amount"]
            group["profit"] += row["platform_profit"]
            group["ids"].append(row["id"])

        return {
            engineer_id: EngineerTransferGroup(
                engineer_id=engineer_id,
                total_amount=group["amount"],
                total_platform_profit=group["profit"],
                transfer_ids=group["ids"],
            )
            for engineer_id, group in totals.items()
        }

    async def update_batch_group_item_id(
        self, transfer_ids: list[UUID], batch_group_item_id: UUID
    ) -> int:
        if not transfer_ids:
            return 0
        async with committing(self.session):
            result = await self.session.execute(
                update(_table)
                .where(_table.c.id.in_(transfer_ids))
                .values(
                    batch_group_item_id=batch_group_item_id,
                    updated_at=datetime.now(timezone.utc),
                )
            )
        return result.rowcount

    def _dialect_insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise NotImplementedError(f"Unsupported database dialect: {dialect}")
