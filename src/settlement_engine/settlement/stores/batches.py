"""SQL stores for payout batch groups and their items."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from settlement_engine.models import BillingBatchGroup, BillingBatchGroupItem
from settlement_engine.settlement.stores._util import committing
from settlement_engine.settlement.types import BatchGroupItemRecord, BatchGroupRecord


def _group_record(group: BillingBatchGroup) -> BatchGroupRecord:
    return BatchGroupRecord(
        id=group.id,
        external_batch_group_id=group.external_batch_group_id,
        name=group.name,
        version=group.version,
        status=group.status,
    )


def _item_record(item: BillingBatchGroupItem) -> BatchGroupItemRecord:
    return BatchGroupItemRecord(
        id=item.id,
        external_id=item.external_id,
        batch_group_id=item.batch_group_id,
        engineer_id=item.engineer_id,
        external_engineer_id=item.external_engineer_id,
        total_amount=item.total_amount,
        total_platform_profit=item.total_platform_profit,
        status=item.status,
    )


class SqlBillingBatchGroupStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, *, external_batch_group_id: str, name: str, status: str
    ) -> BatchGroupRecord:
        group = BillingBatchGroup(
            id=uuid4(),
            external_batch_group_id=external_batch_group_id,
            name=name,
            status=status,
            version=1,
        )
        async with committing(self.session):
            self.session.add(group)
            await self.session.flush()
            # Snapshot before commit expires the instance
            record = _group_record(group)
        return record

    async def update_status(self, batch_group_id: UUID, status: str) -> BatchGroupRecord:
        async with committing(self.session):
            group = await self.session.get(BillingBatchGroup, batch_group_id)
            if group is None:
                raise LookupError(f"Batch group {batch_group_id} not found")
            group.status = status
            group.version += 1
            await self.session.flush()
            record = _group_record(group)
        return record


class SqlBillingBatchGroupItemStore:
    def __init__(self, session: AsyncSession):
        self.session = session

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
    ) -> BatchGroupItemRecord:
        item = BillingBatchGroupItem(
            id=uuid4(),
            external_id=external_id,
            batch_group_id=batch_group_id,
            engineer_id=engineer_id,
            external_engineer_id=external_engineer_id,
            total_amount=total_amount,
            total_platform_profit=total_platform_profit,
            status=status,
        )
        async with committing(self.session):
            self.session.add(item)
            await self.session.flush()
            record = _item_record(item)
        return record
