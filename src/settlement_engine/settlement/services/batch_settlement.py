"""Weekly bank-transfer batch settlement.

Groups every unbatched `pending` bank-transfer record by engineer, opens one
external batch, adds one item per engineer, links the records to the
persisted item and submits the batch.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable
from uuid import UUID

from settlement_engine.settlement.config import PayoutConfig
from settlement_engine.settlement.exceptions import BatchItemMismatchError
from settlement_engine.settlement.providers.base import (
    AddBatchItemRequest,
    BillingBatchGroupItemService,
    BillingBatchGroupService,
)
from settlement_engine.settlement.stores.base import (
    BankTransferAccountStore,
    BillingBatchGroupItemStore,
    BillingBatchGroupStore,
    BillingEngineerTransferStore,
)
from settlement_engine.settlement.types import (
    BatchGroupStatus,
    Clock,
    EngineerTransferGroup,
    utcnow,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def to_major_units(amount: int) -> Decimal:
    """Convert minor units to a 2dp major-unit Decimal (2500 -> 25.00)."""
    return (Decimal(amount) / 100).quantize(CENTS)


def _new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class BatchSettlementResult:
    """Summary of one batch run."""

    batch_group_id: UUID | None = None
    external_batch_group_id: str | None = None
    items_added: int = 0
    transfers_linked: int = 0
    skipped_engineers: list[UUID] = field(default_factory=list)
    submitted: bool = False


@dataclass(frozen=True)
class _PlannedItem:
    group: EngineerTransferGroup
    beneficiary_id: str
    request: AddBatchItemRequest


class BatchSettlementJob:
    """Settles deferred bank transfers in one external batch."""

    def __init__(
        self,
        *,
        transfer_store: BillingEngineerTransferStore,
        bank_account_store: BankTransferAccountStore,
        batch_group_store: BillingBatchGroupStore,
        batch_group_item_store: BillingBatchGroupItemStore,
        batch_group_service: BillingBatchGroupService,
        batch_item_service: BillingBatchGroupItemService,
        config: PayoutConfig | None = None,
        clock: Clock = utcnow,
        request_id_factory: Callable[[], str] = _new_request_id,
    ):
        self.transfer_store = transfer_store
        self.bank_account_store = bank_account_store
        self.batch_group_store = batch_group_store
        self.batch_group_item_store = batch_group_item_store
        self.batch_group_service = batch_group_service
        self.batch_item_service = batch_item_service
        self.config = config or PayoutConfig()
        self.clock = clock
        self.request_id_factory = request_id_factory

    async def run(self) -> BatchSettlementResult:
        """Run one batch settlement.

        Raises:
            BatchItemMismatchError: A submitted item is missing from the batch.
            ProviderError: Any payout-network call failed.
        """
        groups = await self.transfer_store.fetch_pending_bank_transfers_grouped_by_engineer()
        if not groups:
            logger.info("No pending bank transfers to batch")
            return BatchSettlementResult()

        name = f"Payout Batch - {self.clock().date().isoformat()}"
        external = await self.batch_group_service.create_batch_group(
            name=name, request_id=self.request_id_factory()
        )
        batch_group = await self.batch_group_store.create(
            external_batch_group_id=external.id,
            name=external.name,
            status=BatchGroupStatus.CREATED.value,
        )
        logger.info(
            "Opened batch %s (%s) for %d engineer(s)", external.id, name, len(groups)
        )

        planned, skipped = await self._plan_items(groups)
        if not planned:
            logger.warning(
                "Batch %s has no payable engineers; leaving it unsubmitted", external.id
            )
            return BatchSettlementResult(
                batch_group_id=batch_group.id,
                external_batch_group_id=external.id,
                skipped_engineers=skipped,
            )

        requests = [plan.request for plan in planned.values()]
        chunk_size = self.batch_item_service.max_items_per_request
        for start in range(0, len(requests), chunk_size):
            await self.batch_item_service.add_items_to_batch(
                external.id, requests[start : start + chunk_size]
            )

        provider_items = {
            item.request_id: item
            for item in await self.batch_item_service.get_batch_items(external.id)
        }
        missing = [request_id for request_id in planned if request_id not in provider_items]
        if missing:
            raise BatchItemMismatchError(external.id, missing)

        transfers_linked = 0
        for request_id, plan in planned.items():
            item = await self.batch_group_item_store.create(
                external_id=provider_items[request_id].id,
                batch_group_id=batch_group.id,
                engineer_id=plan.group.engineer_id,
                external_engineer_id=plan.beneficiary_id,
                total_amount=plan.group.total_amount,
                total_platform_profit=plan.group.total_platform_profit,
            )
            transfers_linked += await self.transfer_store.update_batch_group_item_id(
                plan.group.transfer_ids, item.id
            )

        await self.batch_group_service.submit_batch_group(external.id)
        await self.batch_group_store.update_status(
            batch_group.id, BatchGroupStatus.SCHEDULED.value
        )
        logger.info(
            "Submitted batch %s: %d item(s), %d transfer(s)",
            external.id,
            len(planned),
            transfers_linked,
        )
        return BatchSettlementResult(
            batch_group_id=batch_group.id,
            external_batch_group_id=external.id,
            items_added=len(planned),
            transfers_linked=transfers_linked,
            skipped_engineers=skipped,
            submitted=True,
        )

    async def _plan_items(
        self, groups: dict[UUID, EngineerTransferGroup]
    ) -> tuple[dict[str, _PlannedItem], list[UUID]]:
        planned: dict[str, _PlannedItem] = {}
        skipped: list[UUID] = []
        for engineer_id, group in groups.items():
            account = await self.bank_account_store.get_by_profile_id(engineer_id)
            if account is None or not account.active:
                logger.warning(
                    "Skipping engineer %s: no active bank transfer beneficiary", engineer_id
                )
                skipped.append(engineer_id)
                continue

            request_id = self.request_id_factory()
            planned[request_id] = _PlannedItem(
                group=group,
                beneficiary_id=account.beneficiary_id,
                request=AddBatchItemRequest(
                    beneficiary_id=account.beneficiary_id,
                    transfer_amount=to_major_units(group.total_amount),
                    request_id=request_id,
                    reference=self.config.batch_item_reference,
                    source_currency=self.config.currency,
                    transfer_currency=self.config.currency,
                ),
            )
        return planned, skipped
