"""Airwallex stub provider for local development and testing.

Models batch transfers: open a batch, add items, list them, submit.
"""

from __future__ import annotations

import uuid
from typing import Any

from settlement_engine.settlement.exceptions import ProviderError
from settlement_engine.settlement.providers.base import (
    AddBatchItemRequest,
    BatchGroupResponse,
    BatchItemResponse,
)


class AirwallexStubProvider:
    """In-memory batch transfer provider."""

    provider_name = "airwallex_stub"
    max_items_per_request = 100

    def __init__(self) -> None:
        self._batches: dict[str, dict[str, Any]] = {}
        self._items_to_drop = 0
        self._failures: dict[str, str] = {}
        self.add_item_calls = 0

    async def create_batch_group(self, *, name: str, request_id: str) -> BatchGroupResponse:
        self._maybe_fail("create_batch_group")
        batch_id = f"bt_{uuid.uuid4().hex[:16]}"
        self._batches[batch_id] = {
            "name": name,
            "request_id": request_id,
            "status": "DRAFTING",
            "items": [],
        }
        return BatchGroupResponse(id=batch_id, name=name, status="DRAFTING")

    async def add_items_to_batch(
        self, batch_group_id: str, items: list[AddBatchItemRequest]
    ) -> None:
        self._maybe_fail("add_items_to_batch")
        if not items:
            raise ValueError("At least one item is required")
        if len(items) > self.max_items_per_request:
            raise ValueError(
                f"Cannot add more than {self.max_items_per_request} items per request"
            )
        batch = self._get_batch(batch_group_id)
        if batch["status"] != "DRAFTING":
            raise ProviderError(
                self.provider_name,
                "add_items_to_batch",
                f"Batch {batch_group_id} is {batch['status']}",
            )

        self.add_item_calls += 1
        for item in items:
            if self._items_to_drop:
                self._items_to_drop -= 1
                continue
            batch["items"].append(
                BatchItemResponse(
                    id=f"bti_{uuid.uuid4().hex[:16]}",
                    request_id=item.request_id,
                    beneficiary_id=item.beneficiary_id,
                    transfer_amount=item.transfer_amount,
                    status="PENDING",
                )
            )

    async def get_batch_items(self, batch_group_id: str) -> list[BatchItemResponse]:
        self._maybe_fail("get_batch_items")
        return list(self._get_batch(batch_group_id)["items"])

    async def submit_batch_group(self, batch_group_id: str) -> BatchGroupResponse:
        self._maybe_fail("submit_batch_group")
        batch = self._get_batch(batch_group_id)
        batch["status"] = "SCHEDULED"
        return BatchGroupResponse(id=batch_group_id, name=batch["name"], status="SCHEDULED")

    def batch(self, batch_group_id: str) -> dict[str, Any]:
        """Inspect a stored batch."""
        return self._batches[batch_group_id]

    @property
    def batches(self) -> dict[str, dict[str, Any]]:
        return self._batches

    def simulate_dropped_items(self, count: int = 1) -> None:
        """Accept the next count items but never list them."""
        self._items_to_drop = count

    def simulate_failure(self, operation: str, message: str = "Airwallex API error") -> None:
        """Make the next call to operation raise ProviderError."""
        self._failures[operation] = message

    def _get_batch(self, batch_group_id: str) -> dict[str, Any]:
        batch = self._batches.get(batch_group_id)
        if batch is None:
            raise ProviderError(
                self.provider_name, "get_batch", f"Batch {batch_group_id} not found"
            )
        return batch

    def _maybe_fail(self, operation: str) -> None:
        message = self._failures.pop(operation, None)
        if message is not None:
            raise ProviderError(self.provider_name, operation, message)
