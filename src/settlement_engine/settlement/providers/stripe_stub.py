"""Stripe stub provider for local development and testing.

Covers invoices, usage metering, connected-account payouts and the platform
balance. Replace with an adapter over the Stripe API for production.
"""

from __future__ import annotations

import uuid
from typing import Any

from settlement_engine.settlement.exceptions import ProviderError
from settlement_engine.settlement.providers.base import BalanceInfo, TransferResult
from settlement_engine.settlement.types import PaidInvoice

DEFAULT_PAYOUT_AMOUNT = 2000


class StripeStubProvider:
    """In-memory Stripe stand-in.

    State is held per instance. The simulate_* helpers shape balances and
    inject failures for tests.
    """

    provider_name = "stripe_stub"

    def __init__(self, *, available: int = 0, pending: int = 0, currency: str = "usd"):
        self.available = available
        self.pending = pending
        self.currency = currency
        self._invoices: dict[str, list[PaidInvoice]] = {}
        self._account_metadata: dict[str, dict[str, str]] = {}
        self._meter_events: dict[str, dict[str, Any]] = {}
        self._transfers: dict[str, dict[str, Any]] = {}
        self._failures: dict[str, str] = {}
        self.balance_calls = 0

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def add_paid_invoice(self, provider_customer_id: str, invoice: PaidInvoice) -> None:
        """Register a paid invoice for a customer."""
        self._invoices.setdefault(provider_customer_id, []).append(invoice)

    async def fetch_paid_invoices_with_products(
        self, provider_customer_id: str
    ) -> list[PaidInvoice]:
        self._maybe_fail("fetch_paid_invoices")
        invoices = self._invoices.get(provider_customer_id, [])
        return sorted(invoices, key=lambda inv: inv.paid_at)

    # ------------------------------------------------------------------
    # Metering
    # ------------------------------------------------------------------

    async def record_ticket_completion(
        self,
        *,
        customer_id: str,
        ticket_id: str,
        value: int,
        idempotency_key: str,
    ) -> None:
        self._maybe_fail("record_ticket_completion")
        # Stripe deduplicates meter events by identifier
        self._meter_events.setdefault(
            idempotency_key,
            {"customer_id": customer_id, "ticket_id": ticket_id, "value": value},
        )

    @property
    def meter_events(self) -> list[dict[str, Any]]:
        return list(self._meter_events.values())

    # ------------------------------------------------------------------
    # Payouts
    # ------------------------------------------------------------------

    def set_account_metadata(self, account_id: str, **metadata: str) -> None:
        """Set connected-account metadata (e.g. payout_amount="2500")."""
        self._account_metadata.setdefault(account_id, {}).update(metadata)

    async def fetch_payout_amount(self, account_id: str) -> int:
        self._maybe_fail("fetch_payout_amount")
        raw = self._account_metadata.get(account_id, {}).get("payout_amount")
        if raw is None:
            return DEFAULT_PAYOUT_AMOUNT
        try:
            amount = int(raw)
        except ValueError:
            return DEFAULT_PAYOUT_AMOUNT
        return amount if amount > 0 else DEFAULT_PAYOUT_AMOUNT

    async def create_transfer(
        self,
        *,
        ticket_id: str,
        engineer_id: str,
        engineer_account_id: str,
        customer_id: str,
        credit_value: int,
        payout_amount: int,
        idempotency_key: str,
    ) -> TransferResult:
        self._maybe_fail("create_transfer")
        existing = self._transfers.get(idempotency_key)
        if existing is not None:
            return existing["result"]

        if payout_amount > self.available:
            raise ProviderError(
                self.provider_name,
                "create_transfer",
                "Insufficient available balance",
            )
        self.available -= payout_amount

        result = TransferResult(
            transfer_id=f"tr_{uuid.uuid4().hex[:24]}",
            amount=payout_amount,
            platform_profit=credit_value - payout_amount,
        )
        self._transfers[idempotency_key] = {
            "result": result,
            "destination": engineer_account_id,
            "metadata": {
                "ticket_id": ticket_id,
                "engineer_id": engineer_id,
                "customer_id": customer_id,
            },
        }
        return result

    @property
    def transfers(self) -> list[dict[str, Any]]:
        return list(self._transfers.values())

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    async def get_balance(self) -> BalanceInfo:
        self._maybe_fail("get_balance")
        self.balance_calls += 1
        return BalanceInfo(
            available=self.available, pending=self.pending, currency=self.currency
        )

    # ------------------------------------------------------------------
    # Simulation helpers
    # ------------------------------------------------------------------

    def simulate_balance(self, *, available: int, pending: int = 0) -> None:
        """Set the platform balance."""
        self.available = available
        self.pending = pending

    def simulate_failure(self, operation: str, message: str = "Stripe API error") -> None:
        """Make the next call to operation raise ProviderError."""
        self._failures[operation] = message

    def _maybe_fail(self, operation: str) -> None:
        message = self._failures.pop(operation, None)
        if message is not None:
            raise ProviderError(self.provider_name, operation, message)
