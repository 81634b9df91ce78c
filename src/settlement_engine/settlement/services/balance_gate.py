"""Balance gate: can the platform fund a payout right now, later, or not at all?

The outcome is a tagged variant. Callers match on the concrete type:

    outcome = await gate.evaluate(required)
    if isinstance(outcome, Sufficient): ...
    elif isinstance(outcome, PendingFunds): ...
    else: ...  # InsufficientFunds
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from settlement_engine.settlement.providers.base import BalanceInfo, BillingBalanceService


@dataclass(frozen=True)
class Sufficient:
    """Available balance covers the payout."""

    required: int
    available: int
    pending: int
    kind: Literal["completed"] = "completed"


@dataclass(frozen=True)
class PendingFunds:
    """Only the pending balance covers the payout. Deferred, not an error."""

    required: int
    available: int
    pending: int
    kind: Literal["pending_funds"] = "pending_funds"


@dataclass(frozen=True)
class InsufficientFunds:
    """Neither balance covers the payout."""

    required: int
    available: int
    pending: int
    kind: Literal["insufficient_funds"] = "insufficient_funds"


BalanceOutcome = Union[Sufficient, PendingFunds, InsufficientFunds]


def classify(required: int, balance: BalanceInfo) -> BalanceOutcome:
    """Classify a payout against a balance snapshot."""
    if balance.available >= required:
        return Sufficient(required, balance.available, balance.pending)
    if balance.pending >= required:
        return PendingFunds(required, balance.available, balance.pending)
    return InsufficientFunds(required, balance.available, balance.pending)


class BalanceGate:
    """Balance check scoped to one settlement attempt.

    The balance is fetched at most once per instance; build a new gate for
    every attempt.
    """

    def __init__(self, balance_service: BillingBalanceService):
        self.balance_service = balance_service
        self._balance: BalanceInfo | None = None

    async def balance(self) -> BalanceInfo:
        if self._balance is None:
            self._balance = await self.balance_service.get_balance()
        return self._balance

    async def evaluate(self, required: int) -> BalanceOutcome:
        return classify(required, await self.balance())
