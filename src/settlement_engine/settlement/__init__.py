"""Ticket payment settlement package.

This package contains:
- Precondition validation and FIFO credit allocation
- The balance gate and transfer execution for both payout rails
- The payment orchestrator
- The weekly bank-transfer batch job and the pending-funds retry job
- The ticket payment queue consumer
"""

from settlement_engine.settlement.config import PayoutConfig, QueueConfig, SettlementConfig
from settlement_engine.settlement.engine import (
    SettlementEngine,
    SettlementProviders,
    get_providers,
)
from settlement_engine.settlement.exceptions import (
    AlreadyInProgressError,
    BatchItemMismatchError,
    InsufficientCreditsError,
    InsufficientFundsError,
    InvalidTicketStateError,
    MissingBillingIdentityError,
    NoPaidInvoicesError,
    NoPayoutAccountError,
    PaymentFailedError,
    ProviderError,
    SettlementError,
    TicketNotFoundError,
    TransferPreviouslyFailedError,
)

__all__ = [
    # Config
    "PayoutConfig",
    "QueueConfig",
    "SettlementConfig",
    # Facade
    "SettlementEngine",
    "SettlementProviders",
    "get_providers",
    # Errors
    "AlreadyInProgressError",
    "BatchItemMismatchError",
    "InsufficientCreditsError",
    "InsufficientFundsError",
    "InvalidTicketStateError",
    "MissingBillingIdentityError",
    "NoPaidInvoicesError",
    "NoPayoutAccountError",
    "PaymentFailedError",
    "ProviderError",
    "SettlementError",
    "TicketNotFoundError",
    "TransferPreviouslyFailedError",
]
