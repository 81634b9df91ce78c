"""Settlement services."""

from settlement_engine.settlement.services.balance_gate import (
    BalanceGate,
    BalanceOutcome,
    InsufficientFunds,
    PendingFunds,
    Sufficient,
)
from settlement_engine.settlement.services.batch_settlement import (
    BatchSettlementJob,
    BatchSettlementResult,
)
from settlement_engine.settlement.services.payment_orchestrator import (
    PaymentOrchestrator,
    SettlementResult,
)
from settlement_engine.settlement.services.pending_funds_retry import (
    PendingFundsRetryJob,
    RetryResult,
)
from settlement_engine.settlement.services.precondition_validator import (
    PreconditionValidator,
    TransferPrerequisites,
    allocate_credits_fifo,
    compute_credits_used,
)
from settlement_engine.settlement.services.ticket_consumer import (
    ProcessResult,
    TicketConsumer,
)
from settlement_engine.settlement.services.transfer_executor import (
    BatchedTransferPlan,
    TransferCompleted,
    TransferDeferred,
    TransferExecutor,
)

__all__ = [
    # Balance gate
    "BalanceGate",
    "BalanceOutcome",
    "InsufficientFunds",
    "PendingFunds",
    "Sufficient",
    # Batch settlement
    "BatchSettlementJob",
    "BatchSettlementResult",
    # Orchestrator
    "PaymentOrchestrator",
    "SettlementResult",
    # Pending funds retry
    "PendingFundsRetryJob",
    "RetryResult",
    # Preconditions
    "PreconditionValidator",
    "TransferPrerequisites",
    "allocate_credits_fifo",
    "compute_credits_used",
    # Consumer
    "ProcessResult",
    "TicketConsumer",
    # Executor
    "BatchedTransferPlan",
    "TransferCompleted",
    "TransferDeferred",
    "TransferExecutor",
]
