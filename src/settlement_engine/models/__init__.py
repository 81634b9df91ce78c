"""SQLAlchemy models for the settlement engine."""

from settlement_engine.models.base import AuditMixin, Base, TimestampMixin
from settlement_engine.models.settlement import (
    BillingBatchGroup,
    BillingBatchGroupItem,
    BillingCustomer,
    BillingEngineer,
    BillingEngineerBankTransferAccount,
    EngineerTransfer,
    Ticket,
)

__all__ = [
    "AuditMixin",
    "Base",
    "TimestampMixin",
    "BillingBatchGroup",
    "BillingBatchGroupItem",
    "BillingCustomer",
    "BillingEngineer",
    "BillingEngineerBankTransferAccount",
    "EngineerTransfer",
    "Ticket",
]
