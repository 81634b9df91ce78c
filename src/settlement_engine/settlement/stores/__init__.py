"""Persistence for the settlement services."""

from settlement_engine.settlement.stores.accounts import (
    SqlBankTransferAccountStore,
    SqlBillingCustomerStore,
    SqlBillingEngineerStore,
    SqlTicketStore,
)
from settlement_engine.settlement.stores.base import (
    BankTransferAccountStore,
    BillingBatchGroupItemStore,
    BillingBatchGroupStore,
    BillingCustomerStore,
    BillingEngineerStore,
    BillingEngineerTransferStore,
    TicketStore,
)
from settlement_engine.settlement.stores.batches import (
    SqlBillingBatchGroupItemStore,
    SqlBillingBatchGroupStore,
)
from settlement_engine.settlement.stores.transfers import SqlBillingEngineerTransferStore

__all__ = [
    "BankTransferAccountStore",
    "BillingBatchGroupItemStore",
    "BillingBatchGroupStore",
    "BillingCustomerStore",
    "BillingEngineerStore",
    "BillingEngineerTransferStore",
    "TicketStore",
    "SqlBankTransferAccountStore",
    "SqlBillingBatchGroupItemStore",
    "SqlBillingBatchGroupStore",
    "SqlBillingCustomerStore",
    "SqlBillingEngineerStore",
    "SqlBillingEngineerTransferStore",
    "SqlTicketStore",
]
