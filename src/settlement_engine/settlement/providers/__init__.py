"""Billing and payout provider adapters."""

from settlement_engine.settlement.providers.airwallex_stub import AirwallexStubProvider
from settlement_engine.settlement.providers.base import (
    AddBatchItemRequest,
    BalanceInfo,
    BatchGroupResponse,
    BatchItemResponse,
    BillingBalanceService,
    BillingBatchGroupItemService,
    BillingBatchGroupService,
    BillingEngineerPayoutService,
    BillingInvoiceService,
    BillingMeterService,
    TransferResult,
)
from settlement_engine.settlement.providers.stripe_stub import StripeStubProvider

__all__ = [
    "AddBatchItemRequest",
    "AirwallexStubProvider",
    "BalanceInfo",
    "BatchGroupResponse",
    "BatchItemResponse",
    "BillingBalanceService",
    "BillingBatchGroupItemService",
    "BillingBatchGroupService",
    "BillingEngineerPayoutService",
    "BillingInvoiceService",
    "BillingMeterService",
    "StripeStubProvider",
    "TransferResult",
]
