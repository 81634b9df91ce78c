"""Settlement models: tickets, billing identities, transfers and payout batches."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from settlement_engine.models.base import AuditMixin, Base, TimestampMixin


class Ticket(Base, TimestampMixin):
    """Support ticket, restricted to the columns billing needs."""

    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    created_by: Mapped[UUID] = mapped_column(nullable=False)
    assigned_to: Mapped[UUID | None] = mapped_column()
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="in-progress")
    claimed_at: Mapped[datetime | None] = mapped_column()
    mark_as_fixed_at: Mapped[datetime | None] = mapped_column()
    resolved_at: Mapped[datetime | None] = mapped_column()
    auto_complete_timeout_at: Mapped[datetime | None] = mapped_column()


class BillingCustomer(Base, TimestampMixin):
    """Maps a customer profile to its invoicing-provider customer id."""

    __tablename__ = "billing_customers"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    profile_id: Mapped[UUID] = mapped_column(unique=True, nullable=False)
    stripe_customer_id: Mapped[str] = mapped_column(String(255), nullable=False)


class BillingEngineer(Base, AuditMixin):
    """Engineer's connected account on the immediate payout rail."""

    __tablename__ = "billing_engineers"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    profile_id: Mapped[UUID] = mapped_column(unique=True, nullable=False)
    stripe_account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    charges_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payouts_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class BillingEngineerBankTransferAccount(Base, AuditMixin):
    """Engineer's beneficiary on the batched bank-transfer rail."""

    __tablename__ = "billing_engineer_bank_transfer_accounts"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    profile_id: Mapped[UUID] = mapped_column(unique=True, nullable=False)
    beneficiary_id: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))
    country: Mapped[str | None] = mapped_column(String(2))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class BillingBatchGroup(Base, AuditMixin):
    """Local mirror of an external payout batch."""

    __tablename__ = "billing_batch_groups"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    external_batch_group_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="CREATED")

    items: Mapped[list[BillingBatchGroupItem]] = relationship(back_populates="batch_group")


class BillingBatchGroupItem(Base, AuditMixin):
    """One engineer's aggregated payout inside a batch."""

    __tablename__ = "billing_batch_group_items"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    batch_group_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_batch_groups.id"), nullable=False
    )
    engineer_id: Mapped[UUID] = mapped_column(nullable=False)
    external_engineer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_platform_profit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")

    batch_group: Mapped[BillingBatchGroup] = relationship(back_populates="items")

    __table_args__ = (
        Index("ix_batch_group_items_batch_group", "batch_group_id"),
    )


class EngineerTransfer(Base, AuditMixin):
    """Per-ticket settlement record. One row per ticket, ever."""

    __tablename__ = "engineer_transfers"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(unique=True, nullable=False)
    engineer_id: Mapped[UUID] = mapped_column(nullable=False)
    customer_id: Mapped[UUID] = mapped_column(nullable=False)
    service: Mapped[str] = mapped_column(String(32), nullable=False)
    provider_transfer_id: Mapped[str | None] = mapped_column(String(255))
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False)
    credit_value: Mapped[int] = mapped_column(BigInteger, nullable=False)
    platform_profit: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    error_message: Mapped[str | None] = mapped_column(Text)
    batch_group_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("billing_batch_group_items.id")
    )
    available_for_transfer_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'pending_funds', 'completed', 'failed')",
            name="engineer_transfer_status_check",
        ),
        CheckConstraint(
            "service IN ('stripe_connect', 'bank_transfer')",
            name="engineer_transfer_service_check",
        ),
        Index("ix_engineer_transfers_status_service", "status", "service"),
        Index("ix_engineer_transfers_engineer", "engineer_id"),
    )
