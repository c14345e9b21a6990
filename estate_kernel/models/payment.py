"""
Module: estate_kernel.models.payment
Responsibility: ORM persistence for incoming payments and the per-invoice
    allocation records produced by the payment allocator.
Architecture position: Kernel > Models. May import from db/ only.

Invariants enforced:
    - A payment's amount never changes after insert.
    - ``allocated_at`` is set exactly once, in the same transaction that
      writes its allocation rows; a replayed allocation sees it and is a no-op.
    - At most one allocation row per (payment, invoice).
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estate_kernel.db.base import TrackedBase, UUIDString
from estate_kernel.db.types import MoneyAmount


class PaymentModel(TrackedBase):
    """An incoming tenant payment."""

    __tablename__ = "payments"

    __table_args__ = (
        Index("idx_payment_tenant", "tenant_id"),
        UniqueConstraint("bank_transaction_id", name="uq_payment_bank_transaction"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )
    amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    received_on: Mapped[date] = mapped_column(nullable=False)
    reference: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    bank_transaction_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("bank_transactions.id"),
        nullable=True,
    )

    # Set once allocation has run; unapplied remainder is carried as credit
    allocated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    unapplied_amount: Mapped[MoneyAmount | None] = mapped_column(nullable=True)

    allocations: Mapped[list["PaymentAllocationModel"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentAllocationModel.line_seq",
    )

    @property
    def is_allocated(self) -> bool:
        return self.allocated_at is not None

    def __repr__(self) -> str:
        return f"<PaymentModel {self.id} {self.amount} {self.currency}>"


class PaymentAllocationModel(TrackedBase):
    """Amount of one payment applied to one invoice."""

    __tablename__ = "payment_allocations"

    __table_args__ = (
        UniqueConstraint("payment_id", "invoice_id", name="uq_allocation_payment_invoice"),
        Index("idx_allocation_invoice", "invoice_id"),
    )

    payment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payments.id"),
        nullable=False,
    )
    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )
    applied_amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    payment: Mapped["PaymentModel"] = relationship(back_populates="allocations")
