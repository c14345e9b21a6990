"""
Module: estate_kernel.models.bank
Responsibility: ORM persistence for imported bank transactions.
Architecture position: Kernel > Models. May import from db/ only.

Invariants enforced:
    - Imported fields never change; only the tenant/invoice link and
      ``matched_at`` are written, once, on confirmed match.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from estate_kernel.db.base import TrackedBase, UUIDString
from estate_kernel.db.types import MoneyAmount


class BankTransactionModel(TrackedBase):
    """A movement on the property's bank account. Credits are positive."""

    __tablename__ = "bank_transactions"

    __table_args__ = (
        Index("idx_bank_tx_tenant", "tenant_id"),
        Index("idx_bank_tx_booking_date", "booking_date"),
    )

    amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    booking_date: Mapped[date] = mapped_column(nullable=False)
    counterpart_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    counterpart_iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    tenant_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=True,
    )
    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=True,
    )
    matched_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def is_matched(self) -> bool:
        return self.tenant_id is not None

    def __repr__(self) -> str:
        return f"<BankTransactionModel {self.id} {self.amount} {self.booking_date}>"
