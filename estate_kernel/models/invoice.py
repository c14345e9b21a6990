"""
Module: estate_kernel.models.invoice
Responsibility: ORM persistence for monthly tenant invoices.
Architecture position: Kernel > Models. May import from db/ and domain/ enums.

Invariants enforced:
    - One invoice per tenant and period (UNIQUE tenant_id, year, month).
    - Optimistic locking: ``version`` is the mapper's version_id_col, so an
      UPDATE issued from a stale read matches zero rows and SQLAlchemy raises
      StaleDataError. Services translate that into OptimisticLockError.

Failure modes:
    - IntegrityError on a duplicate (tenant, period).
    - StaleDataError on a concurrent paid-amount update.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from estate_kernel.db.base import TrackedBase, UUIDString
from estate_kernel.db.types import MoneyAmount, Rate
from estate_kernel.domain.dtos import InvoiceStatus


class InvoiceModel(TrackedBase):
    """
    Invoice row mutated only by payment allocation or explicit cancellation.

    Contract:
        ``paid_amount`` and ``status`` are the only columns the engine writes.
    Guarantees:
        - ``version`` increments on every UPDATE.
    Non-goals:
        - Component columns are optional; plain gross invoices leave them NULL.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "year", "month", name="uq_invoice_tenant_period"),
        Index("idx_invoice_tenant_status", "tenant_id", "status"),
        Index("idx_invoice_due_date", "due_date"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenants.id"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date | None] = mapped_column(nullable=True)

    gross: Mapped[MoneyAmount] = mapped_column(nullable=False)
    paid_amount: Mapped[MoneyAmount] = mapped_column(nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR")
    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.OPEN,
    )

    # Net component breakdown (operating costs, heating, rent)
    operating_costs: Mapped[MoneyAmount | None] = mapped_column(nullable=True)
    heating: Mapped[MoneyAmount | None] = mapped_column(nullable=True)
    rent: Mapped[MoneyAmount | None] = mapped_column(nullable=True)
    operating_costs_vat_rate: Mapped[Rate | None] = mapped_column(nullable=True)
    heating_vat_rate: Mapped[Rate | None] = mapped_column(nullable=True)
    rent_vat_rate: Mapped[Rate | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.id} {self.year}-{self.month:02d} status={self.status}>"
