"""
Module: estate_kernel.models.tenant
Responsibility: ORM persistence for tenants, the counterparty of invoices,
    payments and matched bank transactions.
Architecture position: Kernel > Models. May import from db/ only.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from estate_kernel.db.base import TrackedBase


class TenantModel(TrackedBase):
    """A lessee. The surname feeds bank-match name recognition."""

    __tablename__ = "tenants"

    __table_args__ = (
        Index("idx_tenant_property", "property_id"),
        Index("idx_tenant_iban", "iban"),
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    iban: Mapped[str | None] = mapped_column(String(34), nullable=True)
    property_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<TenantModel {self.id} {self.last_name}>"
