"""
Invoice query selector.

Provides read-only access to invoices for allocation, bank matching,
dunning and tenant balances. Converts InvoiceModel rows to Invoice DTOs.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from estate_kernel.domain.dtos import (
    Invoice,
    InvoiceComponents,
    InvoiceStatus,
    TenantBalance,
)
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import InvoiceNotFoundError
from estate_kernel.models.invoice import InvoiceModel
from estate_kernel.selectors.base import BaseSelector

OPEN_STATUSES = (
    InvoiceStatus.OPEN.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
)
MATCHABLE_STATUSES = (
    InvoiceStatus.OPEN.value,
    InvoiceStatus.PARTIALLY_PAID.value,
)


def invoice_to_dto(row: InvoiceModel) -> Invoice:
    """Convert an InvoiceModel row into an Invoice DTO."""
    components = None
    if row.operating_costs is not None or row.heating is not None or row.rent is not None:
        components = InvoiceComponents(
            operating_costs=Money(row.operating_costs or Decimal("0"), row.currency),
            heating=Money(row.heating or Decimal("0"), row.currency),
            rent=Money(row.rent or Decimal("0"), row.currency),
            operating_costs_vat_rate=(
                row.operating_costs_vat_rate
                if row.operating_costs_vat_rate is not None
                else Decimal("10")
            ),
            heating_vat_rate=(
                row.heating_vat_rate if row.heating_vat_rate is not None else Decimal("20")
            ),
            rent_vat_rate=(
                row.rent_vat_rate if row.rent_vat_rate is not None else Decimal("0")
            ),
        )
    return Invoice(
        invoice_id=str(row.id),
        tenant_id=str(row.tenant_id),
        year=row.year,
        month=row.month,
        gross=Money(row.gross, row.currency),
        paid_amount=Money(row.paid_amount, row.currency),
        status=InvoiceStatus(row.status),
        due_date=row.due_date,
        components=components,
    )


class InvoiceSelector(BaseSelector):
    """Read-only invoice queries."""

    def get(self, invoice_id: UUID | str) -> Invoice:
        row = self.session.get(InvoiceModel, UUID(str(invoice_id)))
        if row is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice_to_dto(row)

    def open_invoices_for_tenant(self, tenant_id: UUID | str) -> list[Invoice]:
        """Unsettled invoices of one tenant, oldest period first."""
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.tenant_id == UUID(str(tenant_id)))
            .where(InvoiceModel.status.in_(OPEN_STATUSES))
            .order_by(InvoiceModel.year, InvoiceModel.month, InvoiceModel.id)
        )
        return [invoice_to_dto(row) for row in self.session.scalars(stmt)]

    def matchable_invoices(self) -> list[Invoice]:
        """Open or partially paid invoices with a remaining balance."""
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.status.in_(MATCHABLE_STATUSES))
            .where(InvoiceModel.gross > InvoiceModel.paid_amount)
            .order_by(InvoiceModel.year, InvoiceModel.month, InvoiceModel.id)
        )
        return [invoice_to_dto(row) for row in self.session.scalars(stmt)]

    def overdue_invoices(
        self,
        as_of: date,
        min_days_overdue: int = 0,
        tenant_ids: list[UUID | str] | None = None,
    ) -> list[Invoice]:
        """
        Unsettled invoices whose due date is at least ``min_days_overdue``
        days before ``as_of``.
        """
        cutoff = as_of - timedelta(days=min_days_overdue)
        stmt = (
            select(InvoiceModel)
            .where(InvoiceModel.status.in_(OPEN_STATUSES))
            .where(InvoiceModel.due_date.is_not(None))
            .where(InvoiceModel.due_date <= cutoff)
            .where(InvoiceModel.gross > InvoiceModel.paid_amount)
            .order_by(InvoiceModel.tenant_id, InvoiceModel.year, InvoiceModel.month)
        )
        if tenant_ids is not None:
            stmt = stmt.where(
                InvoiceModel.tenant_id.in_([UUID(str(t)) for t in tenant_ids])
            )
        return [invoice_to_dto(row) for row in self.session.scalars(stmt)]

    def tenant_balance(
        self,
        tenant_id: UUID | str,
        year: int | None = None,
        currency: str = "EUR",
    ) -> TenantBalance:
        """Invoiced versus paid totals over non-cancelled invoices."""
        stmt = (
            select(
                func.coalesce(func.sum(InvoiceModel.gross), 0),
                func.coalesce(func.sum(InvoiceModel.paid_amount), 0),
            )
            .where(InvoiceModel.tenant_id == UUID(str(tenant_id)))
            .where(InvoiceModel.status != InvoiceStatus.CANCELLED.value)
            .where(InvoiceModel.currency == currency)
        )
        if year is not None:
            stmt = stmt.where(InvoiceModel.year == year)
        invoiced, paid = self.session.execute(stmt).one()
        return TenantBalance(
            tenant_id=str(tenant_id),
            invoiced=Money(Decimal(str(invoiced)), currency),
            paid=Money(Decimal(str(paid)), currency),
        )
