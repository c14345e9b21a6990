"""Tenant query selector."""

from uuid import UUID

from sqlalchemy import select

from estate_kernel.domain.dtos import Tenant
from estate_kernel.models.tenant import TenantModel
from estate_kernel.selectors.base import BaseSelector


def tenant_to_dto(row: TenantModel) -> Tenant:
    return Tenant(
        tenant_id=str(row.id),
        first_name=row.first_name,
        last_name=row.last_name,
        iban=row.iban,
    )


class TenantSelector(BaseSelector):
    """Read-only tenant queries."""

    def tenants(self, tenant_ids: list[UUID | str] | None = None) -> list[Tenant]:
        stmt = select(TenantModel).order_by(TenantModel.last_name, TenantModel.id)
        if tenant_ids is not None:
            stmt = stmt.where(TenantModel.id.in_([UUID(str(t)) for t in tenant_ids]))
        return [tenant_to_dto(row) for row in self.session.scalars(stmt)]

    def with_iban(self) -> list[Tenant]:
        """Tenants with a stored IBAN, for bank-side tenant recognition."""
        stmt = (
            select(TenantModel)
            .where(TenantModel.iban.is_not(None))
            .order_by(TenantModel.last_name, TenantModel.id)
        )
        return [tenant_to_dto(row) for row in self.session.scalars(stmt)]
