"""Bank transaction query selector."""

from uuid import UUID

from sqlalchemy import select

from estate_kernel.domain.dtos import BankTransaction
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import TransactionNotFoundError
from estate_kernel.models.bank import BankTransactionModel
from estate_kernel.selectors.base import BaseSelector


def transaction_to_dto(row: BankTransactionModel) -> BankTransaction:
    return BankTransaction(
        transaction_id=str(row.id),
        amount=Money(row.amount, row.currency),
        booking_date=row.booking_date,
        counterpart_name=row.counterpart_name,
        counterpart_iban=row.counterpart_iban,
        description=row.description,
        tenant_id=str(row.tenant_id) if row.tenant_id is not None else None,
        invoice_id=str(row.invoice_id) if row.invoice_id is not None else None,
    )


class BankTransactionSelector(BaseSelector):
    """Read-only bank transaction queries."""

    def get(self, transaction_id: UUID | str) -> BankTransaction:
        row = self.session.get(BankTransactionModel, UUID(str(transaction_id)))
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))
        return transaction_to_dto(row)

    def unmatched_credits(self) -> list[BankTransaction]:
        """Credit transactions not yet linked to a tenant."""
        stmt = (
            select(BankTransactionModel)
            .where(BankTransactionModel.amount > 0)
            .where(BankTransactionModel.tenant_id.is_(None))
            .order_by(BankTransactionModel.booking_date, BankTransactionModel.id)
        )
        return [transaction_to_dto(row) for row in self.session.scalars(stmt)]
