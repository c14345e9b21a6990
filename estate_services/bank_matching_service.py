"""
BankMatchingService -- suggestion and confirmation of bank matches.

Responsibility:
    Feed unmatched credit transactions and open invoices to the
    BankMatchScorer, and, once a human confirms a suggestion, link the
    transaction, record the payment and hand it to the payment allocation
    service.

Architecture position:
    Services -- imperative shell. Owns its transactions through a session
    factory, because the confirmed payment must be committed before the
    allocation service reads it in its own transaction.

Invariants enforced:
    - ``suggest`` performs no writes.
    - A transaction is linked at most once (row lock plus the unique
      payment.bank_transaction_id constraint).
    - The payment amount equals the transaction amount.

Failure modes:
    - TransactionNotFoundError / InvoiceNotFoundError for unknown ids.
    - TransactionAlreadyMatchedError when the transaction is already linked.
    - InvalidInputError for debit transactions.
    - Allocation errors from PaymentAllocationService propagate after the
      link and payment are committed; allocation can then be re-run for
      the returned payment id.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from estate_engines.bank_matching import BankMatchScorer, MatchSuggestion, identify_tenant
from estate_kernel.domain.clock import Clock, SystemClock
from estate_kernel.domain.dtos import Tenant
from estate_kernel.exceptions import (
    InvalidInputError,
    InvoiceNotFoundError,
    TransactionAlreadyMatchedError,
    TransactionNotFoundError,
)
from estate_kernel.logging_config import get_logger
from estate_kernel.models.bank import BankTransactionModel
from estate_kernel.models.invoice import InvoiceModel
from estate_kernel.models.payment import PaymentModel
from estate_kernel.selectors.bank_selector import BankTransactionSelector
from estate_kernel.selectors.invoice_selector import InvoiceSelector
from estate_kernel.selectors.tenant_selector import TenantSelector
from estate_services.allocation_service import (
    PaymentAllocationOutcome,
    PaymentAllocationService,
)

logger = get_logger("services.bank_matching")


@dataclass(frozen=True)
class MatchConfirmation:
    transaction_id: str
    invoice_id: str
    tenant_id: str
    payment_id: str
    allocation: PaymentAllocationOutcome


class BankMatchingService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        allocation_service: PaymentAllocationService,
        scorer: BankMatchScorer | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._allocation_service = allocation_service
        self._scorer = scorer or BankMatchScorer()
        self._clock = clock or SystemClock()

    def suggest(self, limit: int | None = None) -> list[MatchSuggestion]:
        """Current match suggestions, best first."""
        with self._session_factory() as session:
            transactions = BankTransactionSelector(session).unmatched_credits()
            invoices = InvoiceSelector(session).matchable_invoices()
            tenant_ids = sorted({inv.tenant_id for inv in invoices})
            tenants = TenantSelector(session).tenants(tenant_ids) if tenant_ids else []
        return self._scorer.suggest(transactions, invoices, tenants, limit=limit)

    def identify_tenant(self, transaction_id: UUID | str) -> Tenant | None:
        """Tenant recognized by the transaction's counterpart IBAN, if any."""
        with self._session_factory() as session:
            transaction = BankTransactionSelector(session).get(transaction_id)
            tenant = identify_tenant(transaction, TenantSelector(session).with_iban())
        logger.info("bank_tenant_identified", extra={
            "transaction_id": transaction.transaction_id,
            "tenant_id": tenant.tenant_id if tenant is not None else None,
        })
        return tenant

    def confirm(
        self,
        transaction_id: UUID | str,
        invoice_id: UUID | str,
    ) -> MatchConfirmation:
        """
        Link a transaction to an invoice's tenant, record the payment and
        allocate it.

        The payment is allocated oldest period first across the tenant's
        open invoices, which may differ from the confirmed invoice.
        """
        tx_uuid = UUID(str(transaction_id))
        invoice_uuid = UUID(str(invoice_id))

        with self._session_factory() as session:
            with session.begin():
                tx = session.get(BankTransactionModel, tx_uuid, with_for_update=True)
                if tx is None:
                    raise TransactionNotFoundError(str(tx_uuid))
                if tx.tenant_id is not None:
                    raise TransactionAlreadyMatchedError(str(tx_uuid), str(tx.tenant_id))
                if tx.amount <= 0:
                    raise InvalidInputError(
                        f"Only credit transactions can be matched: {tx_uuid}",
                        field="transaction_id",
                    )
                invoice = session.get(InvoiceModel, invoice_uuid)
                if invoice is None:
                    raise InvoiceNotFoundError(str(invoice_uuid))

                tx.tenant_id = invoice.tenant_id
                tx.invoice_id = invoice.id
                tx.matched_at = self._clock.now()
                payment = PaymentModel(
                    tenant_id=invoice.tenant_id,
                    amount=tx.amount,
                    currency=tx.currency,
                    received_on=tx.booking_date,
                    reference=tx.description,
                    bank_transaction_id=tx.id,
                )
                session.add(payment)
                session.flush()
                payment_id = str(payment.id)
                tenant_id = str(invoice.tenant_id)

        logger.info("bank_match_confirmed", extra={
            "transaction_id": str(tx_uuid),
            "invoice_id": str(invoice_uuid),
            "tenant_id": tenant_id,
            "payment_id": payment_id,
        })
        allocation = self._allocation_service.allocate_payment(payment_id)
        return MatchConfirmation(
            transaction_id=str(tx_uuid),
            invoice_id=str(invoice_uuid),
            tenant_id=tenant_id,
            payment_id=payment_id,
            allocation=allocation,
        )
