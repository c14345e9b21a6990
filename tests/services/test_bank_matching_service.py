"""
Tests for BankMatchingService.

Covers:
- Suggestions built from stored transactions, invoices and tenants
- Confirmation links the transaction, records a payment and allocates it
- Already matched, debit and unknown transactions rejected without effects
- Tenant recognition by counterpart IBAN
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from estate_engines.bank_matching import MatchReason
from estate_kernel.domain.dtos import InvoiceStatus
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import (
    InvalidInputError,
    InvoiceNotFoundError,
    TransactionAlreadyMatchedError,
    TransactionNotFoundError,
)
from estate_kernel.models import BankTransactionModel, InvoiceModel, PaymentModel
from estate_services.allocation_service import PaymentAllocationService
from estate_services.bank_matching_service import BankMatchingService


@pytest.fixture
def matching(session_factory, emitter, deterministic_clock):
    allocation = PaymentAllocationService(session_factory, emitter, clock=deterministic_clock)
    return BankMatchingService(session_factory, allocation, clock=deterministic_clock)


class TestSuggest:

    def test_suggestion_from_stored_rows(self, matching, seed):
        tenant = seed.tenant(last_name="Huber")
        invoice = seed.invoice(tenant, 2024, 3, "650.00", due_date=date(2024, 3, 5))
        tx = seed.transaction("650.00", date(2024, 3, 6), counterpart_name="HUBER ANNA")

        suggestions = matching.suggest()

        assert len(suggestions) == 1
        s = suggestions[0]
        assert (s.transaction_id, s.invoice_id, s.tenant_id) == (tx, invoice, tenant)
        assert s.confidence == Decimal("1.00")
        assert MatchReason.NAME_MATCH in s.reasons

    def test_nothing_to_match(self, matching, seed):
        seed.transaction("-80.00", date(2024, 3, 6))

        assert matching.suggest() == []

    def test_limit(self, matching, seed):
        tenant = seed.tenant()
        for month in (1, 2, 3):
            seed.invoice(tenant, 2024, month, "650.00", due_date=date(2024, 3, 5))
        seed.transaction("650.00", date(2024, 3, 6))

        assert len(matching.suggest(limit=2)) == 2


class TestIdentifyTenant:

    def test_by_counterpart_iban(self, matching, seed):
        seed.tenant(last_name="Huber", iban="AT48 3200 0000 1234 5864")
        maier = seed.tenant(last_name="Maier", iban="AT611904300234573201")
        tx = seed.transaction("650.00", date(2024, 3, 6), counterpart_iban="at61 1904 3002 3457 3201")

        tenant = matching.identify_tenant(tx)

        assert tenant.tenant_id == maier
        assert tenant.last_name == "Maier"

    def test_unknown_iban(self, matching, seed):
        seed.tenant(iban="AT611904300234573201")
        tx = seed.transaction("650.00", date(2024, 3, 6), counterpart_iban="DE89370400440532013000")

        assert matching.identify_tenant(tx) is None

    def test_transaction_without_iban(self, matching, seed):
        seed.tenant(iban="AT611904300234573201")
        tx = seed.transaction("650.00", date(2024, 3, 6))

        assert matching.identify_tenant(tx) is None

    def test_unknown_transaction(self, matching, db_engine):
        with pytest.raises(TransactionNotFoundError):
            matching.identify_tenant(uuid4())


class TestConfirm:

    def test_links_records_and_allocates(self, matching, seed, session, deterministic_clock):
        tenant = seed.tenant()
        invoice = seed.invoice(tenant, 2024, 3, "650.00", due_date=date(2024, 3, 5))
        tx = seed.transaction("650.00", date(2024, 3, 6), description="Miete 03/2024")

        confirmation = matching.confirm(tx, invoice)

        assert confirmation.tenant_id == tenant
        assert confirmation.allocation.applied == ((invoice, Money.of("650.00")),)

        tx_row = session.get(BankTransactionModel, UUID(tx))
        assert str(tx_row.tenant_id) == tenant
        assert str(tx_row.invoice_id) == invoice
        assert tx_row.matched_at is not None

        payment = session.get(PaymentModel, UUID(confirmation.payment_id))
        assert payment.amount == Decimal("650.00")
        assert payment.received_on == date(2024, 3, 6)
        assert payment.reference == "Miete 03/2024"
        assert payment.bank_transaction_id == UUID(tx)
        assert payment.is_allocated

        assert session.get(InvoiceModel, UUID(invoice)).status == InvoiceStatus.PAID.value

    def test_confirmed_transaction_leaves_suggestions(self, matching, seed):
        tenant = seed.tenant()
        invoice = seed.invoice(tenant, 2024, 3, "650.00", due_date=date(2024, 3, 5))
        tx = seed.transaction("650.00", date(2024, 3, 6))

        matching.confirm(tx, invoice)

        assert matching.suggest() == []

    def test_allocates_oldest_period_first(self, matching, seed, session):
        """Confirming against March still settles February first."""
        tenant = seed.tenant()
        feb = seed.invoice(tenant, 2024, 2, "650.00", due_date=date(2024, 2, 5))
        mar = seed.invoice(tenant, 2024, 3, "650.00", due_date=date(2024, 3, 5))
        tx = seed.transaction("650.00", date(2024, 3, 6))

        confirmation = matching.confirm(tx, mar)

        assert confirmation.allocation.applied == ((feb, Money.of("650.00")),)
        assert session.get(InvoiceModel, UUID(mar)).paid_amount == Decimal("0.00")

    def test_already_matched(self, matching, seed):
        tenant = seed.tenant()
        invoice = seed.invoice(tenant, 2024, 3, "650.00")
        tx = seed.transaction("650.00", date(2024, 3, 6))
        matching.confirm(tx, invoice)

        with pytest.raises(TransactionAlreadyMatchedError):
            matching.confirm(tx, invoice)

    def test_debit_rejected(self, matching, seed, session):
        tenant = seed.tenant()
        invoice = seed.invoice(tenant, 2024, 3, "650.00")
        tx = seed.transaction("-650.00", date(2024, 3, 6))

        with pytest.raises(InvalidInputError):
            matching.confirm(tx, invoice)

        assert session.get(BankTransactionModel, UUID(tx)).tenant_id is None

    def test_unknown_transaction(self, matching, seed):
        tenant = seed.tenant()
        invoice = seed.invoice(tenant, 2024, 3, "650.00")

        with pytest.raises(TransactionNotFoundError):
            matching.confirm(uuid4(), invoice)

    def test_unknown_invoice_leaves_transaction_unlinked(self, matching, seed, session):
        tx = seed.transaction("650.00", date(2024, 3, 6))

        with pytest.raises(InvoiceNotFoundError):
            matching.confirm(tx, uuid4())

        assert session.get(BankTransactionModel, UUID(tx)).tenant_id is None
        assert session.query(PaymentModel).count() == 0
