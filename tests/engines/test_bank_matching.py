"""
Tests for the Bank Match Scorer.

Covers:
- Amount scoring (exact within one cent, similar within 5%)
- Date proximity scoring and the 30-day rejection window
- Surname matching and IBAN tenant recognition
- Confidence clamp and minimum threshold
- Candidate filtering, ordering and the suggestion cap
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from estate_engines.bank_matching import (
    BankMatchScorer,
    MatchReason,
    MatchScoring,
    identify_tenant,
    normalize_iban,
)
from estate_kernel.domain.dtos import BankTransaction, Invoice, InvoiceStatus, Tenant
from estate_kernel.domain.values import Money

DUE = date(2024, 3, 5)
TENANT = Tenant(tenant_id="t1", first_name="Anna", last_name="Huber")


def _invoice(invoice_id="inv-1", gross="500.00", paid="0.00",
             status=InvoiceStatus.OPEN, due_date=DUE, tenant_id="t1"):
    return Invoice(
        invoice_id=invoice_id,
        tenant_id=tenant_id,
        year=due_date.year if due_date else 2024,
        month=due_date.month if due_date else 3,
        gross=Money.of(gross),
        paid_amount=Money.of(paid),
        status=status,
        due_date=due_date,
    )


def _tx(transaction_id="tx-1", amount="500.00", days_after_due=1,
        counterpart_name="", tenant_id=None, counterpart_iban=None):
    return BankTransaction(
        transaction_id=transaction_id,
        amount=Money.of(amount),
        booking_date=DUE + timedelta(days=days_after_due),
        counterpart_name=counterpart_name,
        counterpart_iban=counterpart_iban,
        tenant_id=tenant_id,
    )


class TestPairScoring:

    def setup_method(self):
        self.scorer = BankMatchScorer()

    def test_perfect_match(self):
        s = self.scorer.score_pair(_tx(counterpart_name="HUBER ANNA"), _invoice(), TENANT)

        assert s.confidence == Decimal("1.00")
        assert s.reasons == (
            MatchReason.EXACT_AMOUNT,
            MatchReason.DATE_MATCH,
            MatchReason.NAME_MATCH,
        )
        assert s.days_apart == 1

    def test_exact_amount_close_date(self):
        s = self.scorer.score_pair(_tx(days_after_due=10), _invoice(), TENANT)

        assert s.confidence == Decimal("0.65")
        assert MatchReason.DATE_CLOSE in s.reasons

    def test_exact_amount_alone_passes(self):
        s = self.scorer.score_pair(_tx(days_after_due=20), _invoice(), TENANT)

        assert s.confidence == Decimal("0.50")
        assert s.reasons == (MatchReason.EXACT_AMOUNT,)

    def test_one_cent_tolerance_is_exact(self):
        s = self.scorer.score_pair(_tx(amount="500.01"), _invoice(), TENANT)

        assert MatchReason.EXACT_AMOUNT in s.reasons
        assert s.amount_difference == Money.of("0.01")

    def test_similar_amount(self):
        s = self.scorer.score_pair(_tx(amount="490.00"), _invoice(), TENANT)

        assert s.confidence == Decimal("0.55")
        assert s.reasons == (MatchReason.SIMILAR_AMOUNT, MatchReason.DATE_MATCH)

    def test_similar_amount_alone_below_threshold(self):
        assert self.scorer.score_pair(
            _tx(amount="490.00", days_after_due=20), _invoice(), TENANT
        ) is None

    def test_amount_too_far_off(self):
        assert self.scorer.score_pair(
            _tx(amount="470.00", counterpart_name="Huber"), _invoice(), TENANT
        ) is None

    def test_scores_against_remaining_balance(self):
        inv = _invoice(gross="500.00", paid="300.00", status=InvoiceStatus.PARTIALLY_PAID)
        s = self.scorer.score_pair(_tx(amount="200.00"), inv, TENANT)

        assert MatchReason.EXACT_AMOUNT in s.reasons
        assert s.invoice_remaining == Money.of("200.00")

    def test_surname_case_insensitive_substring(self):
        s = self.scorer.score_pair(
            _tx(days_after_due=20, counterpart_name="Mag. a. huber-schmid"), _invoice(), TENANT
        )

        assert MatchReason.NAME_MATCH in s.reasons

    def test_unknown_tenant_gets_no_name_bonus(self):
        s = self.scorer.score_pair(_tx(counterpart_name="Huber"), _invoice(), None)

        assert MatchReason.NAME_MATCH not in s.reasons

    def test_invoice_without_due_date_skipped(self):
        assert self.scorer.score_pair(_tx(), _invoice(due_date=None), TENANT) is None


class TestIbanRecognition:

    def setup_method(self):
        self.scorer = BankMatchScorer()
        self.tenants = [
            TENANT,
            Tenant("t2", "Karl", "Maier", iban="AT61 1904 3002 3457 3201"),
            Tenant("t3", "Eva", "Berger", iban="AT48 3200 0000 1234 5864"),
        ]

    def test_normalize(self):
        assert normalize_iban(" at61 1904 3002\t3457 3201 ") == "AT611904300234573201"
        assert normalize_iban(None) == ""

    def test_identifies_tenant_ignoring_spaces_and_case(self):
        tx = _tx(counterpart_iban="at611904300234573201")

        assert identify_tenant(tx, self.tenants).tenant_id == "t2"

    def test_no_match(self):
        tx = _tx(counterpart_iban="DE89 3704 0044 0532 0130 00")

        assert identify_tenant(tx, self.tenants) is None

    def test_missing_iban_never_matches(self):
        assert identify_tenant(_tx(), self.tenants) is None
        assert identify_tenant(_tx(counterpart_iban="  "), [Tenant("t4", "A", "B", iban="")]) is None

    def test_reason_without_confidence_change(self):
        tenant = self.tenants[1]
        invoice = _invoice(tenant_id="t2")
        plain = self.scorer.score_pair(_tx(), invoice, tenant)
        with_iban = self.scorer.score_pair(_tx(counterpart_iban="AT611904300234573201"), invoice, tenant)

        assert MatchReason.IBAN_MATCH in with_iban.reasons
        assert MatchReason.IBAN_MATCH not in plain.reasons
        assert with_iban.confidence == plain.confidence

    def test_other_tenants_iban_is_no_reason(self):
        s = self.scorer.score_pair(_tx(counterpart_iban="AT48 3200 0000 1234 5864"),
                                   _invoice(tenant_id="t2"), self.tenants[1])

        assert MatchReason.IBAN_MATCH not in s.reasons


class TestDateWindow:
    """More than 30 days apart is never suggested."""

    def setup_method(self):
        self.scorer = BankMatchScorer()

    @pytest.mark.parametrize("offset", [31, -31, 90])
    def test_outside_window_rejected(self, offset):
        tx = _tx(days_after_due=offset, counterpart_name="Huber")

        assert self.scorer.score_pair(tx, _invoice(), TENANT) is None
        assert self.scorer.suggest([tx], [_invoice()], [TENANT]) == []

    def test_thirty_days_still_scored(self):
        s = self.scorer.score_pair(_tx(days_after_due=-30, counterpart_name="Huber"), _invoice(), TENANT)

        assert s.confidence == Decimal("0.75")
        assert s.days_apart == 30


class TestConfidenceBounds:

    def test_clamped_to_one(self):
        scoring = MatchScoring(exact_amount=Decimal("0.9"), date_match=Decimal("0.9"))
        s = BankMatchScorer(scoring).score_pair(_tx(counterpart_name="Huber"), _invoice(), TENANT)

        assert s.confidence == Decimal("1")

    def test_raised_threshold(self):
        scoring = MatchScoring(min_confidence=Decimal("0.70"))
        scorer = BankMatchScorer(scoring)

        assert scorer.score_pair(_tx(days_after_due=10), _invoice(), TENANT) is None

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            MatchScoring(name_match=Decimal("-0.1"))


class TestSuggest:

    def setup_method(self):
        self.scorer = BankMatchScorer()

    def test_sorted_by_confidence(self):
        invoices = [
            _invoice("inv-a", gross="500.00"),
            _invoice("inv-b", gross="490.00"),
        ]
        suggestions = self.scorer.suggest([_tx()], invoices, [TENANT])

        assert [s.invoice_id for s in suggestions] == ["inv-a", "inv-b"]
        assert suggestions[0].confidence > suggestions[1].confidence

    def test_ties_ordered_by_ids(self):
        txs = [_tx("tx-2"), _tx("tx-1")]
        invoices = [_invoice("inv-b"), _invoice("inv-a")]
        suggestions = self.scorer.suggest(txs, invoices, {"t1": TENANT})

        assert [(s.transaction_id, s.invoice_id) for s in suggestions] == [
            ("tx-1", "inv-a"),
            ("tx-1", "inv-b"),
            ("tx-2", "inv-a"),
            ("tx-2", "inv-b"),
        ]

    def test_limit(self):
        invoices = [_invoice(f"inv-{i}") for i in range(5)]
        suggestions = self.scorer.suggest([_tx()], invoices, [TENANT], limit=2)

        assert len(suggestions) == 2

    def test_configured_cap(self):
        scorer = BankMatchScorer(MatchScoring(max_suggestions=3))
        invoices = [_invoice(f"inv-{i}") for i in range(5)]

        assert len(scorer.suggest([_tx()], invoices, [TENANT])) == 3

    def test_debits_and_linked_transactions_ignored(self):
        txs = [
            _tx("tx-debit", amount="-500.00"),
            _tx("tx-linked", tenant_id="t1"),
        ]

        assert self.scorer.suggest(txs, [_invoice()], [TENANT]) == []

    def test_settled_and_cancelled_invoices_ignored(self):
        invoices = [
            _invoice("paid", paid="500.00", status=InvoiceStatus.PAID),
            _invoice("cancelled", status=InvoiceStatus.CANCELLED),
        ]

        assert self.scorer.suggest([_tx()], invoices, [TENANT]) == []

    def test_overdue_status_not_a_candidate(self):
        overdue = _invoice("overdue", status=InvoiceStatus.OVERDUE)

        assert self.scorer.suggest([_tx()], [overdue], [TENANT]) == []

    def test_no_candidates_is_empty_not_error(self):
        assert self.scorer.suggest([], [], []) == []

    def test_confidence_always_within_bounds(self):
        invoices = [_invoice(f"inv-{i}", gross=f"{480 + i * 5}.00") for i in range(10)]
        txs = [_tx(f"tx-{d}", days_after_due=d, counterpart_name="Huber") for d in range(-35, 36, 7)]
        suggestions = self.scorer.suggest(txs, invoices, [TENANT], limit=1000)

        assert suggestions
        for s in suggestions:
            assert Decimal("0.40") <= s.confidence <= Decimal("1")
            assert s.days_apart <= 30
