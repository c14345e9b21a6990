"""
Module: estate_engines.bank_matching
Responsibility:
    Propose (bank transaction, invoice) pairs for unmatched incoming
    payments, each with a confidence score in [0, 1] and the reasons that
    contributed to it.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Performs no writes;
    confirming a suggestion is a separate action of the bank matching
    service.

Invariants enforced:
    - A pair more than ``max_days_apart`` days from the invoice due date is
      never suggested, whatever the amount.
    - A pair whose amount is neither exact (within one cent) nor within 5%
      of the remaining balance is never suggested.
    - Confidence is clamped to 1; pairs below ``min_confidence`` are dropped.
    - Output is sorted by descending confidence, then transaction id, then
      invoice id, and capped at ``max_suggestions``.

Failure modes:
    - None for "no good matches": an empty list is a normal result.

Audit relevance:
    Suggestions are ephemeral. Only the confirmed link is recorded, by the
    bank matching service.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import BankTransaction, Invoice, InvoiceStatus, Tenant
from estate_kernel.domain.values import Money
from estate_kernel.logging_config import get_logger

logger = get_logger("engines.bank_matching")

_MATCHABLE_STATUSES = (InvoiceStatus.OPEN, InvoiceStatus.PARTIALLY_PAID)


class MatchReason(str, Enum):
    """Why a pair scored."""

    EXACT_AMOUNT = "exact_amount"
    SIMILAR_AMOUNT = "similar_amount"
    DATE_MATCH = "date_match"
    DATE_CLOSE = "date_close"
    NAME_MATCH = "name_match"
    IBAN_MATCH = "iban_match"


@dataclass(frozen=True)
class MatchScoring:
    """
    Scoring weights and thresholds.

    Guarantees:
        - All weights are non-negative Decimals.
    """

    exact_amount: Decimal = Decimal("0.50")
    similar_amount: Decimal = Decimal("0.30")
    date_match: Decimal = Decimal("0.25")
    date_close: Decimal = Decimal("0.15")
    name_match: Decimal = Decimal("0.25")
    exact_tolerance: Decimal = Decimal("0.01")
    similar_ratio: Decimal = Decimal("0.05")
    date_match_days: int = 3
    date_close_days: int = 14
    max_days_apart: int = 30
    min_confidence: Decimal = Decimal("0.40")
    max_suggestions: int = 50

    def __post_init__(self) -> None:
        for name in ("exact_amount", "similar_amount", "date_match", "date_close", "name_match"):
            if getattr(self, name) < 0:
                raise ValueError(f"Match weight {name} cannot be negative")


DEFAULT_SCORING = MatchScoring()


def normalize_iban(iban: str | None) -> str:
    """``"at61 1904 3002 3457 3201"`` -> ``"AT611904300234573201"``."""
    return "".join((iban or "").split()).upper()


def _same_iban(left: str | None, right: str | None) -> bool:
    normalized = normalize_iban(left)
    return bool(normalized) and normalized == normalize_iban(right)


def identify_tenant(
    transaction: BankTransaction,
    tenants: Sequence[Tenant],
) -> Tenant | None:
    """
    The first tenant whose IBAN equals the transaction's counterpart IBAN,
    ignoring whitespace and case. None when the transaction carries no IBAN
    or no tenant matches.
    """
    if not normalize_iban(transaction.counterpart_iban):
        return None
    for tenant in tenants:
        if _same_iban(transaction.counterpart_iban, tenant.iban):
            return tenant
    return None


@dataclass(frozen=True)
class MatchSuggestion:
    """A proposed pairing for a human to confirm or dismiss."""

    transaction_id: str
    invoice_id: str
    tenant_id: str
    confidence: Decimal
    reasons: tuple[MatchReason, ...]
    transaction_amount: Money
    invoice_remaining: Money
    days_apart: int

    @property
    def amount_difference(self) -> Money:
        return abs(self.transaction_amount - self.invoice_remaining)


class BankMatchScorer:
    """
    Score transaction/invoice pairs.

    Contract:
        Pure; inputs are snapshots, output is a fresh list.
    Guarantees:
        - ``0 <= confidence <= 1`` for every suggestion.
        - Deterministic ordering for identical input.
    Non-goals:
        - No learned-pattern tenant recognition.
        - A counterpart IBAN equal to the tenant's is reported as
          ``IBAN_MATCH`` but does not change the confidence.
        - No one-to-one assignment; a transaction may appear against
          several invoices.
    """

    def __init__(self, scoring: MatchScoring = DEFAULT_SCORING):
        self._scoring = scoring

    @property
    def scoring(self) -> MatchScoring:
        return self._scoring

    def score_pair(
        self,
        transaction: BankTransaction,
        invoice: Invoice,
        tenant: Tenant | None,
    ) -> MatchSuggestion | None:
        """Score one pair; None when the pair is rejected or below threshold."""
        cfg = self._scoring
        if invoice.due_date is None:
            return None
        remaining = invoice.remaining
        if not remaining.is_positive:
            return None
        if transaction.amount.currency != remaining.currency:
            return None

        days_apart = abs((transaction.booking_date - invoice.due_date).days)
        if days_apart > cfg.max_days_apart:
            return None

        diff = abs(transaction.amount - remaining).amount
        confidence = Decimal("0")
        reasons: list[MatchReason] = []

        if diff <= cfg.exact_tolerance:
            confidence += cfg.exact_amount
            reasons.append(MatchReason.EXACT_AMOUNT)
        elif diff / remaining.amount < cfg.similar_ratio:
            confidence += cfg.similar_amount
            reasons.append(MatchReason.SIMILAR_AMOUNT)
        else:
            return None

        if days_apart <= cfg.date_match_days:
            confidence += cfg.date_match
            reasons.append(MatchReason.DATE_MATCH)
        elif days_apart <= cfg.date_close_days:
            confidence += cfg.date_close
            reasons.append(MatchReason.DATE_CLOSE)

        surname = tenant.last_name.strip().lower() if tenant is not None else ""
        if surname and surname in transaction.counterpart_name.lower():
            confidence += cfg.name_match
            reasons.append(MatchReason.NAME_MATCH)

        if tenant is not None and _same_iban(transaction.counterpart_iban, tenant.iban):
            reasons.append(MatchReason.IBAN_MATCH)

        confidence = min(confidence, Decimal("1"))
        if confidence < cfg.min_confidence:
            return None

        return MatchSuggestion(
            transaction_id=transaction.transaction_id,
            invoice_id=invoice.invoice_id,
            tenant_id=invoice.tenant_id,
            confidence=confidence,
            reasons=tuple(reasons),
            transaction_amount=transaction.amount,
            invoice_remaining=remaining,
            days_apart=days_apart,
        )

    @traced_engine("bank_matching", "1.0", fingerprint_fields=("limit",))
    def suggest(
        self,
        transactions: Sequence[BankTransaction],
        invoices: Sequence[Invoice],
        tenants: Mapping[str, Tenant] | Sequence[Tenant],
        limit: int | None = None,
    ) -> list[MatchSuggestion]:
        """
        Propose matches between unmatched credit transactions and open
        invoices.

        Args:
            transactions: Candidate transactions; debits and already linked
                transactions are ignored.
            invoices: Candidate invoices; only open or partially paid ones
                with a remaining balance are scored.
            tenants: Tenants by id (or a sequence of them) for name matching.
            limit: Maximum number of suggestions (defaults to the configured cap).
        """
        t0 = time.monotonic()
        if not isinstance(tenants, Mapping):
            tenants = {t.tenant_id: t for t in tenants}
        cap = self._scoring.max_suggestions if limit is None else limit

        candidate_txs = [tx for tx in transactions if tx.is_unmatched_credit]
        candidate_invs = [
            inv for inv in invoices
            if inv.status in _MATCHABLE_STATUSES and inv.remaining.is_positive
        ]
        logger.info("match_search_started", extra={
            "transaction_count": len(candidate_txs),
            "invoice_count": len(candidate_invs),
        })

        suggestions: list[MatchSuggestion] = []
        for tx in candidate_txs:
            for inv in candidate_invs:
                suggestion = self.score_pair(tx, inv, tenants.get(inv.tenant_id))
                if suggestion is not None:
                    suggestions.append(suggestion)

        suggestions.sort(
            key=lambda s: (-s.confidence, s.transaction_id, s.invoice_id)
        )
        result = suggestions[: max(cap, 0)]

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("match_search_completed", extra={
            "pairs_scored": len(candidate_txs) * len(candidate_invs),
            "suggestions_found": len(suggestions),
            "suggestions_returned": len(result),
            "duration_ms": duration_ms,
        })
        return result
