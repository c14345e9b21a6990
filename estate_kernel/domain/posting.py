"""
Posting DTOs -- balanced double-entry line sets.

Responsibility:
    Immutable representation of a posting: one header per source economic
    event plus its debit/credit lines, each referencing an account by
    semantic role and by the resolved chart-of-accounts code.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Built by the posting emitter engine,
    persisted by the ledger posting service, returned by the posting
    selector.

Invariants enforced:
    - At least two lines; every amount strictly positive.
    - Single currency per posting.
    - Sum of debits equals sum of credits (UnbalancedPostingError).

Failure modes:
    - UnbalancedPostingError when debits != credits.
    - InvalidInputError on empty, single-line, non-positive or mixed
      currency line sets.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from estate_kernel.domain.dtos import LineSide
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import InvalidInputError, UnbalancedPostingError
from estate_kernel.utils.idempotency import posting_key


class AccountRole(str, Enum):
    """Semantic account roles resolved to chart-of-accounts codes."""

    RECEIVABLE = "receivable"
    RENT_INCOME = "rent_income"
    COST_CATEGORY = "cost_category"
    BANK = "bank"
    VAT_PAYABLE = "vat_payable"
    VAT_RECEIVABLE = "vat_receivable"
    TENANT_CREDIT = "tenant_credit"
    RESERVE_FUND = "reserve_fund"


class SourceType(str, Enum):
    """Economic events that produce postings."""

    INVOICE_ISSUED = "invoice.issued"
    PAYMENT_RECEIVED = "payment.received"
    EXPENSE_BOOKED = "expense.booked"
    DISTRIBUTION_CHARGED = "distribution.charged"


@dataclass(frozen=True)
class PostingLine:
    """One debit or credit line. ``amount`` is always positive."""

    role: AccountRole
    account_code: str
    side: LineSide
    amount: Money
    subject_id: str | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        if not self.amount.is_positive:
            raise InvalidInputError(
                f"Posting line amount must be positive: {self.amount}",
                field="amount",
            )

    def flipped(self) -> PostingLine:
        side = LineSide.CREDIT if self.side == LineSide.DEBIT else LineSide.DEBIT
        return PostingLine(
            role=self.role,
            account_code=self.account_code,
            side=side,
            amount=self.amount,
            subject_id=self.subject_id,
            memo=self.memo,
        )


@dataclass(frozen=True)
class Posting:
    """
    A balanced posting for one source event.

    Contract:
        ``(source_type, source_id)`` identifies the economic event; the ledger
        accepts at most one posting per pair.
    Guarantees:
        - ``total_debits == total_credits`` after construction.
    Non-goals:
        - Does not know whether it has been persisted; ``posting_id`` is set
          only on postings read back from the ledger.
    """

    source_type: str
    source_id: str
    effective_date: date
    lines: tuple[PostingLine, ...]
    description: str | None = None
    reversal_of: str | None = None
    posting_id: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if len(self.lines) < 2:
            raise InvalidInputError(
                f"Posting {self.idempotency_key} needs at least two lines",
                field="lines",
            )
        currencies = {line.amount.currency for line in self.lines}
        if len(currencies) != 1:
            raise InvalidInputError(
                f"Posting {self.idempotency_key} mixes currencies: {sorted(currencies)}",
                field="lines",
            )
        debits = self.total_debits
        credits = self.total_credits
        if debits != credits:
            raise UnbalancedPostingError(
                str(debits.amount), str(credits.amount), debits.currency
            )

    @property
    def currency(self) -> str:
        return self.lines[0].amount.currency

    @property
    def idempotency_key(self) -> str:
        return posting_key(self.source_type, self.source_id)

    @property
    def total_debits(self) -> Money:
        return Money.total(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            self.lines[0].amount.currency,
        )

    @property
    def total_credits(self) -> Money:
        return Money.total(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            self.lines[0].amount.currency,
        )

    def lines_for(self, role: AccountRole) -> tuple[PostingLine, ...]:
        return tuple(line for line in self.lines if line.role == role)
