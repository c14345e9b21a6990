"""
Module: estate_engines.posting
Responsibility:
    Translate invoice issuance, payment receipt, expense booking and cost
    distribution into balanced double-entry postings, and build reversing
    postings for corrections.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Accounts are referenced by
    semantic role and resolved to chart-of-accounts codes through an
    injected resolver; the ledger posting service persists the result.

Invariants enforced:
    - Debits == credits for every posting (checked by Posting itself).
    - Each line's amount traces to the originating economic amount.
    - Zero-amount lines are dropped; an event with nothing to book yields
      None instead of a posting.
    - Postings are never edited. A reversal is a new posting with sides
      swapped, source type "<original>.reversal" and the same source id.

Failure modes:
    - RoleResolutionError when the resolver has no account for a role.
    - InvalidInputError when components do not add up to the gross amount
      or an allocation does not belong to the payment.
    - UnbalancedPostingError is a programming error here.

Audit relevance:
    The (source_type, source_id) pair ties each posting to one economic
    event; the ledger's uniqueness constraint on that pair makes replays
    no-ops.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date

from estate_engines.distribution import BusinessPlanResult, DistributionResult
from estate_engines.payment_allocation import AllocationResult
from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import Invoice, LineSide, Payment
from estate_kernel.domain.posting import AccountRole, Posting, PostingLine, SourceType
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import InvalidInputError
from estate_kernel.logging_config import get_logger
from estate_kernel.utils.idempotency import reversal_source_type

logger = get_logger("engines.posting")

AccountResolver = Callable[[AccountRole], str]

_Spec = tuple[AccountRole, LineSide, Money, str | None, str | None]


class PostingEmitter:
    """
    Build balanced postings from engine results.

    Contract:
        Pure; the resolver is a lookup, not I/O.
    Guarantees:
        - Lines appear debits first, then credits, in a fixed order.
    Non-goals:
        - Does not check whether a posting already exists; the ledger
          posting service does.
    """

    def __init__(self, resolve_account: AccountResolver):
        self._resolve = resolve_account

    def _build(
        self,
        source_type: str,
        source_id: str,
        effective_date: date,
        specs: Iterable[_Spec],
        description: str | None = None,
    ) -> Posting | None:
        specs = [s for s in specs if not s[2].is_zero]
        if not specs:
            logger.info("posting_skipped_zero_amount", extra={
                "source_type": source_type,
                "source_id": source_id,
            })
            return None
        ordered = [s for s in specs if s[1] == LineSide.DEBIT] + [
            s for s in specs if s[1] == LineSide.CREDIT
        ]
        lines = tuple(
            PostingLine(
                role=role,
                account_code=self._resolve(role),
                side=side,
                amount=amount,
                subject_id=subject_id,
                memo=memo,
            )
            for role, side, amount, subject_id, memo in ordered
        )
        posting = Posting(
            source_type=source_type,
            source_id=source_id,
            effective_date=effective_date,
            lines=lines,
            description=description,
        )
        logger.info("posting_emitted", extra={
            "source_type": source_type,
            "source_id": source_id,
            "line_count": len(lines),
            "total": str(posting.total_debits.amount),
        })
        return posting

    @traced_engine("posting.invoice", "1.0")
    def for_invoice(
        self,
        invoice: Invoice,
        net: Money | None = None,
        tax: Money | None = None,
        effective_date: date | None = None,
    ) -> Posting | None:
        """
        Invoice issuance: Dr receivable gross / Cr rent income net /
        Cr VAT payable tax.

        Without explicit ``net``/``tax`` the invoice components are used;
        an invoice without components books its gross as net.
        """
        currency = invoice.gross.currency
        if net is None and tax is None:
            if invoice.components is not None:
                net = (
                    invoice.components.operating_costs
                    + invoice.components.heating
                    + invoice.components.rent
                )
                tax = invoice.gross - net
            else:
                net = invoice.gross
                tax = Money.zero(currency)
        net = net if net is not None else invoice.gross - tax
        tax = tax if tax is not None else invoice.gross - net
        if net + tax != invoice.gross or net.is_negative or tax.is_negative:
            raise InvalidInputError(
                f"Invoice {invoice.invoice_id}: net {net} + tax {tax} != gross {invoice.gross}",
                field="net",
            )

        when = effective_date or invoice.due_date or date(invoice.year, invoice.month, 1)
        return self._build(
            SourceType.INVOICE_ISSUED.value,
            invoice.invoice_id,
            when,
            [
                (AccountRole.RECEIVABLE, LineSide.DEBIT, invoice.gross, invoice.tenant_id, None),
                (AccountRole.RENT_INCOME, LineSide.CREDIT, net, invoice.invoice_id, None),
                (AccountRole.VAT_PAYABLE, LineSide.CREDIT, tax, invoice.invoice_id, None),
            ],
            description=f"Invoice {invoice.year}-{invoice.month:02d}",
        )

    @traced_engine("posting.payment", "1.0")
    def for_payment(
        self,
        payment: Payment,
        allocation: AllocationResult,
    ) -> Posting | None:
        """
        Payment receipt: Dr bank amount / Cr receivable per invoice applied /
        Cr tenant credit for the unapplied remainder.
        """
        if allocation.amount != payment.amount:
            raise InvalidInputError(
                f"Allocation amount {allocation.amount} does not match payment "
                f"{payment.payment_id} amount {payment.amount}",
                field="allocation",
            )
        specs: list[_Spec] = [
            (AccountRole.BANK, LineSide.DEBIT, payment.amount, payment.tenant_id, payment.reference or None),
        ]
        for line in allocation.lines:
            specs.append(
                (AccountRole.RECEIVABLE, LineSide.CREDIT, line.applied, line.invoice_id,
                 f"{line.year}-{line.month:02d}")
            )
        specs.append(
            (AccountRole.TENANT_CREDIT, LineSide.CREDIT, allocation.unapplied, payment.tenant_id,
             "unapplied")
        )
        return self._build(
            SourceType.PAYMENT_RECEIVED.value,
            payment.payment_id,
            payment.received_on,
            specs,
            description=f"Payment {payment.reference}".strip(),
        )

    @traced_engine("posting.expense", "1.0")
    def for_expense(
        self,
        expense_id: str,
        net: Money,
        tax: Money,
        booked_on: date,
        description: str | None = None,
    ) -> Posting | None:
        """Expense booking: Dr cost category net / Dr VAT receivable tax / Cr bank gross."""
        if net.is_negative or tax.is_negative:
            raise InvalidInputError(
                f"Expense {expense_id} amounts must be non-negative", field="net"
            )
        return self._build(
            SourceType.EXPENSE_BOOKED.value,
            expense_id,
            booked_on,
            [
                (AccountRole.COST_CATEGORY, LineSide.DEBIT, net, expense_id, None),
                (AccountRole.VAT_RECEIVABLE, LineSide.DEBIT, tax, expense_id, None),
                (AccountRole.BANK, LineSide.CREDIT, net + tax, expense_id, None),
            ],
            description=description,
        )

    @traced_engine("posting.distribution", "1.0")
    def for_distribution(
        self,
        run_id: str,
        result: DistributionResult | BusinessPlanResult,
        effective_date: date,
        description: str | None = None,
    ) -> Posting | None:
        """
        Charge distributed shares: per participant Dr receivable gross;
        Cr cost category net total / Cr VAT payable tax total /
        Cr reserve fund reserve total.
        """
        specs: list[_Spec] = [
            (AccountRole.RECEIVABLE, LineSide.DEBIT, line.gross, line.participant_id,
             "provisional" if line.provisional else None)
            for line in result.lines
        ]
        if result.lines:
            specs.extend([
                (AccountRole.COST_CATEGORY, LineSide.CREDIT, result.net_total, run_id, None),
                (AccountRole.VAT_PAYABLE, LineSide.CREDIT, result.tax_total, run_id, None),
                (AccountRole.RESERVE_FUND, LineSide.CREDIT, result.reserve_total, run_id, None),
            ])
        return self._build(
            SourceType.DISTRIBUTION_CHARGED.value,
            run_id,
            effective_date,
            specs,
            description=description,
        )

    def reverse(self, posting: Posting, effective_date: date | None = None) -> Posting:
        """Reversing posting: same lines with sides swapped, same source id."""
        reversal = Posting(
            source_type=reversal_source_type(posting.source_type),
            source_id=posting.source_id,
            effective_date=effective_date or posting.effective_date,
            lines=tuple(line.flipped() for line in posting.lines),
            description=f"Reversal of {posting.idempotency_key}",
            reversal_of=posting.posting_id,
        )
        logger.info("posting_reversal_emitted", extra={
            "source_type": posting.source_type,
            "source_id": posting.source_id,
            "reversal_of": posting.posting_id,
        })
        return reversal
