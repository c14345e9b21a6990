"""
Module: estate_engines.payment_allocation
Responsibility:
    Apply one incoming payment against a tenant's open invoices, oldest
    period first, producing per-invoice applied amounts, new paid amounts,
    new statuses and any unapplied remainder. Also splits a payment across
    the components of a single invoice (operating costs, heating, rent).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import estate_kernel domain values, DTOs, exceptions and logging.

Invariants enforced:
    - Conservation: sum(applied) + unapplied == payment amount, exactly.
    - Strict FIFO by period: invoices are ordered by (year, month), then
      invoice id, regardless of creation order or due date.
    - Only paid amount and status change; invoices are never created or
      deleted.

Failure modes:
    - InvalidAmountError on a negative payment amount.
    - CurrencyMismatchError when invoice and payment currencies differ.
    - InvalidInputError when invoices belong to more than one tenant.
    - Settled or cancelled invoices (due <= 0) are skipped, not errors.

Audit relevance:
    Allocation lines become payment_allocations rows and the credit side
    of the payment-receipt posting. Because the allocator only reads the
    current paid amount, a retry after a lock conflict recomputes from
    fresh state and stays correct.

Usage:
    from estate_engines.payment_allocation import PaymentAllocator

    result = PaymentAllocator().allocate(Money.of("700.00"), open_invoices)
    result.unapplied  # carried forward as tenant credit by the caller
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import Invoice, InvoiceComponents, InvoiceStatus
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidInputError,
)
from estate_kernel.logging_config import get_logger

logger = get_logger("engines.payment_allocation")


@dataclass(frozen=True)
class AllocationLine:
    """
    Amount applied to one invoice.

    Guarantees:
        - ``new_paid == previous_paid + applied``.
        - ``applied`` is positive.
    """

    invoice_id: str
    year: int
    month: int
    applied: Money
    previous_paid: Money
    new_paid: Money
    previous_status: InvoiceStatus
    new_status: InvoiceStatus


@dataclass(frozen=True)
class AllocationResult:
    """
    Outcome of allocating one payment.

    Guarantees:
        - ``total_applied + unapplied == amount``.
        - ``updated_invoices`` holds a new snapshot for each touched invoice.
    """

    amount: Money
    lines: tuple[AllocationLine, ...]
    unapplied: Money
    skipped_invoice_ids: tuple[str, ...] = ()
    updated_invoices: tuple[Invoice, ...] = ()

    @property
    def total_applied(self) -> Money:
        return Money.total((line.applied for line in self.lines), self.amount.currency)

    @property
    def is_fully_applied(self) -> bool:
        return self.unapplied.is_zero

    def applied_to(self, invoice_id: str) -> Money:
        for line in self.lines:
            if line.invoice_id == invoice_id:
                return line.applied
        return Money.zero(self.amount.currency)


class ComponentSplitStatus(str, Enum):
    """Whether a payment settled a single invoice's components."""

    COMPLETE = "complete"
    PARTIAL = "partial"
    OVERPAID = "overpaid"


@dataclass(frozen=True)
class ComponentSplit:
    """
    Payment split across one invoice's components, gross amounts.

    VAT fields give the tax contained in each applied gross amount.
    """

    operating_costs: Money
    heating: Money
    rent: Money
    operating_costs_vat: Money
    heating_vat: Money
    rent_vat: Money
    overpayment: Money
    underpayment: Money
    status: ComponentSplitStatus

    @property
    def vat_total(self) -> Money:
        return self.operating_costs_vat + self.heating_vat + self.rent_vat

    @property
    def applied_total(self) -> Money:
        return self.operating_costs + self.heating + self.rent


def _contained_vat(gross: Money, rate: Decimal) -> Money:
    if gross.is_zero or rate == 0:
        return Money.zero(gross.currency)
    return Money(
        gross.amount - gross.amount / (1 + rate / Decimal("100")),
        gross.currency,
    )


class PaymentAllocator:
    """
    Apply payments against open invoices.

    Contract:
        Pure functions. The input invoices are snapshots read immediately
        before the call; the result carries the snapshots to write back.
    Guarantees:
        - Oldest period first; within a period, ascending invoice id.
        - ``paid`` when the new paid amount reaches gross, otherwise
          ``partially_paid``.
    Non-goals:
        - Does not decide what happens to the unapplied remainder.
        - Does not serialize concurrent allocations; the allocation service
          does that with optimistic retry.
    """

    @traced_engine("payment_allocation", "1.0", fingerprint_fields=("amount",))
    def allocate(
        self,
        amount: Money,
        invoices: Sequence[Invoice],
    ) -> AllocationResult:
        """
        Allocate ``amount`` across ``invoices`` oldest period first.

        Args:
            amount: Payment amount, non-negative.
            invoices: One tenant's invoices, in any order.

        Returns:
            AllocationResult with applied lines and unapplied remainder.
        """
        t0 = time.monotonic()
        if amount.is_negative:
            raise InvalidAmountError("amount", str(amount.amount))
        tenant_ids = {inv.tenant_id for inv in invoices}
        if len(tenant_ids) > 1:
            raise InvalidInputError(
                f"Invoices span {len(tenant_ids)} tenants; allocation is per tenant",
                field="invoices",
            )
        for inv in invoices:
            if inv.gross.currency != amount.currency:
                raise CurrencyMismatchError(amount.currency, inv.gross.currency)

        logger.info("payment_allocation_started", extra={
            "amount": str(amount.amount),
            "currency": amount.currency,
            "invoice_count": len(invoices),
        })

        ordered = sorted(invoices, key=lambda inv: (inv.year, inv.month, inv.invoice_id))
        remaining = amount
        lines: list[AllocationLine] = []
        skipped: list[str] = []
        updated: list[Invoice] = []

        for inv in ordered:
            if not remaining.is_positive:
                break
            if inv.status == InvoiceStatus.CANCELLED:
                skipped.append(inv.invoice_id)
                continue
            due = inv.gross - inv.paid_amount
            if not due.is_positive:
                skipped.append(inv.invoice_id)
                continue

            applied = min(remaining, due)
            new_paid = inv.paid_amount + applied
            new_status = (
                InvoiceStatus.PAID if new_paid >= inv.gross else InvoiceStatus.PARTIALLY_PAID
            )
            remaining = remaining - applied

            lines.append(
                AllocationLine(
                    invoice_id=inv.invoice_id,
                    year=inv.year,
                    month=inv.month,
                    applied=applied,
                    previous_paid=inv.paid_amount,
                    new_paid=new_paid,
                    previous_status=inv.status,
                    new_status=new_status,
                )
            )
            updated.append(inv.with_payment(new_paid, new_status))

        result = AllocationResult(
            amount=amount,
            lines=tuple(lines),
            unapplied=remaining,
            skipped_invoice_ids=tuple(skipped),
            updated_invoices=tuple(updated),
        )
        assert result.total_applied + result.unapplied == amount, "allocation lost cents"

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("payment_allocation_completed", extra={
            "amount": str(amount.amount),
            "applied": str(result.total_applied.amount),
            "unapplied": str(result.unapplied.amount),
            "invoices_touched": len(lines),
            "invoices_skipped": len(skipped),
            "duration_ms": duration_ms,
        })
        return result

    @traced_engine("payment_allocation.components", "1.0", fingerprint_fields=("amount",))
    def split_payment_across_components(
        self,
        amount: Money,
        components: InvoiceComponents,
    ) -> ComponentSplit:
        """
        Apply one payment to a single invoice's components in the order
        operating costs, heating, rent.

        Each component receives at most its gross amount (net plus VAT).
        The VAT contained in each applied gross amount is extracted at the
        component's rate.
        """
        if amount.is_negative:
            raise InvalidAmountError("amount", str(amount.amount))
        if components.gross.currency != amount.currency:
            raise CurrencyMismatchError(amount.currency, components.gross.currency)

        remaining = amount
        applied: list[Money] = []
        for gross in (
            components.operating_costs_gross,
            components.heating_gross,
            components.rent_gross,
        ):
            part = min(remaining, gross)
            applied.append(part)
            remaining = remaining - part

        total_gross = components.gross
        if amount == total_gross:
            status = ComponentSplitStatus.COMPLETE
        elif remaining.is_positive:
            status = ComponentSplitStatus.OVERPAID
        else:
            status = ComponentSplitStatus.PARTIAL

        shortfall = total_gross - amount
        split = ComponentSplit(
            operating_costs=applied[0],
            heating=applied[1],
            rent=applied[2],
            operating_costs_vat=_contained_vat(applied[0], components.operating_costs_vat_rate),
            heating_vat=_contained_vat(applied[1], components.heating_vat_rate),
            rent_vat=_contained_vat(applied[2], components.rent_vat_rate),
            overpayment=remaining,
            underpayment=shortfall if shortfall.is_positive else Money.zero(amount.currency),
            status=status,
        )
        logger.debug("component_split_completed", extra={
            "amount": str(amount.amount),
            "status": status.value,
            "overpayment": str(split.overpayment.amount),
            "underpayment": str(split.underpayment.amount),
        })
        return split
