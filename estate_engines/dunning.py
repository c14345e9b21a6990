"""
Module: estate_engines.dunning
Responsibility:
    Derive the dunning level of an overdue invoice from its days overdue,
    compute statutory default interest, and assess tenants for the next
    dunning run (fees, interest, escalation).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    "Today" is always passed in by the caller (from an injected Clock).

Invariants enforced:
    - Level is a pure function of days overdue: 0-13 -> 0, 14-29 -> 1,
      30-44 -> 2, >=45 -> 3. No stored transitions; recomputed on read.
    - Interest = principal * rate / 365 / 100 * days, rounded once to the
      cent. Zero principal or zero days yields zero.
    - Default rate is 4% p.a. (ABGB section 1333).

Failure modes:
    - InvalidInputError on negative days overdue.
    - InvalidAmountError on negative principal or rate.

Audit relevance:
    Assessments drive reminder letters and fee charges. Deterministic
    recomputation means a dunning run can be replayed for any date.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import IntEnum

from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import Invoice
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import InvalidAmountError, InvalidInputError
from estate_kernel.logging_config import get_logger

logger = get_logger("engines.dunning")

DEFAULT_ANNUAL_RATE = Decimal("4")
DAYS_PER_YEAR = Decimal("365")


class DunningLevel(IntEnum):
    """Dunning severity."""

    NONE = 0
    FIRST_REMINDER = 1
    SECOND_REMINDER = 2
    FINAL_NOTICE = 3


@dataclass(frozen=True)
class DunningStage:
    """Threshold, label and fee of one dunning level."""

    level: DunningLevel
    min_days: int
    label: str
    fee: Money


STANDARD_DUNNING_STAGES: tuple[DunningStage, ...] = (
    DunningStage(DunningLevel.NONE, 0, "open", Money.of("0.00")),
    DunningStage(DunningLevel.FIRST_REMINDER, 14, "payment_reminder", Money.of("0.00")),
    DunningStage(DunningLevel.SECOND_REMINDER, 30, "second_reminder", Money.of("5.00")),
    DunningStage(DunningLevel.FINAL_NOTICE, 45, "final_notice", Money.of("10.00")),
)


def days_overdue(due_date: date | None, as_of: date) -> int:
    """Whole days past due, floored at zero. No due date counts as not overdue."""
    if due_date is None:
        return 0
    return max(0, (as_of - due_date).days)


def dunning_level(
    days: int,
    stages: Sequence[DunningStage] = STANDARD_DUNNING_STAGES,
) -> DunningLevel:
    """Highest stage whose threshold ``days`` has reached."""
    if days < 0:
        raise InvalidInputError(f"Days overdue cannot be negative: {days}", field="days")
    level = DunningLevel.NONE
    for stage in sorted(stages, key=lambda s: s.min_days):
        if days >= stage.min_days:
            level = stage.level
    return level


@traced_engine(
    "dunning.interest", "1.0",
    fingerprint_fields=("principal", "days", "annual_rate"),
)
def calculate_interest(
    principal: Money,
    days: int,
    annual_rate: Decimal = DEFAULT_ANNUAL_RATE,
) -> Money:
    """
    Statutory default interest on an overdue principal.

    >>> calculate_interest(Money.of("1000.00"), 30)
    Money(amount=Decimal('3.29'), currency='EUR')
    """
    if principal.is_negative:
        raise InvalidAmountError("principal", str(principal.amount))
    if days < 0:
        raise InvalidInputError(f"Days overdue cannot be negative: {days}", field="days")
    if annual_rate < 0:
        raise InvalidAmountError("annual_rate", str(annual_rate))
    if principal.is_zero or days == 0:
        return Money.zero(principal.currency)
    return Money(
        principal.amount * annual_rate * days / (DAYS_PER_YEAR * 100),
        principal.currency,
    )


@dataclass(frozen=True)
class DunningAssessment:
    """
    Dunning state of one invoice on a given date.

    Guarantees:
        - ``total_due == outstanding + fee + interest``.
        - ``escalates`` is true only when ``level`` exceeds ``previous_level``.
    """

    invoice_id: str
    tenant_id: str
    days_overdue: int
    level: DunningLevel
    previous_level: DunningLevel
    outstanding: Money
    fee: Money
    interest: Money

    @property
    def total_due(self) -> Money:
        return self.outstanding + self.fee + self.interest

    @property
    def escalates(self) -> bool:
        return self.level > self.previous_level


@dataclass(frozen=True)
class TenantDunningSummary:
    """All overdue invoices of one tenant on a given date."""

    tenant_id: str
    assessments: tuple[DunningAssessment, ...]
    outstanding: Money
    interest: Money
    fee: Money
    level: DunningLevel

    @property
    def invoice_count(self) -> int:
        return len(self.assessments)

    @property
    def total_due(self) -> Money:
        return self.outstanding + self.fee + self.interest

    @property
    def escalates(self) -> bool:
        return any(a.escalates for a in self.assessments)


class DunningCalculator:
    """
    Assess overdue invoices.

    Contract:
        Pure functions; ``as_of`` comes from the caller's clock.
    Guarantees:
        - Fees come from the configured stage table.
        - One fee per tenant notice: the fee of the tenant's highest level.
    Non-goals:
        - Does not send letters or store levels.
    """

    def __init__(
        self,
        stages: Sequence[DunningStage] = STANDARD_DUNNING_STAGES,
        annual_rate: Decimal = DEFAULT_ANNUAL_RATE,
    ):
        if not stages:
            raise InvalidInputError("At least one dunning stage is required", field="stages")
        self._stages = tuple(sorted(stages, key=lambda s: s.min_days))
        self._annual_rate = annual_rate

    @property
    def stages(self) -> tuple[DunningStage, ...]:
        return self._stages

    @property
    def minimum_days(self) -> int:
        """Days overdue at which the first actionable level starts."""
        actionable = [s.min_days for s in self._stages if s.level > DunningLevel.NONE]
        return min(actionable) if actionable else 0

    def level_for(self, days: int) -> DunningLevel:
        return dunning_level(days, self._stages)

    def stage_for(self, level: DunningLevel) -> DunningStage:
        for stage in self._stages:
            if stage.level == level:
                return stage
        raise InvalidInputError(f"No dunning stage for level {int(level)}", field="level")

    def interest(self, principal: Money, days: int) -> Money:
        return calculate_interest(principal, days, self._annual_rate)

    def assess_invoice(
        self,
        invoice: Invoice,
        as_of: date,
        previous_level: DunningLevel = DunningLevel.NONE,
    ) -> DunningAssessment:
        days = days_overdue(invoice.due_date, as_of)
        level = self.level_for(days)
        outstanding = invoice.remaining
        return DunningAssessment(
            invoice_id=invoice.invoice_id,
            tenant_id=invoice.tenant_id,
            days_overdue=days,
            level=level,
            previous_level=previous_level,
            outstanding=outstanding,
            fee=self.stage_for(level).fee,
            interest=self.interest(outstanding, days),
        )

    @traced_engine("dunning.tenant", "1.0", fingerprint_fields=("as_of",))
    def assess_tenants(
        self,
        invoices: Sequence[Invoice],
        as_of: date,
        previous_levels: Mapping[str, DunningLevel] | None = None,
    ) -> list[TenantDunningSummary]:
        """
        Group actionable invoices by tenant and rank tenants by outstanding
        amount, highest first (ties by tenant id).

        Invoices below the first actionable level are ignored.
        ``previous_levels`` maps invoice id to the last level notified.
        """
        previous_levels = previous_levels or {}
        by_tenant: dict[str, list[DunningAssessment]] = {}
        for inv in sorted(invoices, key=lambda i: (i.tenant_id, i.year, i.month, i.invoice_id)):
            assessment = self.assess_invoice(
                inv, as_of, previous_levels.get(inv.invoice_id, DunningLevel.NONE)
            )
            if assessment.level == DunningLevel.NONE or assessment.outstanding.is_zero:
                continue
            by_tenant.setdefault(inv.tenant_id, []).append(assessment)

        summaries: list[TenantDunningSummary] = []
        for tenant_id, assessments in by_tenant.items():
            currency = assessments[0].outstanding.currency
            level = max(a.level for a in assessments)
            summaries.append(
                TenantDunningSummary(
                    tenant_id=tenant_id,
                    assessments=tuple(assessments),
                    outstanding=Money.total((a.outstanding for a in assessments), currency),
                    interest=Money.total((a.interest for a in assessments), currency),
                    fee=self.stage_for(level).fee,
                    level=level,
                )
            )
        summaries.sort(key=lambda s: (-s.outstanding.amount, s.tenant_id))

        logger.info("dunning_assessment_completed", extra={
            "as_of": as_of.isoformat(),
            "invoice_count": len(invoices),
            "tenant_count": len(summaries),
            "escalations": sum(1 for s in summaries if s.escalates),
        })
        return summaries
