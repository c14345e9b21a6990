"""
Module: estate_engines.distribution
Responsibility:
    Split a shared cost across units or owners by a distribution key (area,
    ownership share, head-count, consumption, equal) with cent-exact
    rounding reconciliation. Also covers the owner-association (WEG) annual
    business plan, where operating items are taxed and reserve-fund items
    are not.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import estate_kernel domain values, DTOs, exceptions and logging.

Invariants enforced:
    - Conservation: per component (net, tax, reserve) the sum of all
      participant shares equals the component total exactly.
    - Determinism: cent adjustments follow a total order (descending
      absolute raw share, ascending tie-break label, ascending participant
      id), so identical input yields identical output.
    - No negative shares.

Failure modes:
    - InvalidWeightError on negative or NaN weights (raised by Participant).
    - InvalidAmountError on negative totals, reserves or tax rates.
    - InvalidInputError on duplicate participant ids.
    - CurrencyMismatchError when total and reserve currencies differ.
    - Zero participants is not an error; the result has no lines.

Audit relevance:
    Distribution lines feed owner/tenant charges and their postings. The
    recorded adjustment order lets an auditor replay exactly which
    participant absorbed each rounding cent.

Usage:
    from estate_engines.distribution import DistributionCalculator
    from estate_kernel.domain import DistributionKey, Money, Participant

    calc = DistributionCalculator()
    result = calc.distribute(
        Money.of("1200.00"),
        [Participant("u1", area=Decimal("60")), Participant("u2", area=Decimal("90"))],
        DistributionKey.AREA,
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import DistributionKey, Participant
from estate_kernel.domain.values import CENT, Money, round_money
from estate_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidInputError,
)
from estate_kernel.logging_config import get_logger

logger = get_logger("engines.distribution")

NET = "net"
TAX = "tax"
RESERVE = "reserve"

# Statutory minimum reserve contribution per m2 and month (WEG 2022)
MINIMUM_RESERVE_PER_SQM = Decimal("0.90")


@dataclass(frozen=True)
class CentAdjustment:
    """One rounding cent handed to (or taken from) a participant."""

    component: str
    participant_id: str
    cents: int


@dataclass(frozen=True)
class DistributionLine:
    """
    One participant's share of a cost.

    Contract:
        ``gross == net + tax + reserve``.
    Guarantees:
        - All components are non-negative.
        - ``provisional`` is set when the zero-weight equal-split fallback
          was used, so callers can flag the figures as non-final.
    """

    participant_id: str
    weight: Decimal
    net: Money
    tax: Money
    reserve: Money
    provisional: bool = False

    @property
    def gross(self) -> Money:
        return self.net + self.tax + self.reserve


@dataclass(frozen=True)
class DistributionResult:
    """
    Complete distribution of one cost total.

    Guarantees:
        - Sum of ``net`` over lines == ``net_total``; likewise tax, reserve.
        - ``adjustments`` lists cent fixups in the order they were applied.
    """

    key: DistributionKey
    net_total: Money
    tax_total: Money
    reserve_total: Money
    lines: tuple[DistributionLine, ...]
    adjustments: tuple[CentAdjustment, ...] = ()
    provisional: bool = False

    @property
    def gross_total(self) -> Money:
        return self.net_total + self.tax_total + self.reserve_total

    def line_for(self, participant_id: str) -> DistributionLine | None:
        for line in self.lines:
            if line.participant_id == participant_id:
                return line
        return None

    def component_sum(self, component: str) -> Money:
        return Money.total(
            (getattr(line, component) for line in self.lines),
            self.net_total.currency,
        )


@dataclass(frozen=True)
class CostItem:
    """A cost to distribute, e.g. one invoice line of the annual water bill."""

    item_id: str
    amount: Money
    key: DistributionKey
    tax_rate: Decimal | None = None
    reserve: Money | None = None
    category: str = ""


@dataclass(frozen=True)
class BusinessPlanItem:
    """
    One line of a WEG annual business plan.

    Reserve-fund items are tax exempt; all other items carry ``tax_rate``
    percent VAT on their monthly amount.
    """

    item_id: str
    category: str
    annual_amount: Money
    tax_rate: Decimal = Decimal("0")
    is_reserve: bool = False

    def __post_init__(self) -> None:
        if self.annual_amount.is_negative:
            raise InvalidAmountError("annual_amount", str(self.annual_amount.amount))
        if self.tax_rate < 0:
            raise InvalidAmountError("tax_rate", str(self.tax_rate))

    @property
    def monthly_amount(self) -> Money:
        return self.annual_amount / 12


@dataclass(frozen=True)
class BusinessPlanResult:
    """Monthly per-participant advance payments under a business plan."""

    key: DistributionKey
    lines: tuple[DistributionLine, ...]
    item_results: tuple[tuple[str, DistributionResult], ...]
    net_total: Money
    tax_total: Money
    reserve_total: Money
    provisional: bool = False

    def line_for(self, participant_id: str) -> DistributionLine | None:
        for line in self.lines:
            if line.participant_id == participant_id:
                return line
        return None


@dataclass(frozen=True)
class ReserveCheck:
    """Outcome of the statutory minimum reserve check."""

    monthly_per_sqm: Money
    minimum_per_sqm: Decimal
    meets_minimum: bool


def _apportion(
    total: Money,
    participants: Sequence[Participant],
    weights: Sequence[Decimal],
    component: str,
) -> tuple[list[Money], list[CentAdjustment]]:
    """
    Split ``total`` by ``weights`` and reconcile rounding cents.

    Preconditions:
        - ``participants`` is non-empty and ``sum(weights) > 0``.
        - ``total`` is non-negative.
    Postconditions:
        - Returned shares sum to ``total`` exactly; none is negative.
    """
    weight_sum = sum(weights, Decimal("0"))
    raw = [total.amount * w / weight_sum for w in weights]
    cents = [int(round_money(r) / CENT) for r in raw]
    diff = total.cents - sum(cents)

    adjustments: list[CentAdjustment] = []
    if diff != 0:
        order = sorted(
            range(len(participants)),
            key=lambda i: (
                -abs(raw[i]),
                participants[i].tie_break,
                participants[i].participant_id,
            ),
        )
        step = 1 if diff > 0 else -1
        while diff != 0:
            progressed = False
            for i in order:
                if diff == 0:
                    break
                if step < 0 and cents[i] <= 0:
                    continue
                cents[i] += step
                diff -= step
                progressed = True
                adjustments.append(
                    CentAdjustment(component, participants[i].participant_id, step)
                )
            assert progressed, "rounding reconciliation cannot make progress"

    shares = [Money.from_cents(c, total.currency) for c in cents]
    assert Money.total(shares, total.currency) == total, "distribution lost cents"
    return shares, adjustments


def check_reserve_minimum(
    reserve_annual: Money,
    total_area: Decimal,
    minimum_per_sqm: Decimal = MINIMUM_RESERVE_PER_SQM,
) -> ReserveCheck:
    """
    Compare the annual reserve contribution with the statutory minimum per
    m2 and month. Zero area yields a zero rate that fails the check.
    """
    if total_area <= 0:
        monthly = Money.zero(reserve_annual.currency)
    else:
        monthly = Money(reserve_annual.amount / 12 / total_area, reserve_annual.currency)
    return ReserveCheck(
        monthly_per_sqm=monthly,
        minimum_per_sqm=minimum_per_sqm,
        meets_minimum=total_area > 0 and monthly.amount >= minimum_per_sqm,
    )


class DistributionCalculator:
    """
    Apportion costs across participants.

    Contract:
        Pure functions with deterministic rounding. No I/O.
    Guarantees:
        - Every raw share is rounded independently (half away from zero),
          then the remaining cents are handed out one at a time in the
          documented total order.
        - Components are reconciled independently.
    Non-goals:
        - Does not parallelize; callers fan out over independent cost items.
        - Does not persist results.
    """

    @traced_engine("distribution", "1.0", fingerprint_fields=("total", "key"))
    def distribute(
        self,
        total: Money,
        participants: Sequence[Participant],
        key: DistributionKey,
        tax_rate: Decimal | None = None,
        reserve: Money | None = None,
    ) -> DistributionResult:
        """
        Distribute ``total`` (net) plus optional tax and reserve components.

        Args:
            total: Net cost to distribute.
            participants: Units or owners with their weights.
            key: Which weight to use.
            tax_rate: VAT percent applied to ``total``; tax is distributed
                with the same weights.
            reserve: Reserve-fund amount, distributed separately and never taxed.
        """
        t0 = time.monotonic()
        currency = total.currency
        if total.is_negative:
            raise InvalidAmountError("total", str(total.amount))
        if reserve is not None:
            if reserve.currency != currency:
                raise CurrencyMismatchError(currency, reserve.currency)
            if reserve.is_negative:
                raise InvalidAmountError("reserve", str(reserve.amount))
        if tax_rate is not None and (not tax_rate.is_finite() or tax_rate < 0):
            raise InvalidAmountError("tax_rate", str(tax_rate))

        ids = [p.participant_id for p in participants]
        if len(set(ids)) != len(ids):
            raise InvalidInputError("Duplicate participant ids", field="participants")

        tax_total = total.percent(tax_rate) if tax_rate else Money.zero(currency)
        reserve_total = reserve if reserve is not None else Money.zero(currency)

        logger.info("distribution_started", extra={
            "total": str(total.amount),
            "currency": currency,
            "key": key.value,
            "participant_count": len(participants),
            "tax_total": str(tax_total.amount),
            "reserve_total": str(reserve_total.amount),
        })

        if not participants:
            logger.warning("distribution_no_participants", extra={
                "total": str(total.amount),
                "key": key.value,
            })
            return DistributionResult(
                key=key,
                net_total=total,
                tax_total=tax_total,
                reserve_total=reserve_total,
                lines=(),
            )

        weights = [p.weight_for(key) for p in participants]
        provisional = False
        if sum(weights, Decimal("0")) == 0:
            provisional = True
            weights = [Decimal("1")] * len(participants)
            logger.warning("distribution_zero_weight_fallback", extra={
                "key": key.value,
                "participant_count": len(participants),
            })

        net_shares, net_adj = _apportion(total, participants, weights, NET)
        tax_shares, tax_adj = _apportion(tax_total, participants, weights, TAX)
        reserve_shares, reserve_adj = _apportion(
            reserve_total, participants, weights, RESERVE
        )

        lines = tuple(
            DistributionLine(
                participant_id=p.participant_id,
                weight=weights[i],
                net=net_shares[i],
                tax=tax_shares[i],
                reserve=reserve_shares[i],
                provisional=provisional,
            )
            for i, p in enumerate(participants)
        )

        result = DistributionResult(
            key=key,
            net_total=total,
            tax_total=tax_total,
            reserve_total=reserve_total,
            lines=lines,
            adjustments=tuple(net_adj + tax_adj + reserve_adj),
            provisional=provisional,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("distribution_completed", extra={
            "key": key.value,
            "line_count": len(lines),
            "adjustment_count": len(result.adjustments),
            "provisional": provisional,
            "duration_ms": duration_ms,
        })
        return result

    def distribute_item(
        self,
        item: CostItem,
        participants: Sequence[Participant],
    ) -> DistributionResult:
        """Distribute a single CostItem."""
        return self.distribute(
            item.amount,
            participants,
            item.key,
            tax_rate=item.tax_rate,
            reserve=item.reserve,
        )

    @traced_engine("distribution.business_plan", "1.0", fingerprint_fields=("key",))
    def distribute_business_plan(
        self,
        items: Sequence[BusinessPlanItem],
        participants: Sequence[Participant],
        key: DistributionKey,
    ) -> BusinessPlanResult:
        """
        Monthly advance payments for a WEG annual plan.

        Each item's monthly amount (annual / 12, rounded) is distributed on
        its own. Reserve items feed the reserve component; other items feed
        net and their VAT feeds tax. Per-participant lines are the sums over
        items, so conservation holds per item and per component.
        """
        currency = items[0].annual_amount.currency if items else "EUR"
        logger.info("business_plan_distribution_started", extra={
            "item_count": len(items),
            "participant_count": len(participants),
            "key": key.value,
        })

        item_results: list[tuple[str, DistributionResult]] = []
        for item in items:
            monthly = item.monthly_amount
            if item.is_reserve:
                res = self.distribute(
                    Money.zero(monthly.currency), participants, key, reserve=monthly
                )
            else:
                res = self.distribute(monthly, participants, key, tax_rate=item.tax_rate)
            item_results.append((item.item_id, res))

        totals: dict[str, list[Money]] = {
            p.participant_id: [Money.zero(currency)] * 3 for p in participants
        }
        # Every item shares participants and key, so the applied weights agree
        weights = {p.participant_id: p.weight_for(key) for p in participants}
        provisional = False
        for _, res in item_results:
            provisional = provisional or res.provisional
            for line in res.lines:
                weights[line.participant_id] = line.weight
                acc = totals[line.participant_id]
                totals[line.participant_id] = [
                    acc[0] + line.net,
                    acc[1] + line.tax,
                    acc[2] + line.reserve,
                ]

        lines = tuple(
            DistributionLine(
                participant_id=p.participant_id,
                weight=weights[p.participant_id],
                net=totals[p.participant_id][0],
                tax=totals[p.participant_id][1],
                reserve=totals[p.participant_id][2],
                provisional=provisional,
            )
            for p in participants
        )

        result = BusinessPlanResult(
            key=key,
            lines=lines,
            item_results=tuple(item_results),
            net_total=Money.total((r.net_total for _, r in item_results), currency),
            tax_total=Money.total((r.tax_total for _, r in item_results), currency),
            reserve_total=Money.total((r.reserve_total for _, r in item_results), currency),
            provisional=provisional,
        )
        logger.info("business_plan_distribution_completed", extra={
            "item_count": len(items),
            "net_total": str(result.net_total.amount),
            "tax_total": str(result.tax_total.amount),
            "reserve_total": str(result.reserve_total.amount),
        })
        return result
