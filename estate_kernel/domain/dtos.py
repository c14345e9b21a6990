"""
Domain DTOs -- explicit, boundary-validated entity snapshots.

Responsibility:
    Immutable data structures passed between selectors, engines and
    services: invoices, payments, tenants, distribution participants and
    bank transactions. Each entity validates itself at construction so that
    engines never duck-type over loosely shaped records.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Selectors build these from ORM rows;
    engines consume them.

Invariants enforced:
    - Invoice period month is 1..12; gross and paid amounts are non-negative.
    - Payment amounts are non-negative.
    - Participant weights are finite and non-negative.

Failure modes:
    - InvalidInputError / InvalidAmountError / InvalidWeightError on
      malformed input.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from estate_kernel.domain.values import Money
from estate_kernel.exceptions import (
    InvalidAmountError,
    InvalidInputError,
    InvalidWeightError,
)


class InvoiceStatus(str, Enum):
    """Lifecycle status of a monthly invoice."""

    OPEN = "open"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"


class LineSide(str, Enum):
    """Which side of a posting a line is on. Amounts are always positive."""

    DEBIT = "debit"
    CREDIT = "credit"


class DistributionKey(str, Enum):
    """Weighting used to apportion a shared cost."""

    AREA = "area"
    OWNERSHIP_SHARE = "ownership_share"
    HEAD_COUNT = "head_count"
    CONSUMPTION = "consumption"
    EQUAL = "equal"


def _require_non_negative(field: str, value: Money) -> None:
    if value.is_negative:
        raise InvalidAmountError(field, str(value.amount))


@dataclass(frozen=True)
class InvoiceComponents:
    """
    Net breakdown of a rent invoice with per-component VAT rates (percent).

    Operating costs and heating carry VAT in Austria (10% and 20%); base
    rent for residential use is configurable.
    """

    operating_costs: Money
    heating: Money
    rent: Money
    operating_costs_vat_rate: Decimal = Decimal("10")
    heating_vat_rate: Decimal = Decimal("20")
    rent_vat_rate: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        _require_non_negative("operating_costs", self.operating_costs)
        _require_non_negative("heating", self.heating)
        _require_non_negative("rent", self.rent)

    @property
    def operating_costs_gross(self) -> Money:
        return self.operating_costs + self.operating_costs.percent(self.operating_costs_vat_rate)

    @property
    def heating_gross(self) -> Money:
        return self.heating + self.heating.percent(self.heating_vat_rate)

    @property
    def rent_gross(self) -> Money:
        return self.rent + self.rent.percent(self.rent_vat_rate)

    @property
    def gross(self) -> Money:
        return self.operating_costs_gross + self.heating_gross + self.rent_gross


@dataclass(frozen=True)
class Invoice:
    """
    Snapshot of one tenant's invoice for one period.

    Contract:
        Belongs to exactly one tenant and one (year, month) period.
    Guarantees:
        - ``remaining`` is ``gross - paid_amount`` floored at zero.
    Non-goals:
        - Does not track allocation history; see PaymentAllocation records.
    """

    invoice_id: str
    tenant_id: str
    year: int
    month: int
    gross: Money
    paid_amount: Money
    status: InvoiceStatus = InvoiceStatus.OPEN
    due_date: date | None = None
    components: InvoiceComponents | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidInputError(
                f"Invoice {self.invoice_id} has invalid month {self.month}",
                field="month",
            )
        _require_non_negative("gross", self.gross)
        _require_non_negative("paid_amount", self.paid_amount)
        if self.gross.currency != self.paid_amount.currency:
            raise InvalidInputError(
                f"Invoice {self.invoice_id} mixes currencies",
                field="paid_amount",
            )

    @property
    def period(self) -> tuple[int, int]:
        return (self.year, self.month)

    @property
    def remaining(self) -> Money:
        due = self.gross - self.paid_amount
        return due if due.is_positive else Money.zero(self.gross.currency)

    @property
    def is_settled(self) -> bool:
        return self.paid_amount >= self.gross

    def with_payment(self, paid_amount: Money, status: InvoiceStatus) -> Invoice:
        return replace(self, paid_amount=paid_amount, status=status)


@dataclass(frozen=True)
class Payment:
    """An immutable incoming amount tied to a tenant."""

    payment_id: str
    tenant_id: str
    amount: Money
    received_on: date
    reference: str = ""

    def __post_init__(self) -> None:
        _require_non_negative("amount", self.amount)


@dataclass(frozen=True)
class Tenant:
    tenant_id: str
    first_name: str
    last_name: str
    iban: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def _as_weight(participant_id: str, value: Decimal | int | str) -> Decimal:
    if isinstance(value, float):
        raise InvalidWeightError(participant_id, repr(value))
    try:
        weight = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidWeightError(participant_id, repr(value)) from exc
    if weight.is_nan() or weight.is_infinite() or weight < 0:
        raise InvalidWeightError(participant_id, str(weight))
    return weight


@dataclass(frozen=True)
class Participant:
    """
    A unit or owner taking part in a cost distribution.

    Contract:
        Carries one weight per distribution key. ``tie_break`` is the
        key-specific ordering label (for example the unit's top number)
        used when two raw shares are identical.
    Guarantees:
        - All weights are finite, non-negative Decimals.
    """

    participant_id: str
    area: Decimal = Decimal("0")
    ownership_share: Decimal = Decimal("0")
    head_count: Decimal = Decimal("0")
    consumption: Decimal = Decimal("0")
    tie_break: str = ""

    def __post_init__(self) -> None:
        for name in ("area", "ownership_share", "head_count", "consumption"):
            object.__setattr__(
                self, name, _as_weight(self.participant_id, getattr(self, name))
            )

    def weight_for(self, key: DistributionKey) -> Decimal:
        match key:
            case DistributionKey.AREA:
                return self.area
            case DistributionKey.OWNERSHIP_SHARE:
                return self.ownership_share
            case DistributionKey.HEAD_COUNT:
                return self.head_count
            case DistributionKey.CONSUMPTION:
                return self.consumption
            case DistributionKey.EQUAL:
                return Decimal("1")
            case _:
                raise InvalidInputError(f"Unknown distribution key: {key}", field="key")


@dataclass(frozen=True)
class BankTransaction:
    """
    External bank movement. Positive amounts are credits.

    Only the tenant/invoice link may change after import.
    """

    transaction_id: str
    amount: Money
    booking_date: date
    counterpart_name: str = ""
    counterpart_iban: str | None = None
    description: str = ""
    tenant_id: str | None = None
    invoice_id: str | None = None

    @property
    def is_credit(self) -> bool:
        return self.amount.is_positive

    @property
    def is_unmatched_credit(self) -> bool:
        return self.is_credit and self.tenant_id is None


@dataclass(frozen=True)
class TenantBalance:
    """Invoiced (soll), paid (ist) and open balance for one tenant."""

    tenant_id: str
    invoiced: Money
    paid: Money

    @property
    def balance(self) -> Money:
        return self.invoiced - self.paid
