"""
Engine settings schema.

Frozen dataclasses for the tunable parts of the engines: the dunning
ladder, the statutory interest rate, bank match weights and thresholds,
the allocation retry budget, distribution fan-out, and the account role
bindings used by the posting emitter. The loader parses YAML into these
types; bridges turn them into configured engine instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Dunning and interest
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DunningStageDef:
    """One rung of the dunning ladder."""

    level: int
    min_days: int
    label: str
    fee: Decimal = Decimal("0")


@dataclass(frozen=True)
class DunningSettings:
    stages: tuple[DunningStageDef, ...] = (
        DunningStageDef(0, 0, "open"),
        DunningStageDef(1, 14, "payment_reminder"),
        DunningStageDef(2, 30, "second_reminder", Decimal("5.00")),
        DunningStageDef(3, 45, "final_notice", Decimal("10.00")),
    )


@dataclass(frozen=True)
class InterestSettings:
    annual_rate: Decimal = Decimal("4")  # ABGB section 1333


# ---------------------------------------------------------------------------
# Bank matching
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchingSettings:
    """Scoring weights and thresholds for bank match suggestions."""

    exact_amount_weight: Decimal = Decimal("0.50")
    similar_amount_weight: Decimal = Decimal("0.30")
    date_match_weight: Decimal = Decimal("0.25")
    date_close_weight: Decimal = Decimal("0.15")
    name_match_weight: Decimal = Decimal("0.25")
    exact_tolerance: Decimal = Decimal("0.01")
    similar_ratio: Decimal = Decimal("0.05")
    date_match_days: int = 3
    date_close_days: int = 14
    max_days_apart: int = 30
    min_confidence: Decimal = Decimal("0.40")
    max_suggestions: int = 50


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllocationSettings:
    max_retries: int = 5


@dataclass(frozen=True)
class DistributionSettings:
    max_workers: int = 4
    minimum_reserve_per_sqm: Decimal = Decimal("0.90")


@dataclass(frozen=True)
class AccountBinding:
    """Maps an account role to a chart-of-accounts code."""

    role: str  # e.g., "receivable"
    account_code: str  # e.g., "2000"
    account_name: str = ""


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """
    Complete engine configuration.

    ``checksum`` is the SHA-256 of the canonical source mapping and
    identifies the settings in logs.
    """

    config_id: str = "default"
    version: int = 1
    currency: str = "EUR"
    dunning: DunningSettings = field(default_factory=DunningSettings)
    interest: InterestSettings = field(default_factory=InterestSettings)
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    allocation: AllocationSettings = field(default_factory=AllocationSettings)
    distribution: DistributionSettings = field(default_factory=DistributionSettings)
    account_bindings: tuple[AccountBinding, ...] = ()
    checksum: str = ""
    source_path: str | None = None

    def binding_for(self, role: str) -> AccountBinding | None:
        for binding in self.account_bindings:
            if binding.role == role:
                return binding
        return None
