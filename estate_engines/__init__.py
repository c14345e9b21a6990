"""
Module: estate_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the import surface for estate_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import estate_kernel domain values, DTOs, exceptions and
    logging (and sibling engine modules).
    MUST NOT import estate_services or estate_config.

Invariants enforced:
    - Purity: engines never read the system clock. Dates are passed in by
      callers, which take them from an injected Clock.
    - Decimal-only arithmetic through Money; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every public engine entry point is wrapped in ``@traced_engine`` and
    emits an ESTATE_ENGINE_TRACE record with an input fingerprint.

Usage:
    from estate_engines import DistributionCalculator, PaymentAllocator
    from estate_engines import BankMatchScorer, DunningCalculator, PostingEmitter
"""

from estate_kernel.logging_config import get_logger

logger = get_logger("engines")

from estate_engines.bank_matching import (
    DEFAULT_SCORING,
    BankMatchScorer,
    MatchReason,
    MatchScoring,
    MatchSuggestion,
)
from estate_engines.distribution import (
    MINIMUM_RESERVE_PER_SQM,
    BusinessPlanItem,
    BusinessPlanResult,
    CentAdjustment,
    CostItem,
    DistributionCalculator,
    DistributionLine,
    DistributionResult,
    ReserveCheck,
    check_reserve_minimum,
)
from estate_engines.dunning import (
    DEFAULT_ANNUAL_RATE,
    STANDARD_DUNNING_STAGES,
    DunningAssessment,
    DunningCalculator,
    DunningLevel,
    DunningStage,
    TenantDunningSummary,
    calculate_interest,
    days_overdue,
    dunning_level,
)
from estate_engines.payment_allocation import (
    AllocationLine,
    AllocationResult,
    ComponentSplit,
    ComponentSplitStatus,
    PaymentAllocator,
)
from estate_engines.posting import AccountResolver, PostingEmitter
from estate_engines.settlement import (
    SettlementCalculator,
    SettlementLine,
    SettlementResult,
)
from estate_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Bank matching
    "DEFAULT_SCORING",
    "BankMatchScorer",
    "MatchReason",
    "MatchScoring",
    "MatchSuggestion",
    # Distribution
    "MINIMUM_RESERVE_PER_SQM",
    "BusinessPlanItem",
    "BusinessPlanResult",
    "CentAdjustment",
    "CostItem",
    "DistributionCalculator",
    "DistributionLine",
    "DistributionResult",
    "ReserveCheck",
    "check_reserve_minimum",
    # Dunning
    "DEFAULT_ANNUAL_RATE",
    "STANDARD_DUNNING_STAGES",
    "DunningAssessment",
    "DunningCalculator",
    "DunningLevel",
    "DunningStage",
    "TenantDunningSummary",
    "calculate_interest",
    "days_overdue",
    "dunning_level",
    # Payment allocation
    "AllocationLine",
    "AllocationResult",
    "ComponentSplit",
    "ComponentSplitStatus",
    "PaymentAllocator",
    # Posting
    "AccountResolver",
    "PostingEmitter",
    # Settlement
    "SettlementCalculator",
    "SettlementLine",
    "SettlementResult",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "modules": [
        "bank_matching", "distribution", "dunning",
        "payment_allocation", "posting", "settlement",
    ],
})
