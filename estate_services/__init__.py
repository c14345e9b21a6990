"""
Estate services -- imperative shell over the pure engines.

Session-bound services (ledger posting, dunning, distribution runs) flush
inside the caller's transaction. Payment allocation and bank match
confirmation own their transactions through a session factory.
"""

from estate_services.allocation_service import (
    PaymentAllocationOutcome,
    PaymentAllocationService,
)
from estate_services.bank_matching_service import BankMatchingService, MatchConfirmation
from estate_services.chart_of_accounts import RoleResolver
from estate_services.distribution_service import DistributionRun, DistributionRunService
from estate_services.dunning_service import DunningRun, DunningService
from estate_services.posting_service import (
    LedgerPostingService,
    RecordResult,
    RecordStatus,
)

__all__ = [
    "BankMatchingService",
    "DistributionRun",
    "DistributionRunService",
    "DunningRun",
    "DunningService",
    "LedgerPostingService",
    "MatchConfirmation",
    "PaymentAllocationOutcome",
    "PaymentAllocationService",
    "RecordResult",
    "RecordStatus",
    "RoleResolver",
]
