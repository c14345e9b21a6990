"""
Pure domain layer.

This module contains immutable value objects and DTOs with NO dependencies
on the ORM, the database, the clock or any I/O (SystemClock excepted).
"""

from estate_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)
from estate_kernel.domain.dtos import (
    BankTransaction,
    DistributionKey,
    Invoice,
    InvoiceComponents,
    InvoiceStatus,
    LineSide,
    Participant,
    Payment,
    Tenant,
    TenantBalance,
)
from estate_kernel.domain.posting import AccountRole, Posting, PostingLine, SourceType
from estate_kernel.domain.values import CENT, Money, round_money

__all__ = [
    "CENT",
    "AccountRole",
    "BankTransaction",
    "Clock",
    "DeterministicClock",
    "DistributionKey",
    "Invoice",
    "InvoiceComponents",
    "InvoiceStatus",
    "LineSide",
    "Money",
    "Participant",
    "Payment",
    "Posting",
    "PostingLine",
    "SequentialClock",
    "SourceType",
    "SystemClock",
    "Tenant",
    "TenantBalance",
    "round_money",
]
