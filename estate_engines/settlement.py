"""
Module: estate_engines.settlement
Responsibility:
    Annual operating-cost settlement: distribute the actual costs of a
    period and compare each participant's share with the advance payments
    made during the period.

Architecture position:
    Engines -- pure calculation layer, zero I/O. Delegates apportionment to
    DistributionCalculator so rounding behaves identically to monthly
    charges.

Invariants enforced:
    - sum(share) == total costs and sum(balance) == total costs - sum(advances).
    - balance > 0 means an additional payment is due; balance < 0 is a credit.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from estate_engines.distribution import DistributionCalculator
from estate_engines.tracer import traced_engine
from estate_kernel.domain.dtos import DistributionKey, Participant
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import CurrencyMismatchError, InvalidAmountError
from estate_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")


@dataclass(frozen=True)
class SettlementLine:
    participant_id: str
    share: Money
    advances: Money

    @property
    def balance(self) -> Money:
        return self.share - self.advances

    @property
    def is_additional_payment(self) -> bool:
        return self.balance.is_positive

    @property
    def is_credit(self) -> bool:
        return self.balance.is_negative


@dataclass(frozen=True)
class SettlementResult:
    key: DistributionKey
    total_costs: Money
    total_advances: Money
    lines: tuple[SettlementLine, ...]
    provisional: bool = False

    @property
    def total_balance(self) -> Money:
        return self.total_costs - self.total_advances

    def line_for(self, participant_id: str) -> SettlementLine | None:
        for line in self.lines:
            if line.participant_id == participant_id:
                return line
        return None


class SettlementCalculator:
    """
    Settle actual costs against advances.

    Contract:
        ``advances`` maps participant id to the advances paid in the period;
        participants without an entry paid nothing.
    Non-goals:
        - Does not book the resulting claims or credits.
    """

    def __init__(self, calculator: DistributionCalculator | None = None):
        self._calculator = calculator or DistributionCalculator()

    @traced_engine("settlement", "1.0", fingerprint_fields=("total_costs", "key"))
    def settle(
        self,
        total_costs: Money,
        participants: Sequence[Participant],
        key: DistributionKey,
        advances: Mapping[str, Money],
    ) -> SettlementResult:
        currency = total_costs.currency
        for participant_id, paid in advances.items():
            if paid.currency != currency:
                raise CurrencyMismatchError(currency, paid.currency)
            if paid.is_negative:
                raise InvalidAmountError(f"advances[{participant_id}]", str(paid.amount))

        distribution = self._calculator.distribute(total_costs, participants, key)
        lines = tuple(
            SettlementLine(
                participant_id=line.participant_id,
                share=line.net,
                advances=advances.get(line.participant_id, Money.zero(currency)),
            )
            for line in distribution.lines
        )
        total_advances = Money.total((line.advances for line in lines), currency)
        result = SettlementResult(
            key=key,
            total_costs=total_costs,
            total_advances=total_advances,
            lines=lines,
            provisional=distribution.provisional,
        )

        logger.info("settlement_completed", extra={
            "total_costs": str(total_costs.amount),
            "total_advances": str(total_advances.amount),
            "additional_payments": sum(1 for line in lines if line.is_additional_payment),
            "credits": sum(1 for line in lines if line.is_credit),
        })
        return result
