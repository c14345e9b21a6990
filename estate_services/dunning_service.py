"""
DunningService -- the periodic dunning run.

Reads overdue invoices through the invoice selector and assesses them with
the DunningCalculator as of the injected clock's date. Levels are
recomputed on every run; nothing is stored, so a run can be replayed for
any date by pointing a DeterministicClock at it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from estate_engines.dunning import DunningCalculator, DunningLevel, TenantDunningSummary
from estate_kernel.domain.clock import Clock
from estate_kernel.domain.values import Money
from estate_kernel.logging_config import LogContext, get_logger
from estate_kernel.selectors.invoice_selector import InvoiceSelector
from estate_services.base import BaseService

logger = get_logger("services.dunning")


@dataclass(frozen=True)
class DunningRun:
    as_of: date
    notices: tuple[TenantDunningSummary, ...]

    @property
    def tenant_count(self) -> int:
        return len(self.notices)

    def total_outstanding(self, currency: str = "EUR") -> Money:
        return Money.total((n.outstanding for n in self.notices), currency)

    def notice_for(self, tenant_id: str) -> TenantDunningSummary | None:
        for notice in self.notices:
            if notice.tenant_id == tenant_id:
                return notice
        return None


class DunningService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: DunningCalculator | None = None,
    ):
        super().__init__(session, clock)
        self._calculator = calculator or DunningCalculator()
        self._invoices = InvoiceSelector(session)

    def run(
        self,
        tenant_ids: Sequence[UUID | str] | None = None,
        previous_levels: Mapping[str, DunningLevel] | None = None,
    ) -> DunningRun:
        """
        Assess every tenant with invoices at or past the first reminder
        threshold, highest outstanding amount first.
        """
        as_of = self._clock.today()
        with LogContext.bind(run_id=f"dunning:{as_of.isoformat()}"):
            invoices = self._invoices.overdue_invoices(
                as_of,
                min_days_overdue=self._calculator.minimum_days,
                tenant_ids=list(tenant_ids) if tenant_ids is not None else None,
            )
            notices = self._calculator.assess_tenants(invoices, as_of, previous_levels)
            logger.info("dunning_run_completed", extra={
                "as_of": as_of.isoformat(),
                "overdue_invoices": len(invoices),
                "notices": len(notices),
            })
        return DunningRun(as_of=as_of, notices=tuple(notices))
