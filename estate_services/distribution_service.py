"""
DistributionRunService -- distribute a batch of independent cost items.

Responsibility:
    Fan out the distribution of independent cost items (for example the
    lines of an annual operating-cost statement) over a thread pool, then
    optionally emit and record one distribution posting per item.

Architecture position:
    Services -- imperative shell. Worker threads only run the pure
    DistributionCalculator; all session access stays on the calling thread.

Invariants enforced:
    - Parallelism is across cost items, never across participants of one
      item, so each item's rounding reconciliation is unchanged.
    - Results are returned in input order regardless of completion order.
    - Posting source ids are "<run_id>/<item_id>", so re-running the same
      run is an idempotent replay at the ledger.

Failure modes:
    - The first engine error raised by any item propagates; no postings
      are recorded for the run in that case.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from estate_engines.distribution import CostItem, DistributionCalculator, DistributionResult
from estate_engines.posting import PostingEmitter
from estate_kernel.domain.clock import Clock
from estate_kernel.domain.dtos import Participant
from estate_kernel.domain.posting import Posting
from estate_kernel.exceptions import InvalidInputError
from estate_kernel.logging_config import LogContext, get_logger
from estate_kernel.selectors.participant_selector import ParticipantSelector
from estate_services.base import BaseService
from estate_services.posting_service import LedgerPostingService

logger = get_logger("services.distribution")

DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class DistributionRun:
    run_id: str
    results: tuple[tuple[str, DistributionResult], ...]
    postings: tuple[Posting, ...] = ()

    def result_for(self, item_id: str) -> DistributionResult | None:
        for rid, result in self.results:
            if rid == item_id:
                return result
        return None

    @property
    def provisional(self) -> bool:
        return any(result.provisional for _, result in self.results)


class DistributionRunService(BaseService):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        calculator: DistributionCalculator | None = None,
        emitter: PostingEmitter | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        super().__init__(session, clock)
        self._calculator = calculator or DistributionCalculator()
        self._emitter = emitter
        self._max_workers = max_workers

    def run(
        self,
        run_id: str,
        items: Sequence[CostItem],
        participants: Sequence[Participant] | None = None,
        property_id: str | None = None,
        effective_date: date | None = None,
    ) -> DistributionRun:
        """
        Distribute ``items`` across ``participants`` (or the participants
        stored for ``property_id``).

        Postings are recorded only when the service has an emitter.
        """
        if participants is None:
            if property_id is None:
                raise InvalidInputError(
                    "Either participants or property_id is required", field="participants"
                )
            participants = ParticipantSelector(self.session).for_property(property_id)
        item_ids = [item.item_id for item in items]
        if len(set(item_ids)) != len(item_ids):
            raise InvalidInputError("Duplicate cost item ids", field="items")

        t0 = time.monotonic()
        with LogContext.bind(run_id=run_id):
            logger.info("distribution_run_started", extra={
                "item_count": len(items),
                "participant_count": len(participants),
                "max_workers": self._max_workers,
            })
            # Workers run in a copy of this context so engine logs keep run_id
            with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
                futures = [
                    executor.submit(
                        copy_context().run,
                        self._calculator.distribute_item,
                        item,
                        participants,
                    )
                    for item in items
                ]
                results = [future.result() for future in futures]

            postings: list[Posting] = []
            if self._emitter is not None:
                ledger = LedgerPostingService(self.session, self._clock)
                when = effective_date or self._clock.today()
                for item, result in zip(items, results):
                    posting = self._emitter.for_distribution(
                        f"{run_id}/{item.item_id}",
                        result,
                        when,
                        description=item.category or None,
                    )
                    if posting is not None:
                        postings.append(ledger.record(posting).posting)

            logger.info("distribution_run_completed", extra={
                "item_count": len(items),
                "posting_count": len(postings),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })

        return DistributionRun(
            run_id=run_id,
            results=tuple(zip(item_ids, results)),
            postings=tuple(postings),
        )
