"""
LedgerPostingService -- idempotent persistence of balanced postings.

Responsibility:
    Persist postings built by the PostingEmitter exactly once per source
    event, and record reversing postings for corrections.

Architecture position:
    Services -- imperative shell. Flushes inside the caller's transaction.

Invariants enforced:
    - One posting per (source_type, source_id). A replay returns the posting
      already recorded and writes nothing.
    - Postings are never updated; corrections are new reversing postings.
    - Only balanced postings reach the database (Posting validates itself).

Failure modes:
    - IntegrityError on a concurrent insert of the same source event: the
      session is rolled back and the winner is re-read. Work the caller
      had pending in that transaction is discarded with it, so callers
      that combine a posting with other writes treat ALREADY_EXISTS after
      a conflict as a retryable conflict.
    - AlreadyPostedError when ``require_new=True`` and the source event was
      already posted.
    - PostingNotFoundError when reversing a source that was never posted.

Audit relevance:
    Every recorded posting logs ``posting_recorded`` with its idempotency
    key and totals; replays log ``posting_already_exists``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estate_engines.posting import PostingEmitter
from estate_kernel.domain.clock import Clock
from estate_kernel.domain.posting import Posting
from estate_kernel.exceptions import (
    AlreadyPostedError,
    InvalidInputError,
    PostingNotFoundError,
)
from estate_kernel.logging_config import get_logger
from estate_kernel.models.posting import PostingLineModel, PostingModel
from estate_kernel.selectors.posting_selector import PostingSelector
from estate_kernel.utils.idempotency import REVERSAL_SUFFIX, reversal_source_type
from estate_services.base import BaseService

logger = get_logger("services.posting")


class RecordStatus(str, Enum):
    RECORDED = "recorded"
    ALREADY_EXISTS = "already_exists"


@dataclass(frozen=True)
class RecordResult:
    """Outcome of recording one posting; ``posting.posting_id`` is always set."""

    status: RecordStatus
    posting: Posting
    after_conflict: bool = False

    @property
    def is_new(self) -> bool:
        return self.status == RecordStatus.RECORDED


class LedgerPostingService(BaseService):
    """
    Contract:
        ``record`` is idempotent on (source_type, source_id).
    Guarantees:
        - Lines are stored in emitter order (``line_seq``).
    Non-goals:
        - Does not build postings; see estate_engines.posting.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._selector = PostingSelector(session)

    def record(self, posting: Posting, require_new: bool = False) -> RecordResult:
        existing = self._selector.find_by_source(posting.source_type, posting.source_id)
        if existing is not None:
            return self._already_exists(existing, require_new)

        try:
            row = self._insert(posting)
        except IntegrityError:
            # Concurrent insert of the same source event
            self.session.rollback()
            logger.warning("posting_insert_conflict", extra={
                "idempotency_key": posting.idempotency_key,
            })
            existing = self._selector.find_by_source(posting.source_type, posting.source_id)
            if existing is None:
                raise
            return self._already_exists(existing, require_new, after_conflict=True)

        recorded = replace(posting, posting_id=str(row.id))
        logger.info("posting_recorded", extra={
            "posting_id": str(row.id),
            "idempotency_key": posting.idempotency_key,
            "effective_date": posting.effective_date.isoformat(),
            "line_count": len(posting.lines),
            "total": str(posting.total_debits.amount),
            "currency": posting.currency,
        })
        return RecordResult(RecordStatus.RECORDED, recorded)

    def _already_exists(
        self,
        existing: Posting,
        require_new: bool,
        after_conflict: bool = False,
    ) -> RecordResult:
        if require_new:
            raise AlreadyPostedError(
                existing.source_type, existing.source_id, str(existing.posting_id)
            )
        logger.info("posting_already_exists", extra={
            "posting_id": existing.posting_id,
            "idempotency_key": existing.idempotency_key,
        })
        return RecordResult(RecordStatus.ALREADY_EXISTS, existing, after_conflict)

    def _insert(self, posting: Posting) -> PostingModel:
        row = PostingModel(
            source_type=posting.source_type,
            source_id=posting.source_id,
            idempotency_key=posting.idempotency_key,
            effective_date=posting.effective_date,
            posted_at=self._clock.now(),
            currency=posting.currency,
            description=posting.description,
            reversal_of_id=UUID(posting.reversal_of) if posting.reversal_of else None,
        )
        for seq, line in enumerate(posting.lines):
            row.lines.append(
                PostingLineModel(
                    account_code=line.account_code,
                    role=line.role.value,
                    side=line.side.value,
                    amount=line.amount.amount,
                    subject_id=line.subject_id,
                    memo=line.memo,
                    line_seq=seq,
                )
            )
        self.session.add(row)
        self.session.flush()
        return row

    def reverse(
        self,
        source_type: str,
        source_id: str,
        emitter: PostingEmitter,
        effective_date: date | None = None,
    ) -> RecordResult:
        """
        Record the reversal of the posting for (source_type, source_id).

        Reversing twice is a replay and returns the first reversal.
        """
        if source_type.endswith(REVERSAL_SUFFIX):
            raise InvalidInputError(
                f"Cannot reverse a reversal: {source_type}", field="source_type"
            )
        original = self._selector.find_by_source(source_type, source_id)
        if original is None:
            raise PostingNotFoundError(source_type, source_id)

        existing = self._selector.find_by_source(reversal_source_type(source_type), source_id)
        if existing is not None:
            return self._already_exists(existing, require_new=False)

        reversal = emitter.reverse(original, effective_date or self._clock.today())
        logger.info("posting_reversal_requested", extra={
            "original_posting_id": original.posting_id,
            "idempotency_key": original.idempotency_key,
        })
        return self.record(reversal)
