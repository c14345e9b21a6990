"""
PaymentAllocationService -- per-tenant allocation with optimistic retry.

Responsibility:
    Apply a recorded payment to the tenant's open invoices (oldest period
    first), write the new paid amounts and statuses, store the allocation
    rows and record the payment-receipt posting, all in one transaction.

Architecture position:
    Services -- imperative shell over PaymentAllocator and PostingEmitter.
    Owns its transactions: each attempt opens a session from the factory,
    commits on success and is discarded on conflict.

Invariants enforced:
    - Read-modify-write of a tenant's invoices is serialized. Rows are read
      FOR UPDATE where the dialect supports it, and every invoice UPDATE is
      checked against the ``version`` column; a stale write aborts the
      attempt.
    - A conflicting attempt is retried from a fresh read, up to
      ``max_retries`` attempts, then AllocationRetryExhaustedError.
    - A payment is allocated at most once. Replaying an allocated payment
      returns the recorded allocation and writes nothing.
    - sum(applied) + unapplied == payment amount (checked by the allocator).

Failure modes:
    - PaymentNotFoundError for an unknown payment id.
    - AllocationRetryExhaustedError when the retry budget is spent.
    - Engine input errors propagate unchanged; nothing is written.

Audit relevance:
    Logs ``payment_allocation_committed`` with attempt count, and
    ``allocation_conflict_retry`` for every retried attempt.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from estate_engines.payment_allocation import AllocationResult, PaymentAllocator
from estate_engines.posting import PostingEmitter
from estate_kernel.domain.clock import Clock, SystemClock
from estate_kernel.domain.dtos import Payment
from estate_kernel.domain.posting import Posting, SourceType
from estate_kernel.domain.values import Money
from estate_kernel.exceptions import (
    AllocationRetryExhaustedError,
    OptimisticLockError,
    PaymentNotFoundError,
)
from estate_kernel.logging_config import LogContext, get_logger
from estate_kernel.models.invoice import InvoiceModel
from estate_kernel.models.payment import PaymentAllocationModel, PaymentModel
from estate_kernel.selectors.invoice_selector import OPEN_STATUSES, invoice_to_dto
from estate_kernel.selectors.posting_selector import PostingSelector
from estate_services.posting_service import LedgerPostingService

logger = get_logger("services.allocation")

DEFAULT_MAX_RETRIES = 5


@dataclass(frozen=True)
class PaymentAllocationOutcome:
    """
    Result of allocating (or replaying) one payment.

    ``applied`` lists (invoice_id, amount) in allocation order.
    ``allocation`` is the engine result of a fresh run and None on replay.
    """

    payment_id: str
    tenant_id: str
    amount: Money
    applied: tuple[tuple[str, Money], ...]
    unapplied: Money
    posting: Posting | None
    attempts: int
    replayed: bool = False
    allocation: AllocationResult | None = None

    @property
    def total_applied(self) -> Money:
        return Money.total((amount for _, amount in self.applied), self.amount.currency)


def payment_to_dto(row: PaymentModel) -> Payment:
    return Payment(
        payment_id=str(row.id),
        tenant_id=str(row.tenant_id),
        amount=Money(row.amount, row.currency),
        received_on=row.received_on,
        reference=row.reference,
    )


class PaymentAllocationService:
    """
    Contract:
        ``allocate_payment`` commits exactly one allocation per payment.
    Guarantees:
        - Concurrent allocations for the same tenant never lose an update;
          the loser retries against the winner's committed state.
    Non-goals:
        - Does not refund or otherwise act on unapplied amounts; they are
          booked as tenant credit.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        emitter: PostingEmitter,
        clock: Clock | None = None,
        allocator: PaymentAllocator | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._session_factory = session_factory
        self._emitter = emitter
        self._clock = clock or SystemClock()
        self._allocator = allocator or PaymentAllocator()
        self._max_retries = max_retries

    def allocate_payment(self, payment_id: UUID | str) -> PaymentAllocationOutcome:
        """
        Allocate a recorded payment against its tenant's open invoices.

        Raises:
            PaymentNotFoundError: Unknown payment.
            AllocationRetryExhaustedError: Every attempt hit a conflict.
        """
        payment_uuid = UUID(str(payment_id))
        t0 = time.monotonic()

        with LogContext.bind(source_id=str(payment_uuid)):
            for attempt in range(1, self._max_retries + 1):
                session = self._session_factory()
                try:
                    try:
                        outcome = self._attempt(session, payment_uuid, attempt)
                        session.commit()
                    except StaleDataError as exc:
                        raise OptimisticLockError("invoice", str(payment_uuid)) from exc
                except OptimisticLockError as exc:
                    session.rollback()
                    logger.warning("allocation_conflict_retry", extra={
                        "payment_id": str(payment_uuid),
                        "attempt": attempt,
                        "max_retries": self._max_retries,
                        "entity_type": exc.entity_type,
                    })
                    continue
                finally:
                    session.close()

                logger.info("payment_allocation_committed", extra={
                    "payment_id": outcome.payment_id,
                    "tenant_id": outcome.tenant_id,
                    "applied": str(outcome.total_applied.amount),
                    "unapplied": str(outcome.unapplied.amount),
                    "replayed": outcome.replayed,
                    "attempts": attempt,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                })
                return outcome

        logger.error("allocation_retry_exhausted", extra={
            "payment_id": str(payment_uuid),
            "attempts": self._max_retries,
        })
        raise AllocationRetryExhaustedError(str(payment_uuid), self._max_retries)

    def _attempt(
        self,
        session: Session,
        payment_uuid: UUID,
        attempt: int,
    ) -> PaymentAllocationOutcome:
        payment_row = session.get(PaymentModel, payment_uuid, with_for_update=True)
        if payment_row is None:
            raise PaymentNotFoundError(str(payment_uuid))
        payment = payment_to_dto(payment_row)

        if payment_row.is_allocated:
            return self._replay(session, payment_row, payment, attempt)

        rows = session.scalars(
            select(InvoiceModel)
            .where(InvoiceModel.tenant_id == payment_row.tenant_id)
            .where(InvoiceModel.status.in_(OPEN_STATUSES))
            .order_by(InvoiceModel.year, InvoiceModel.month, InvoiceModel.id)
            .with_for_update()
        ).all()
        result = self._allocator.allocate(payment.amount, [invoice_to_dto(r) for r in rows])

        by_id = {str(r.id): r for r in rows}
        for seq, line in enumerate(result.lines):
            row = by_id[line.invoice_id]
            row.paid_amount = line.new_paid.amount
            row.status = line.new_status.value
            session.add(
                PaymentAllocationModel(
                    payment_id=payment_row.id,
                    invoice_id=row.id,
                    applied_amount=line.applied.amount,
                    line_seq=seq,
                )
            )
        payment_row.allocated_at = self._clock.now()
        payment_row.unapplied_amount = result.unapplied.amount
        session.flush()

        posting = self._emitter.for_payment(payment, result)
        if posting is not None:
            recorded = LedgerPostingService(session, self._clock).record(posting)
            if not recorded.is_new:
                # Another writer booked this payment first
                raise OptimisticLockError("payment", payment.payment_id)
            posting = recorded.posting

        return PaymentAllocationOutcome(
            payment_id=payment.payment_id,
            tenant_id=payment.tenant_id,
            amount=payment.amount,
            applied=tuple((line.invoice_id, line.applied) for line in result.lines),
            unapplied=result.unapplied,
            posting=posting,
            attempts=attempt,
            allocation=result,
        )

    def _replay(
        self,
        session: Session,
        payment_row: PaymentModel,
        payment: Payment,
        attempt: int,
    ) -> PaymentAllocationOutcome:
        currency = payment.amount.currency
        applied = tuple(
            (str(a.invoice_id), Money(a.applied_amount, currency))
            for a in payment_row.allocations
        )
        unapplied = Money(payment_row.unapplied_amount or Decimal("0"), currency)
        posting = PostingSelector(session).find_by_source(
            SourceType.PAYMENT_RECEIVED.value, payment.payment_id
        )
        logger.info("payment_allocation_replayed", extra={
            "payment_id": payment.payment_id,
            "invoices": len(applied),
        })
        return PaymentAllocationOutcome(
            payment_id=payment.payment_id,
            tenant_id=payment.tenant_id,
            amount=payment.amount,
            applied=applied,
            unapplied=unapplied,
            posting=posting,
            attempts=attempt,
            replayed=True,
        )
