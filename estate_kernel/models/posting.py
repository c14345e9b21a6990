"""
Module: estate_kernel.models.posting
Responsibility: ORM persistence for balanced double-entry postings emitted
    by the engine, and their lines.
Architecture position: Kernel > Models. May import from db/ and domain/ enums.

Invariants enforced:
    - One posting per source event: UNIQUE (source_type, source_id) plus a
      UNIQUE idempotency_key "source_type:source_id".
    - Postings are append-only; corrections are reversing postings that
      reference the original through ``reversal_of_id``.

Failure modes:
    - IntegrityError on a duplicate source event. The ledger posting service
      resolves it by re-reading the winning row.

Audit relevance:
    Posting rows are what the external ledger consumes. Every row traces back
    to exactly one invoice issuance, payment receipt, expense booking or
    distribution run.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estate_kernel.db.base import TrackedBase, UUIDString
from estate_kernel.db.types import MoneyAmount
from estate_kernel.domain.dtos import LineSide


class PostingModel(TrackedBase):
    """
    Posting header.

    Contract:
        Derived from exactly one source event; never updated after insert.
    Guarantees:
        - ``is_balanced`` holds for every row written by LedgerPostingService.
    """

    __tablename__ = "postings"

    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_posting_source"),
        UniqueConstraint("idempotency_key", name="uq_posting_idempotency"),
        Index("idx_posting_effective_date", "effective_date"),
    )

    source_type: Mapped[str] = mapped_column(String(100), nullable=False)
    source_id: Mapped[str] = mapped_column(String(100), nullable=False)
    idempotency_key: Mapped[str] = mapped_column(String(201), nullable=False)
    effective_date: Mapped[date] = mapped_column(nullable=False)
    posted_at: Mapped[datetime] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("postings.id"),
        nullable=True,
    )

    lines: Mapped[list["PostingLineModel"]] = relationship(
        back_populates="posting",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PostingLineModel.line_seq",
    )

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.DEBIT),
            Decimal("0"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.side == LineSide.CREDIT),
            Decimal("0"),
        )

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def __repr__(self) -> str:
        return f"<PostingModel {self.id} {self.idempotency_key}>"


class PostingLineModel(TrackedBase):
    """One debit or credit line; amount is always positive."""

    __tablename__ = "posting_lines"

    __table_args__ = (
        Index("idx_posting_line_posting", "posting_id"),
        Index("idx_posting_line_account", "account_code"),
    )

    posting_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("postings.id"),
        nullable=False,
    )
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    side: Mapped[LineSide] = mapped_column(String(10), nullable=False)
    amount: Mapped[MoneyAmount] = mapped_column(nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    posting: Mapped["PostingModel"] = relationship(back_populates="lines")
