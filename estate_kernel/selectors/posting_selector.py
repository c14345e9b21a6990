"""
Posting query selector.

Reads postings back as domain Posting DTOs, keyed by source event.
"""

from uuid import UUID

from sqlalchemy import select

from estate_kernel.domain.dtos import LineSide
from estate_kernel.domain.posting import AccountRole, Posting, PostingLine
from estate_kernel.domain.values import Money
from estate_kernel.models.posting import PostingModel
from estate_kernel.selectors.base import BaseSelector


def posting_to_dto(row: PostingModel) -> Posting:
    return Posting(
        source_type=row.source_type,
        source_id=row.source_id,
        effective_date=row.effective_date,
        lines=tuple(
            PostingLine(
                role=AccountRole(line.role),
                account_code=line.account_code,
                side=LineSide(line.side),
                amount=Money(line.amount, row.currency),
                subject_id=line.subject_id,
                memo=line.memo,
            )
            for line in row.lines
        ),
        description=row.description,
        reversal_of=str(row.reversal_of_id) if row.reversal_of_id is not None else None,
        posting_id=str(row.id),
    )


class PostingSelector(BaseSelector):
    """Read-only posting queries."""

    def find_by_source(self, source_type: str, source_id: str) -> Posting | None:
        stmt = select(PostingModel).where(
            PostingModel.source_type == source_type,
            PostingModel.source_id == source_id,
        )
        row = self.session.scalars(stmt).first()
        return posting_to_dto(row) if row is not None else None

    def get(self, posting_id: UUID | str) -> Posting | None:
        row = self.session.get(PostingModel, UUID(str(posting_id)))
        return posting_to_dto(row) if row is not None else None

    def for_account(self, account_code: str) -> list[Posting]:
        stmt = (
            select(PostingModel)
            .where(PostingModel.lines.any(account_code=account_code))
            .order_by(PostingModel.effective_date, PostingModel.id)
        )
        return [posting_to_dto(row) for row in self.session.scalars(stmt)]
