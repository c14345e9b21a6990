"""
Module: estate_kernel.models.participant
Responsibility: ORM persistence for units and owners that take part in
    cost distribution, with one weight column per distribution key.
Architecture position: Kernel > Models. May import from db/ only.
"""

from decimal import Decimal

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from estate_kernel.db.base import TrackedBase
from estate_kernel.db.types import Weight


class DistributionParticipantModel(TrackedBase):
    """A unit (or its owner) within one property."""

    __tablename__ = "distribution_participants"

    __table_args__ = (
        UniqueConstraint("property_id", "label", name="uq_participant_property_label"),
        Index("idx_participant_property", "property_id"),
    )

    property_id: Mapped[str] = mapped_column(String(50), nullable=False)
    # Unit number such as "Top 3"; doubles as the reconciliation tie-break
    label: Mapped[str] = mapped_column(String(50), nullable=False)
    owner_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    area: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    ownership_share: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    head_count: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
    consumption: Mapped[Weight] = mapped_column(nullable=False, default=Decimal("0"))
