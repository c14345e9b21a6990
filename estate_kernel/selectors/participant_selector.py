"""Distribution participant query selector."""

from sqlalchemy import select

from estate_kernel.domain.dtos import Participant
from estate_kernel.models.participant import DistributionParticipantModel
from estate_kernel.selectors.base import BaseSelector


def participant_to_dto(row: DistributionParticipantModel) -> Participant:
    return Participant(
        participant_id=str(row.id),
        area=row.area,
        ownership_share=row.ownership_share,
        head_count=row.head_count,
        consumption=row.consumption,
        tie_break=row.label,
    )


class ParticipantSelector(BaseSelector):
    """Read-only access to units and owners of a property."""

    def for_property(self, property_id: str) -> list[Participant]:
        stmt = (
            select(DistributionParticipantModel)
            .where(DistributionParticipantModel.property_id == property_id)
            .order_by(DistributionParticipantModel.label)
        )
        return [participant_to_dto(row) for row in self.session.scalars(stmt)]
