import logging
from uuid import UUID
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.impacts.diff import entity_key
from src.impacts.models import IsometricImpact, ImpactEntityType, ImpactChangeType
from src.impacts.schemas import DiffResult, EntityDiff

logger = logging.getLogger(__name__)


def _flatten(revision_id: UUID, entity_type: ImpactEntityType, diff: EntityDiff) -> List[IsometricImpact]:
    impacts = []
    for item in diff.added:
        impacts.append(IsometricImpact(
            revision_id=revision_id,
            entity_type=entity_type,
            entity_identifier=entity_key(item, entity_type.value),
            change_type=ImpactChangeType.NEW,
            changes={},
        ))
    for item in diff.removed:
        impacts.append(IsometricImpact(
            revision_id=revision_id,
            entity_type=entity_type,
            entity_identifier=entity_key(item, entity_type.value),
            change_type=ImpactChangeType.DELETE,
            changes={},
        ))
    for modified in diff.modified:
        impacts.append(IsometricImpact(
            revision_id=revision_id,
            entity_type=entity_type,
            entity_identifier=entity_key(modified.item, entity_type.value),
            change_type=ImpactChangeType.MODIFY,
            changes={"changes": [c.model_dump(mode="json") for c in modified.changes]},
        ))
    return impacts


class ImpactService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_impacts(self, revision_id: UUID, diff: DiffResult) -> List[IsometricImpact]:
        """Append every change in ``diff`` as one batch; no write when empty.

        Storage errors propagate to the caller.
        """
        impacts = (
            _flatten(revision_id, ImpactEntityType.SPOOL, diff.spools)
            + _flatten(revision_id, ImpactEntityType.JOINT, diff.joints)
        )
        if not impacts:
            return []

        try:
            self.db.add_all(impacts)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.info(f"Recorded {len(impacts)} impacts for revision {revision_id}")
        return impacts

    async def get_impacts_by_revision(self, revision_id: UUID) -> List[IsometricImpact]:
        result = await self.db.execute(
            select(IsometricImpact)
            .where(IsometricImpact.revision_id == revision_id)
            .order_by(IsometricImpact.created_at)
        )
        return list(result.scalars().all())
