from datetime import datetime
from uuid import UUID
from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field

from src.impacts.models import ImpactEntityType, ImpactChangeType


class FieldChange(BaseModel):
    field: str
    old: Any = None
    new: Any = None


class ModifiedEntity(BaseModel):
    item: Any
    changes: List[FieldChange]

    model_config = ConfigDict(arbitrary_types_allowed=True)


class EntityDiff(BaseModel):
    added: List[Any] = []
    removed: List[Any] = []
    modified: List[ModifiedEntity] = []

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)


class DiffResult(BaseModel):
    spools: EntityDiff = Field(default_factory=EntityDiff)
    joints: EntityDiff = Field(default_factory=EntityDiff)

    @property
    def has_changes(self) -> bool:
        return self.spools.total > 0 or self.joints.total > 0


class ImpactResponse(BaseModel):
    id: UUID
    revision_id: UUID
    entity_type: ImpactEntityType
    entity_identifier: str
    change_type: ImpactChangeType
    changes: Dict[str, Any] = {}
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
