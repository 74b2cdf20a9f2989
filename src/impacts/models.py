from enum import Enum
from sqlalchemy import Column, String, ForeignKey
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin, JSONType


class ImpactEntityType(str, Enum):
    SPOOL = "SPOOL"
    JOINT = "JOINT"


class ImpactChangeType(str, Enum):
    NEW = "NEW"
    DELETE = "DELETE"
    MODIFY = "MODIFY"


class IsometricImpact(Base, AuditMixin):
    """Append-only record of a structural change detected for a revision."""
    __tablename__ = "isometric_impacts"

    revision_id = Column(ForeignKey("isometric_revisions.id"), nullable=False, index=True)
    entity_type = Column(SAEnum(ImpactEntityType), nullable=False)
    entity_identifier = Column(String, nullable=False)
    change_type = Column(SAEnum(ImpactChangeType), nullable=False)
    changes = Column(JSONType, nullable=False, default=dict)  # {"changes": [{field, old, new}]} for MODIFY

    revision = relationship("src.engineering.models.IsometricRevision", back_populates="impacts")
