from enum import Enum
from sqlalchemy import (
    Column, String, ForeignKey, Integer, Boolean, Float, Date, Uuid,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin, ProjectScopedMixin


class RevisionState(str, Enum):
    VIGENTE = "VIGENTE"
    OBSOLETA = "OBSOLETA"
    ELIMINADA = "ELIMINADA"


class JointCategory(str, Enum):
    WELD = "WELD"
    BOLT = "BOLT"


class ShopField(str, Enum):
    SHOP = "SHOP"
    FIELD = "FIELD"


SPOOLING_PENDING = "PENDIENTE"
SPOOLING_NOT_APPLICABLE = "N/A"
SPOOLING_DELETED = "SPOOLEADO - ELIMINADA"


class Isometric(Base, AuditMixin, ProjectScopedMixin):
    """Engineering drawing tracked across revisions, scoped to a project."""
    __tablename__ = "isometrics"
    __table_args__ = (UniqueConstraint("project_id", "code", name="uq_isometrics_project_code"),)

    code = Column(String, nullable=False, index=True)
    line_number = Column(String, nullable=True)
    area = Column(String, nullable=True)
    sub_area = Column(String, nullable=True)
    line_type = Column(String, nullable=True)

    # Points at the revision picked by the ordering rule (see lifecycle.py)
    current_revision_id = Column(
        ForeignKey("isometric_revisions.id", use_alter=True, name="fk_isometrics_current_revision"),
        nullable=True,
    )

    revisions = relationship(
        "IsometricRevision",
        back_populates="isometric",
        foreign_keys="IsometricRevision.isometric_id",
        cascade="all, delete-orphan",
    )


class IsometricRevision(Base, AuditMixin):
    __tablename__ = "isometric_revisions"

    isometric_id = Column(ForeignKey("isometrics.id"), nullable=False, index=True)
    code = Column(String, nullable=False)
    state = Column(SAEnum(RevisionState), default=RevisionState.VIGENTE, nullable=False, index=True)
    issue_date = Column(Date, nullable=True)

    # Client metadata
    client_file_code = Column(String, nullable=True)
    client_revision_code = Column(String, nullable=True)

    # Transmittal
    transmittal_code = Column(String, nullable=True)
    transmittal_date = Column(Date, nullable=True)

    # Spooling workflow, independent of state
    spooling_status = Column(String, default=SPOOLING_PENDING, nullable=True)
    spooling_date = Column(Date, nullable=True)
    spooling_sent_date = Column(Date, nullable=True)

    total_joints_count = Column(Integer, default=0)
    executed_joints_count = Column(Integer, default=0)
    pending_joints_count = Column(Integer, default=0)

    created_by = Column(Uuid(as_uuid=True), nullable=True)

    isometric = relationship("Isometric", back_populates="revisions", foreign_keys=[isometric_id])
    spools = relationship("Spool", back_populates="revision", cascade="all, delete-orphan")
    joints = relationship("Joint", back_populates="revision", cascade="all, delete-orphan")
    materials = relationship("Material", back_populates="revision", cascade="all, delete-orphan")
    files = relationship("src.files.models.RevisionFile", back_populates="revision", cascade="all, delete-orphan")
    impacts = relationship("src.impacts.models.IsometricImpact", back_populates="revision", cascade="all, delete-orphan")


class Spool(Base, AuditMixin):
    __tablename__ = "spools"
    __table_args__ = (UniqueConstraint("revision_id", "name", name="uq_spools_revision_name"),)

    revision_id = Column(ForeignKey("isometric_revisions.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sheet = Column(String, nullable=True)
    piping_class = Column(String, nullable=True)
    fab_location = Column(String, nullable=True)
    diameter_in = Column(Float, nullable=True)
    material = Column(String, nullable=True)
    schedule = Column(String, nullable=True)
    weight = Column(Float, nullable=True)
    requires_pwht = Column(Boolean, default=False, nullable=False)
    requires_painting = Column(Boolean, default=False, nullable=False)

    revision = relationship("IsometricRevision", back_populates="spools")


class Joint(Base, AuditMixin):
    """Weld or bolted connection; tag is unique within its revision."""
    __tablename__ = "joints"
    __table_args__ = (UniqueConstraint("revision_id", "tag", name="uq_joints_revision_tag"),)

    revision_id = Column(ForeignKey("isometric_revisions.id", ondelete="CASCADE"), nullable=False, index=True)
    spool_id = Column(ForeignKey("spools.id"), nullable=True)
    tag = Column(String, nullable=False)
    joint_category = Column(SAEnum(JointCategory), nullable=False)
    joint_type = Column(String, nullable=True)  # BW, SW, ...
    diameter_in = Column(Float, nullable=True)
    schedule = Column(String, nullable=True)
    thickness = Column(Float, nullable=True)
    material = Column(String, nullable=True)
    rating = Column(String, nullable=True)
    bolt_size = Column(String, nullable=True)
    shop_field = Column(SAEnum(ShopField), default=ShopField.SHOP, nullable=False)
    sheet = Column(String, nullable=True)

    revision = relationship("IsometricRevision", back_populates="joints")


class Material(Base, AuditMixin):
    __tablename__ = "materials"

    revision_id = Column(ForeignKey("isometric_revisions.id", ondelete="CASCADE"), nullable=False, index=True)
    spool_id = Column(ForeignKey("spools.id"), nullable=True)
    item_code = Column(String, nullable=True)
    description = Column(String, nullable=True)
    quantity = Column(Float, default=0)
    quantity_unit = Column(String, nullable=True)
    piping_class = Column(String, nullable=True)

    revision = relationship("IsometricRevision", back_populates="materials")
