from enum import Enum
from sqlalchemy import Column, String, ForeignKey, Integer, Boolean, BigInteger, Uuid
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin


class FileType(str, Enum):
    PDF = "pdf"
    IDF = "idf"
    DWG = "dwg"
    OTHER = "other"


class RevisionFile(Base, AuditMixin):
    """Versioned binary attachment (PDF/IDF/DWG) of a revision."""
    __tablename__ = "revision_files"

    revision_id = Column(ForeignKey("isometric_revisions.id"), nullable=False, index=True)
    storage_path = Column(String, nullable=False)
    file_type = Column(SAEnum(FileType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    file_name = Column(String, nullable=True)
    version_number = Column(Integer, nullable=False, default=1)  # per (revision, file_type)
    is_primary = Column(Boolean, default=False, nullable=False)
    file_size_bytes = Column(BigInteger, nullable=True)
    uploaded_by = Column(Uuid(as_uuid=True), nullable=True)

    revision = relationship("src.engineering.models.IsometricRevision", back_populates="files")
