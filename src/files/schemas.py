from datetime import datetime
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, ConfigDict

from src.files.models import FileType


class RevisionFileResponse(BaseModel):
    id: UUID
    revision_id: UUID
    storage_path: str
    file_type: FileType
    file_name: Optional[str] = None
    version_number: int
    is_primary: bool
    file_size_bytes: Optional[int] = None
    uploaded_by: Optional[UUID] = None
    created_at: datetime
    signed_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FileUploadResult(BaseModel):
    success: bool
    message: str
    file: Optional[RevisionFileResponse] = None


class FileUrlResponse(BaseModel):
    url: Optional[str] = None
