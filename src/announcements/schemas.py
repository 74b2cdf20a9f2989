from uuid import UUID
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from src.engineering.models import SPOOLING_PENDING


class AnnouncementRow(BaseModel):
    """One announcement line after mapping the client's spreadsheet headers."""
    iso_number: str
    line_number: str = ""
    revision_number: str = "0"
    line_type: str = ""
    area: str = ""
    sub_area: str = ""

    client_file_code: str = ""
    client_revision_code: str = ""

    transmittal_code: str = ""
    transmittal_date: Optional[str] = None

    spooling_status: str = SPOOLING_PENDING
    spooling_date: Optional[str] = None
    spooling_sent_date: Optional[str] = None

    total_joints_count: Optional[int] = None
    executed_joints_count: Optional[int] = None
    pending_joints_count: Optional[int] = None


class AnnouncementImportRequest(BaseModel):
    rows: List[Dict[str, Any]]
    created_by: Optional[UUID] = None


class AnnouncementImportResult(BaseModel):
    processed: int = 0
    errors: int = 0
    details: List[str] = []
