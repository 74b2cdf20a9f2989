from datetime import date, datetime
from uuid import UUID
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from src.engineering.models import RevisionState, JointCategory, ShopField
from src.files.schemas import RevisionFileResponse


# --- Isometrics ---

class IsometricMetadata(BaseModel):
    line_number: Optional[str] = None
    area: Optional[str] = None
    sub_area: Optional[str] = None
    line_type: Optional[str] = None


class IsometricCreate(IsometricMetadata):
    code: str


class IsometricResponse(IsometricMetadata):
    id: UUID
    project_id: UUID
    code: str
    current_revision_id: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IsometricCode(BaseModel):
    id: UUID
    code: str

    model_config = ConfigDict(from_attributes=True)


# --- Revisions ---

class RevisionCreate(BaseModel):
    code: str
    state: RevisionState = RevisionState.VIGENTE


class RevisionResponse(BaseModel):
    id: UUID
    isometric_id: UUID
    code: str
    state: RevisionState
    issue_date: Optional[date] = None
    client_file_code: Optional[str] = None
    client_revision_code: Optional[str] = None
    transmittal_code: Optional[str] = None
    transmittal_date: Optional[date] = None
    spooling_status: Optional[str] = None
    spooling_date: Optional[date] = None
    spooling_sent_date: Optional[date] = None
    total_joints_count: Optional[int] = 0
    executed_joints_count: Optional[int] = 0
    pending_joints_count: Optional[int] = 0
    created_by: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RevisionWithFilesResponse(RevisionResponse):
    files: List[RevisionFileResponse] = []


class IsometricWithRevisions(IsometricResponse):
    revisions: List[RevisionWithFilesResponse] = []


class IsometricSearchResponse(BaseModel):
    data: List[IsometricWithRevisions]
    count: int


class IsometricSearchFilters(BaseModel):
    area: Optional[str] = None
    status: Optional[str] = None
    show_pending: bool = False


class ProjectStats(BaseModel):
    total: int = 0
    vigentes: int = 0
    eliminados: int = 0
    pending_spooling: int = 0


# --- Structural content ---

class SpoolCreate(BaseModel):
    name: str
    sheet: Optional[str] = None
    piping_class: Optional[str] = None
    fab_location: Optional[str] = None
    diameter_in: Optional[float] = None
    material: Optional[str] = None
    schedule: Optional[str] = None
    weight: Optional[float] = None
    requires_pwht: bool = False
    requires_painting: bool = False


class SpoolResponse(SpoolCreate):
    id: UUID
    revision_id: UUID

    model_config = ConfigDict(from_attributes=True)


class JointCreate(BaseModel):
    tag: str
    joint_category: JointCategory
    joint_type: Optional[str] = None
    diameter_in: Optional[float] = None
    schedule: Optional[str] = None
    thickness: Optional[float] = None
    material: Optional[str] = None
    rating: Optional[str] = None
    bolt_size: Optional[str] = None
    shop_field: ShopField = ShopField.SHOP
    sheet: Optional[str] = None
    spool_id: Optional[UUID] = None
    # Resolved to spool_id once the spools of the revision exist
    spool_name: Optional[str] = Field(default=None, exclude=True)


class JointResponse(BaseModel):
    id: UUID
    revision_id: UUID
    spool_id: Optional[UUID] = None
    tag: str
    joint_category: JointCategory
    joint_type: Optional[str] = None
    diameter_in: Optional[float] = None
    schedule: Optional[str] = None
    thickness: Optional[float] = None
    material: Optional[str] = None
    rating: Optional[str] = None
    bolt_size: Optional[str] = None
    shop_field: ShopField
    sheet: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MaterialCreate(BaseModel):
    item_code: Optional[str] = None
    description: Optional[str] = None
    quantity: float = 0
    quantity_unit: Optional[str] = None
    piping_class: Optional[str] = None
    spool_id: Optional[UUID] = None
    spool_name: Optional[str] = Field(default=None, exclude=True)


class MaterialResponse(BaseModel):
    id: UUID
    revision_id: UUID
    spool_id: Optional[UUID] = None
    item_code: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    quantity_unit: Optional[str] = None
    piping_class: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class RevisionDetailResponse(RevisionResponse):
    isometric: IsometricResponse
    spools: List[SpoolResponse] = []
    joints: List[JointResponse] = []
    materials: List[MaterialResponse] = []


# --- SpoolGen import ---

class SpoolGenImportRequest(BaseModel):
    isometric_code: str
    revision_code: str
    bolted_joints: List[Dict[str, Any]] = []
    spools_welds: List[Dict[str, Any]] = []
    material_take_off: List[Dict[str, Any]] = []


class SpoolGenImportResult(BaseModel):
    success: bool
    revision_id: Optional[UUID] = None
    impacts_detected: bool = False
    message: Optional[str] = None
