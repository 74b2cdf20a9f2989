from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db
from src.engineering.schemas import (
    IsometricCreate, IsometricMetadata, IsometricResponse, IsometricCode, IsometricSearchFilters,
    IsometricSearchResponse, ProjectStats, RevisionCreate, RevisionResponse, RevisionWithFilesResponse,
    RevisionDetailResponse, SpoolGenImportRequest, SpoolGenImportResult,
)
from src.engineering.service import EngineeringService
from src.engineering.spoolgen import SpoolGenImportService

router = APIRouter(tags=["engineering"])


@router.get("/projects/{project_id}/isometrics", response_model=IsometricSearchResponse)
async def search_isometrics(
    project_id: UUID,
    q: str = "",
    page: int = 0,
    page_size: int = 50,
    area: Optional[str] = None,
    status: Optional[str] = None,
    show_pending: bool = False,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    filters = IsometricSearchFilters(area=area, status=status, show_pending=show_pending)
    return await service.search_isometrics(project_id, q, page, page_size, filters)


@router.get("/projects/{project_id}/isometrics/codes", response_model=List[IsometricCode])
async def list_isometric_codes(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    return await service.get_isometric_codes(project_id)


@router.post("/projects/{project_id}/isometrics", response_model=IsometricResponse)
async def create_isometric(
    project_id: UUID,
    isometric: IsometricCreate,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    metadata = IsometricMetadata(**isometric.model_dump(exclude={"code"}))
    return await service.create_isometric(project_id, isometric.code, metadata)


@router.get("/projects/{project_id}/stats", response_model=ProjectStats)
async def get_project_stats(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    return await service.get_project_stats(project_id)


@router.get("/projects/{project_id}/areas", response_model=List[str])
async def get_project_areas(
    project_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    return await service.get_project_areas(project_id)


@router.get("/isometrics/{isometric_id}/revisions", response_model=List[RevisionWithFilesResponse])
async def list_isometric_revisions(
    isometric_id: UUID,
    include_files: bool = False,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    await service.get_isometric(isometric_id)
    revisions = await service.get_isometric_revisions(isometric_id, include_files)
    if include_files:
        return revisions
    return [RevisionResponse.model_validate(r) for r in revisions]


@router.post("/isometrics/{isometric_id}/revisions", response_model=RevisionResponse)
async def create_revision(
    isometric_id: UUID,
    revision: RevisionCreate,
    db: AsyncSession = Depends(get_db),
):
    """Add a revision; the isometric's current revision and states are recomputed."""
    service = EngineeringService(db)
    await service.get_isometric(isometric_id)
    created = await service.create_revision(isometric_id, revision.code, revision.state)
    await service.recalculate_current_revision(isometric_id)
    return await service.get_revision_details(created.id)


@router.get("/revisions/{revision_id}", response_model=RevisionDetailResponse)
async def get_revision_details(
    revision_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    service = EngineeringService(db)
    return await service.get_revision_details(revision_id)


@router.delete("/revisions/{revision_id}", response_model=RevisionResponse)
async def soft_delete_revision(
    revision_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Mark a revision ELIMINADA. The row and its content are kept."""
    service = EngineeringService(db)
    return await service.soft_delete_revision(revision_id)


@router.post("/projects/{project_id}/spoolgen-imports", response_model=SpoolGenImportResult)
async def import_spoolgen(
    project_id: UUID,
    data: SpoolGenImportRequest,
    db: AsyncSession = Depends(get_db),
):
    service = SpoolGenImportService(db)
    return await service.process_import(project_id, data)
