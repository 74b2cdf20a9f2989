from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.announcements.schemas import AnnouncementImportRequest, AnnouncementImportResult
from src.announcements.service import AnnouncementService

router = APIRouter(tags=["announcements"])


@router.post(
    "/projects/{project_id}/revision-announcements",
    response_model=AnnouncementImportResult,
)
async def import_revision_announcement(
    project_id: UUID,
    data: AnnouncementImportRequest,
    db: AsyncSession = Depends(get_db),
):
    """Bulk-load the client's revision announcement spreadsheet rows.

    Always answers 200; per-row skips and batch failures are reported in the body.
    """
    service = AnnouncementService(db)
    return await service.process_announcement(project_id, data.rows, data.created_by)
