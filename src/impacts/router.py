from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.impacts.schemas import ImpactResponse
from src.impacts.service import ImpactService

router = APIRouter(tags=["impacts"])


@router.get("/revisions/{revision_id}/impacts", response_model=List[ImpactResponse])
async def list_revision_impacts(
    revision_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    service = ImpactService(db)
    return await service.get_impacts_by_revision(revision_id)
