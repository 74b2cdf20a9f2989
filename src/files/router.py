from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.engineering.service import EngineeringService
from src.files.models import FileType
from src.files.schemas import FileUploadResult, FileUrlResponse, RevisionFileResponse
from src.files.service import RevisionFileService
from src.files.storage import ObjectStore, get_object_store

router = APIRouter(tags=["files"])


@router.post("/revisions/{revision_id}/files", response_model=FileUploadResult)
async def upload_revision_file(
    revision_id: UUID,
    file: UploadFile = File(...),
    file_type: str = Form(FileType.PDF.value),
    is_primary: bool = Form(False),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    """Attach a PDF/IDF/DWG to a revision as the next version of its type."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    await EngineeringService(db).get_revision(revision_id)

    content = await file.read()
    if len(content) == 0:
        raise HTTPException(status_code=400, detail="Empty file")

    service = RevisionFileService(db, storage)
    return await service.upload_file(
        revision_id,
        file.filename,
        content,
        file.content_type or "application/octet-stream",
        file_type=file_type,
        is_primary=is_primary,
    )


@router.get("/revisions/{revision_id}/files", response_model=List[RevisionFileResponse])
async def list_revision_files(
    revision_id: UUID,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    service = RevisionFileService(db, storage)
    return await service.get_revision_files(revision_id)


@router.get("/files/{file_id}/url", response_model=FileUrlResponse)
async def get_file_url(
    file_id: UUID,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStore = Depends(get_object_store),
):
    service = RevisionFileService(db, storage)
    url = await service.get_file_url(file_id)
    if url is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileUrlResponse(url=url)
