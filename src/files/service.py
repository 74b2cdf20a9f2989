import logging
import re
import time
from uuid import UUID
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, update, func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.files.models import FileType, RevisionFile
from src.files.schemas import FileUploadResult, RevisionFileResponse
from src.files.storage import ObjectStore, StorageError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    FileType.PDF: ["application/pdf"],
    FileType.IDF: ["application/octet-stream", "text/plain"],
    FileType.DWG: ["application/acad", "application/x-acad", "application/autocad_dwg", "image/x-dwg"],
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def is_allowed_file(file_type: FileType, filename: str, content_type: str) -> bool:
    if file_type == FileType.OTHER:
        return True
    content_type = content_type or ""
    if any(allowed in content_type for allowed in ALLOWED_CONTENT_TYPES[file_type]):
        return True
    return filename.lower().endswith(f".{file_type.value}")


def build_storage_path(revision_id: UUID, file_type: FileType, filename: str) -> str:
    timestamp = int(time.time() * 1000)
    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", filename)
    return f"revisions/{revision_id}/{file_type.value}/{timestamp}_{sanitized}"


class RevisionFileService:
    def __init__(self, db: AsyncSession, storage: ObjectStore):
        self.db = db
        self.storage = storage

    async def _signed_url(self, path: str, expires_in: int) -> Optional[str]:
        try:
            return await run_in_threadpool(self.storage.generate_signed_url, path, expires_in)
        except StorageError as e:
            logger.error(f"Could not sign {path}: {e}")
            return None

    async def upload_file(
        self,
        revision_id: UUID,
        filename: str,
        content: bytes,
        content_type: str,
        file_type: str = FileType.PDF.value,
        is_primary: bool = False,
        uploaded_by: Optional[UUID] = None,
    ) -> FileUploadResult:
        try:
            file_type = FileType(file_type)
        except ValueError:
            return FileUploadResult(success=False, message=f"Unrecognized file type: {file_type}")

        if not is_allowed_file(file_type, filename, content_type):
            return FileUploadResult(
                success=False, message=f"The file must be of type {file_type.value.upper()}"
            )

        storage_path = build_storage_path(revision_id, file_type, filename)

        try:
            await run_in_threadpool(self.storage.put_object, storage_path, content, content_type)
        except StorageError as e:
            logger.error(f"Error uploading to storage: {e}")
            return FileUploadResult(success=False, message=f"Error uploading file: {e}")

        signed_url = await self._signed_url(storage_path, settings.SIGNED_URL_TTL_UPLOAD)
        if not signed_url:
            return FileUploadResult(success=False, message="Error generating the file URL")

        try:
            current_version = await self.db.scalar(
                select(func.max(RevisionFile.version_number)).where(
                    RevisionFile.revision_id == revision_id,
                    RevisionFile.file_type == file_type,
                )
            )
            next_version = (current_version or 0) + 1

            if is_primary:
                await self.db.execute(
                    update(RevisionFile)
                    .where(RevisionFile.revision_id == revision_id, RevisionFile.file_type == file_type)
                    .values(is_primary=False)
                )

            db_file = RevisionFile(
                revision_id=revision_id,
                storage_path=storage_path,
                file_type=file_type,
                file_name=filename,
                version_number=next_version,
                is_primary=is_primary,
                file_size_bytes=len(content),
                uploaded_by=uploaded_by,
            )
            self.db.add(db_file)
            await self.db.commit()
            await self.db.refresh(db_file)
        except SQLAlchemyError as e:
            await self.db.rollback()
            await self._remove_orphan(storage_path)
            return FileUploadResult(success=False, message=f"Error registering file: {e}")

        response = RevisionFileResponse.model_validate(db_file)
        response.signed_url = signed_url
        logger.info(f"Stored {file_type.value} v{next_version} for revision {revision_id}")
        return FileUploadResult(success=True, message="File uploaded successfully", file=response)

    async def _remove_orphan(self, storage_path: str):
        try:
            await run_in_threadpool(self.storage.delete_object, storage_path)
        except StorageError as e:
            logger.warning(f"Could not remove orphaned object {storage_path}: {e}")

    async def get_revision_files(self, revision_id: UUID) -> List[RevisionFileResponse]:
        result = await self.db.execute(
            select(RevisionFile)
            .where(RevisionFile.revision_id == revision_id)
            .order_by(RevisionFile.file_type, desc(RevisionFile.version_number))
        )
        files = []
        for db_file in result.scalars().all():
            item = RevisionFileResponse.model_validate(db_file)
            item.signed_url = await self._signed_url(db_file.storage_path, settings.SIGNED_URL_TTL_LIST)
            files.append(item)
        return files

    async def get_file_url(self, file_id: UUID) -> Optional[str]:
        db_file = await self.db.get(RevisionFile, file_id)
        if not db_file:
            return None
        return await self._signed_url(db_file.storage_path, settings.SIGNED_URL_TTL_SINGLE)
