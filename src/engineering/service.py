import asyncio
import logging
from datetime import date
from uuid import UUID
from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

from fastapi import HTTPException
from sqlalchemy import select, update, delete, func, and_, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.engineering.lifecycle import select_current_revision, next_state
from src.engineering.models import (
    Isometric, IsometricRevision, Spool, Joint, Material, RevisionState,
    SPOOLING_PENDING, SPOOLING_NOT_APPLICABLE, SPOOLING_DELETED,
)
from src.engineering.schemas import (
    IsometricCode, IsometricMetadata, IsometricSearchFilters, IsometricWithRevisions, IsometricSearchResponse,
    ProjectStats, SpoolCreate, JointCreate, MaterialCreate,
)

logger = logging.getLogger(__name__)

# Store request limits: IN (...) predicates are capped to keep queries short,
# inserts to keep payloads small.
FETCH_CHUNK_SIZE = 200
INSERT_CHUNK_SIZE = 100
UPDATE_CHUNK_SIZE = 50
CODES_LIMIT = 5000

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]


def escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally (escape char: backslash)."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class EngineeringService:
    """Query and CRUD layer over isometrics, revisions and their structural content."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    # --- Stats & metadata ---

    async def get_project_stats(self, project_id: UUID) -> ProjectStats:
        total = await self.db.scalar(
            select(func.count(Isometric.id)).where(Isometric.project_id == project_id)
        )

        def revisions_count(*conditions):
            return (
                select(func.count(IsometricRevision.id))
                .join(Isometric, IsometricRevision.isometric_id == Isometric.id)
                .where(Isometric.project_id == project_id, *conditions)
            )

        vigentes = await self.db.scalar(revisions_count(IsometricRevision.state == RevisionState.VIGENTE))
        pending = await self.db.scalar(revisions_count(
            IsometricRevision.state == RevisionState.VIGENTE,
            IsometricRevision.spooling_status == SPOOLING_PENDING,
        ))
        eliminated = await self.db.scalar(revisions_count(IsometricRevision.state == RevisionState.ELIMINADA))

        return ProjectStats(
            total=total or 0,
            vigentes=vigentes or 0,
            eliminados=eliminated or 0,
            pending_spooling=pending or 0,
        )

    async def get_project_areas(self, project_id: UUID) -> List[str]:
        result = await self.db.execute(
            select(Isometric.area)
            .where(Isometric.project_id == project_id, Isometric.area.is_not(None))
            .distinct()
        )
        return sorted(area for area in result.scalars().all() if area)

    # --- Search & listing ---

    async def search_isometrics(
        self,
        project_id: UUID,
        search_term: str = "",
        page: int = 0,
        page_size: int = 50,
        filters: Optional[IsometricSearchFilters] = None,
    ) -> IsometricSearchResponse:
        """Paged search over a project's isometrics with their revisions and files.

        Callers may cancel an in-flight search (e.g. superseded by a newer
        one); cancellation is re-raised without being logged as an error.
        """
        filters = filters or IsometricSearchFilters()
        try:
            query = select(Isometric).where(Isometric.project_id == project_id)

            term = (search_term or "").strip()
            if term:
                query = query.where(Isometric.code.ilike(f"%{escape_like(term)}%", escape="\\"))

            if filters.area and filters.area != "ALL":
                query = query.where(Isometric.area == filters.area)

            status = SPOOLING_PENDING if filters.show_pending else filters.status
            if status and status != "ALL":
                query = query.where(Isometric.revisions.any(and_(
                    IsometricRevision.state == RevisionState.VIGENTE,
                    IsometricRevision.spooling_status == status,
                )))

            count = await self.db.scalar(select(func.count()).select_from(query.subquery()))

            result = await self.db.execute(
                query.options(selectinload(Isometric.revisions).selectinload(IsometricRevision.files))
                .order_by(Isometric.code)
                .offset(page * page_size)
                .limit(page_size)
            )
            isometrics = result.scalars().all()

            data = []
            for iso in isometrics:
                item = IsometricWithRevisions.model_validate(iso)
                item.revisions.sort(key=lambda r: r.created_at, reverse=True)
                data.append(item)

            return IsometricSearchResponse(data=data, count=count or 0)

        except asyncio.CancelledError:
            logger.debug(f"Isometric search cancelled for project {project_id}")
            raise
        except Exception as e:
            logger.error(f"Isometric search failed for project {project_id}: {e}")
            raise

    async def get_isometric_codes(self, project_id: UUID) -> List[IsometricCode]:
        result = await self.db.execute(
            select(Isometric.id, Isometric.code)
            .where(Isometric.project_id == project_id)
            .order_by(Isometric.code)
            .limit(CODES_LIMIT)
        )
        return [IsometricCode(id=row.id, code=row.code) for row in result.all()]

    # --- Isometrics ---

    async def get_isometric_by_code(self, project_id: UUID, code: str) -> Optional[Isometric]:
        result = await self.db.execute(
            select(Isometric).where(Isometric.project_id == project_id, Isometric.code == code)
        )
        return result.scalar_one_or_none()

    async def get_isometric(self, isometric_id: UUID) -> Isometric:
        isometric = await self.db.get(Isometric, isometric_id)
        if not isometric:
            raise HTTPException(status_code=404, detail="Isometric not found")
        return isometric

    async def create_isometric(
        self, project_id: UUID, code: str, metadata: Optional[IsometricMetadata] = None
    ) -> Isometric:
        """Create an isometric, or return the existing one with the same project and code."""
        existing = await self.get_isometric_by_code(project_id, code)
        if existing:
            return existing

        isometric = Isometric(
            project_id=project_id,
            code=code,
            **(metadata.model_dump() if metadata else {}),
        )
        self.db.add(isometric)
        try:
            await self.db.commit()
        except IntegrityError:
            # Created concurrently between the lookup and the insert
            await self.db.rollback()
            existing = await self.get_isometric_by_code(project_id, code)
            if existing:
                return existing
            raise
        await self.db.refresh(isometric)
        return isometric

    async def find_isometrics_by_codes(self, project_id: UUID, codes: Iterable[str]) -> List[Isometric]:
        codes = list(codes)
        if not codes:
            return []
        result = await self.db.execute(
            select(Isometric).where(Isometric.project_id == project_id, Isometric.code.in_(codes))
        )
        return list(result.scalars().all())

    async def insert_isometrics(self, rows: Sequence[dict]) -> List[Isometric]:
        isometrics = [Isometric(**row) for row in rows]
        self.db.add_all(isometrics)
        await self._commit()
        return isometrics

    async def set_current_revisions(self, pointers: Sequence[Tuple[UUID, UUID]]) -> int:
        """Apply (isometric_id, revision_id) pointer updates; returns the failed count."""
        failed = 0
        for chunk in chunked(pointers, UPDATE_CHUNK_SIZE):
            try:
                for isometric_id, revision_id in chunk:
                    await self.db.execute(
                        update(Isometric)
                        .where(Isometric.id == isometric_id)
                        .values(current_revision_id=revision_id)
                    )
                await self._commit()
            except SQLAlchemyError as e:
                failed += len(chunk)
                logger.error(f"Error updating current revision of {len(chunk)} isometrics: {e}")
        return failed

    # --- Revisions ---

    async def create_revision(
        self,
        isometric_id: UUID,
        code: str,
        state: RevisionState = RevisionState.VIGENTE,
        created_by: Optional[UUID] = None,
    ) -> IsometricRevision:
        revision = IsometricRevision(
            isometric_id=isometric_id,
            code=code,
            state=state,
            issue_date=date.today(),
            created_by=created_by,
        )
        self.db.add(revision)
        await self._commit()
        await self.db.refresh(revision)
        return revision

    async def get_revision(self, revision_id: UUID) -> IsometricRevision:
        revision = await self.db.get(IsometricRevision, revision_id)
        if not revision:
            raise HTTPException(status_code=404, detail="Revision not found")
        return revision

    async def get_isometric_revisions(
        self, isometric_id: UUID, include_files: bool = False
    ) -> List[IsometricRevision]:
        query = (
            select(IsometricRevision)
            .where(IsometricRevision.isometric_id == isometric_id)
            .order_by(desc(IsometricRevision.created_at))
        )
        if include_files:
            query = query.options(selectinload(IsometricRevision.files))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_revision_details(self, revision_id: UUID) -> IsometricRevision:
        result = await self.db.execute(
            select(IsometricRevision)
            .where(IsometricRevision.id == revision_id)
            .options(
                selectinload(IsometricRevision.isometric),
                selectinload(IsometricRevision.spools),
                selectinload(IsometricRevision.joints),
                selectinload(IsometricRevision.materials),
            )
            .execution_options(populate_existing=True)
        )
        revision = result.scalar_one_or_none()
        if not revision:
            raise HTTPException(status_code=404, detail="Revision not found")
        return revision

    async def get_latest_revision(self, isometric_id: UUID) -> Optional[IsometricRevision]:
        """Most recently created VIGENTE revision, with spools and joints loaded.

        A plain current-flag lookup; it does not apply the ordering rule.
        """
        result = await self.db.execute(
            select(IsometricRevision)
            .where(
                IsometricRevision.isometric_id == isometric_id,
                IsometricRevision.state == RevisionState.VIGENTE,
            )
            .options(selectinload(IsometricRevision.spools), selectinload(IsometricRevision.joints))
            .order_by(desc(IsometricRevision.created_at))
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def fetch_revisions_chunk(self, isometric_ids: Sequence[UUID]) -> List[IsometricRevision]:
        """All revisions of up to FETCH_CHUNK_SIZE isometrics."""
        result = await self.db.execute(
            select(IsometricRevision)
            .where(IsometricRevision.isometric_id.in_(list(isometric_ids)))
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def insert_revisions(self, rows: Sequence[dict]) -> List[IsometricRevision]:
        revisions = [IsometricRevision(**row) for row in rows]
        self.db.add_all(revisions)
        await self._commit()
        return revisions

    async def update_revision_state(self, revision_id: UUID, state: RevisionState) -> None:
        await self.db.execute(
            update(IsometricRevision)
            .where(IsometricRevision.id == revision_id)
            .values(state=state)
        )
        await self._commit()

    async def update_revision_states(self, updates: Sequence[Tuple[UUID, RevisionState]]) -> int:
        """Apply (revision_id, state) updates in chunks; returns the failed count."""
        failed = 0
        for chunk in chunked(updates, UPDATE_CHUNK_SIZE):
            try:
                for revision_id, state in chunk:
                    await self.db.execute(
                        update(IsometricRevision)
                        .where(IsometricRevision.id == revision_id)
                        .values(state=state)
                    )
                await self._commit()
            except SQLAlchemyError as e:
                failed += len(chunk)
                logger.error(f"Error updating state of {len(chunk)} revisions: {e}")
        return failed

    async def recalculate_current_revision(self, isometric_id: UUID) -> Optional[IsometricRevision]:
        """Re-point one isometric at its latest revision and settle every revision state."""
        revisions = await self.fetch_revisions_chunk([isometric_id])
        latest = select_current_revision(revisions)
        if latest is None:
            return None

        if await self.set_current_revisions([(isometric_id, latest.id)]):
            logger.error(f"Could not update current revision of isometric {isometric_id}")

        updates = []
        for revision in revisions:
            should_be = next_state(revision.state, revision.id == latest.id)
            if revision.state != should_be:
                updates.append((revision.id, should_be))
        if updates and await self.update_revision_states(updates):
            logger.error(f"Could not settle revision states of isometric {isometric_id}")
        return latest

    async def soft_delete_revision(self, revision_id: UUID) -> IsometricRevision:
        revision = await self.get_revision(revision_id)

        if not revision.spooling_status or revision.spooling_status == SPOOLING_PENDING:
            revision.spooling_status = SPOOLING_NOT_APPLICABLE
        else:
            # Spooling had already progressed
            revision.spooling_status = SPOOLING_DELETED
        revision.state = RevisionState.ELIMINADA

        await self._commit()
        await self.db.refresh(revision)
        return revision

    # --- Structural content ---

    async def upload_spools(self, revision_id: UUID, spools: Sequence[SpoolCreate]) -> List[Spool]:
        created = [Spool(revision_id=revision_id, **s.model_dump()) for s in spools]
        self.db.add_all(created)
        await self._commit()
        return created

    async def upload_joints(self, revision_id: UUID, joints: Sequence[JointCreate]) -> List[Joint]:
        created = [Joint(revision_id=revision_id, **j.model_dump()) for j in joints]
        self.db.add_all(created)
        await self._commit()
        return created

    async def upload_materials(self, revision_id: UUID, materials: Sequence[MaterialCreate]) -> List[Material]:
        created = [Material(revision_id=revision_id, **m.model_dump()) for m in materials]
        self.db.add_all(created)
        await self._commit()
        return created

    async def clear_revision_structure(self, revision_id: UUID) -> None:
        """Remove the spools, joints and materials of a revision before it is repopulated."""
        for model in (Material, Joint, Spool):
            await self.db.execute(
                delete(model)
                .where(model.revision_id == revision_id)
                .execution_options(synchronize_session=False)
            )
        await self._commit()
