import logging
from collections import defaultdict
from datetime import date
from uuid import UUID
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.announcements.normalize import normalize_announcement_row, excel_date_to_sql
from src.announcements.schemas import AnnouncementRow, AnnouncementImportResult
from src.engineering.lifecycle import select_current_revision, next_state
from src.engineering.models import IsometricRevision, RevisionState, SPOOLING_PENDING
from src.engineering.service import EngineeringService, chunked, FETCH_CHUNK_SIZE, INSERT_CHUNK_SIZE

logger = logging.getLogger(__name__)


class AnnouncementService:
    """Bulk import of revision announcements for many isometrics at once.

    Runs to completion despite row or chunk failures; every skip and failure
    becomes one line of the returned detail log.
    """

    def __init__(self, db: AsyncSession, store: Optional[EngineeringService] = None):
        self.db = db
        self.store = store or EngineeringService(db)

    async def process_announcement(
        self,
        project_id: UUID,
        excel_rows: Sequence[Dict[str, Any]],
        created_by: Optional[UUID] = None,
    ) -> AnnouncementImportResult:
        """Normalize the client's spreadsheet rows and import them."""
        rows = [normalize_announcement_row(r) for r in excel_rows]
        return await self.import_rows(project_id, rows, created_by)

    async def import_rows(
        self,
        project_id: UUID,
        rows: Sequence[AnnouncementRow],
        created_by: Optional[UUID] = None,
    ) -> AnnouncementImportResult:
        results = AnnouncementImportResult()

        rows = [r for r in rows if r.iso_number]
        if not rows:
            results.details.append("No valid rows with an isometric number were found")
            return results

        logger.info(f"Processing announcement for project {project_id}: {len(rows)} rows")

        iso_groups: Dict[str, List[AnnouncementRow]] = defaultdict(list)
        for row in rows:
            iso_groups[row.iso_number].append(row)

        try:
            iso_map = await self._resolve_isometrics(project_id, iso_groups)
            existing_keys = await self._existing_revision_keys(list(iso_map.values()))

            revisions_to_insert: List[dict] = []
            affected_iso_ids = set()

            for iso_code, iso_rows in iso_groups.items():
                iso_id = iso_map.get(iso_code)
                if iso_id is None:
                    continue

                for row in iso_rows:
                    key = (iso_id, row.revision_number)
                    # Covers revisions already stored and duplicates earlier in this batch
                    if key in existing_keys:
                        results.errors += 1
                        results.details.append(
                            f"⚠️ OMITTED: {iso_code} Rev {row.revision_number} already exists."
                        )
                        logger.warning(f"Skipping duplicate revision {iso_code} Rev {row.revision_number}")
                        continue
                    existing_keys.add(key)

                    revisions_to_insert.append(self._revision_payload(iso_id, row, created_by))
                    affected_iso_ids.add(iso_id)

            await self._insert_revisions(revisions_to_insert, results)

            if affected_iso_ids:
                await self._recalculate_current_revisions(affected_iso_ids)

            results.details.append("✅ Bulk process completed.")

        except Exception as e:
            logger.exception(f"Critical error in bulk announcement for project {project_id}")
            results.errors += 1
            results.details.append(f"❌ Critical error: {e}")

        return results

    async def _resolve_isometrics(
        self, project_id: UUID, iso_groups: Dict[str, List[AnnouncementRow]]
    ) -> Dict[str, UUID]:
        """Map every isometric code of the batch to an id, inserting the missing ones."""
        existing = await self.store.find_isometrics_by_codes(project_id, iso_groups.keys())
        iso_map = {iso.code: iso.id for iso in existing}
        logger.info(f"Found {len(iso_map)} of {len(iso_groups)} isometrics already registered")

        new_isometrics = []
        for iso_code, iso_rows in iso_groups.items():
            if iso_code in iso_map:
                continue
            first = iso_rows[0]
            new_isometrics.append({
                "project_id": project_id,
                "code": iso_code,
                "line_number": first.line_number or None,
                "area": first.area or None,
                "sub_area": first.sub_area or None,
                "line_type": first.line_type or None,
            })

        if new_isometrics:
            logger.info(f"Inserting {len(new_isometrics)} new isometrics")
            inserted = await self.store.insert_isometrics(new_isometrics)
            iso_map.update({iso.code: iso.id for iso in inserted})

        return iso_map

    async def _existing_revision_keys(self, iso_ids: List[UUID]) -> set:
        keys = set()
        for chunk in chunked(iso_ids, FETCH_CHUNK_SIZE):
            for revision in await self.store.fetch_revisions_chunk(chunk):
                keys.add((revision.isometric_id, revision.code))
        return keys

    @staticmethod
    def _revision_payload(iso_id: UUID, row: AnnouncementRow, created_by: Optional[UUID]) -> dict:
        transmittal_date = excel_date_to_sql(row.transmittal_date)
        return {
            "isometric_id": iso_id,
            "code": row.revision_number,
            "issue_date": transmittal_date or date.today(),
            "client_file_code": row.client_file_code or None,
            "client_revision_code": row.client_revision_code or None,
            "transmittal_code": row.transmittal_code or None,
            "transmittal_date": transmittal_date,
            "spooling_status": row.spooling_status or SPOOLING_PENDING,
            "spooling_date": excel_date_to_sql(row.spooling_date),
            "spooling_sent_date": excel_date_to_sql(row.spooling_sent_date),
            "total_joints_count": row.total_joints_count or 0,
            "executed_joints_count": row.executed_joints_count or 0,
            "pending_joints_count": row.pending_joints_count or 0,
            # Provisional; settled by the recompute below
            "state": RevisionState.VIGENTE,
            "created_by": created_by,
        }

    async def _insert_revisions(self, revisions: List[dict], results: AnnouncementImportResult):
        if not revisions:
            return

        logger.info(f"Inserting {len(revisions)} new revisions")
        for batch in chunked(revisions, INSERT_CHUNK_SIZE):
            try:
                await self.store.insert_revisions(batch)
            except SQLAlchemyError as e:
                logger.error(f"Error inserting revision batch of {len(batch)}: {e}")
                results.errors += len(batch)
                results.details.append(f"❌ Error inserting revision batch: {e}")
            else:
                results.processed += len(batch)

    async def _recalculate_current_revisions(self, iso_ids: set):
        """Re-derive the current revision and every revision state of the given isometrics."""
        logger.info(f"Recalculating current revision for {len(iso_ids)} isometrics")

        revisions: List[IsometricRevision] = []
        for chunk in chunked(sorted(iso_ids, key=str), FETCH_CHUNK_SIZE):
            try:
                revisions.extend(await self.store.fetch_revisions_chunk(chunk))
            except SQLAlchemyError as e:
                logger.error(f"Error fetching revisions of affected isometrics: {e}")

        revisions_by_iso: Dict[UUID, List[IsometricRevision]] = defaultdict(list)
        for revision in revisions:
            revisions_by_iso[revision.isometric_id].append(revision)

        pointer_updates = []
        state_updates = []
        for iso_id, iso_revisions in revisions_by_iso.items():
            latest = select_current_revision(iso_revisions)
            logger.debug(
                f"[{iso_id}] Revisions: {', '.join(r.code for r in iso_revisions)} -> Latest: {latest.code}"
            )
            pointer_updates.append((iso_id, latest.id))

            for revision in iso_revisions:
                should_be = next_state(revision.state, revision.id == latest.id)
                if revision.state != should_be:
                    state_updates.append((revision.id, should_be))

        if pointer_updates:
            failed = await self.store.set_current_revisions(pointer_updates)
            if failed:
                logger.error(f"{failed} isometric pointer updates failed")

        if state_updates:
            logger.info(f"Updating {len(state_updates)} revision states")
            failed = await self.store.update_revision_states(state_updates)
            if failed:
                logger.error(f"{failed} revision state updates failed")
