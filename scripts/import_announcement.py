"""
Load a revision announcement exported from the client's spreadsheet.

The input is a JSON array of row objects. Each column may be keyed by its
spreadsheet header (N°ISOMÉTRICO, REV. ISO, ÁREA, ...) or by the canonical
field name (iso_number, revision_number, area, ...).

Usage:
    python -m scripts.import_announcement <project_id> rows.json [--created-by <user_id>]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional
from uuid import UUID

# Import the app to ensure all models are registered with SQLAlchemy
import src.main  # noqa: F401

from src.announcements.schemas import AnnouncementImportResult
from src.announcements.service import AnnouncementService
from src.database import AsyncSessionLocal, engine

logger = logging.getLogger(__name__)


class RowsFileError(ValueError):
    pass


def load_rows(path: Path) -> list:
    rows = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise RowsFileError(f"{path} must contain a JSON array of row objects")
    return rows


async def import_file(
    project_id: UUID,
    path: Path,
    created_by: Optional[UUID] = None,
    session_factory=AsyncSessionLocal,
) -> AnnouncementImportResult:
    rows = load_rows(path)
    async with session_factory() as db:
        return await AnnouncementService(db).process_announcement(project_id, rows, created_by)


async def run(project_id: UUID, path: Path, created_by: Optional[UUID] = None) -> int:
    try:
        result = await import_file(project_id, path, created_by)
    except RowsFileError as e:
        logger.error(str(e))
        return 1
    finally:
        await engine.dispose()

    for line in result.details:
        logger.info(line)
    logger.info(f"Processed: {result.processed}, errors: {result.errors}")
    return 0 if result.errors == 0 else 2


def main():
    parser = argparse.ArgumentParser(description="Import a revision announcement")
    parser.add_argument("project_id", type=UUID)
    parser.add_argument("rows_file", type=Path)
    parser.add_argument("--created-by", type=UUID, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    sys.exit(asyncio.run(run(args.project_id, args.rows_file, args.created_by)))


if __name__ == "__main__":
    main()
