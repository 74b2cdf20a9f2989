import json

import pytest
from sqlalchemy import select

from scripts.import_announcement import RowsFileError, import_file
from src.engineering.models import IsometricRevision, RevisionState


@pytest.mark.asyncio
async def test_rows_keyed_by_field_name(db_session, project_id, tmp_path):
    rows_file = tmp_path / "rows.json"
    rows_file.write_text(json.dumps([
        {"iso_number": "ISO-1", "revision_number": "0", "area": "NORTE"},
        {"iso_number": "ISO-1", "revision_number": 1},
    ]), encoding="utf-8")

    result = await import_file(project_id, rows_file, session_factory=lambda: db_session)

    assert result.processed == 2
    assert result.errors == 0
    revisions = (await db_session.execute(select(IsometricRevision))).scalars().all()
    assert {r.code: r.state for r in revisions} == {"0": RevisionState.OBSOLETA, "1": RevisionState.VIGENTE}


@pytest.mark.asyncio
async def test_rows_keyed_by_spreadsheet_header(db_session, project_id, tmp_path):
    rows_file = tmp_path / "rows.json"
    rows_file.write_text(json.dumps([{"N°ISOMÉTRICO": "ISO-1", "REV. ISO": "A"}]), encoding="utf-8")

    result = await import_file(project_id, rows_file, session_factory=lambda: db_session)

    assert result.processed == 1


@pytest.mark.asyncio
async def test_rows_file_must_be_an_array(db_session, project_id, tmp_path):
    rows_file = tmp_path / "rows.json"
    rows_file.write_text(json.dumps({"iso_number": "ISO-1"}), encoding="utf-8")

    with pytest.raises(RowsFileError):
        await import_file(project_id, rows_file, session_factory=lambda: db_session)
