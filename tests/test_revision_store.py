import asyncio
import logging

import pytest
from fastapi import HTTPException
from sqlalchemy import select, func

from src.engineering.models import (
    Isometric, IsometricRevision, RevisionState, SPOOLING_PENDING, SPOOLING_NOT_APPLICABLE, SPOOLING_DELETED,
)
from src.engineering.schemas import IsometricMetadata, IsometricSearchFilters, SpoolCreate
from src.engineering.service import EngineeringService, chunked, escape_like


def test_chunked():
    assert chunked(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
    assert chunked([], 3) == []


@pytest.mark.asyncio
async def test_create_isometric_is_idempotent(db_session, project_id):
    service = EngineeringService(db_session)

    first = await service.create_isometric(project_id, "ISO-1", IsometricMetadata(area="A1"))
    second = await service.create_isometric(project_id, "ISO-1", IsometricMetadata(area="other"))

    assert first.id == second.id
    count = await db_session.scalar(select(func.count(Isometric.id)).where(Isometric.project_id == project_id))
    assert count == 1
    assert second.area == "A1"


@pytest.mark.asyncio
async def test_same_code_in_other_project_is_a_different_isometric(db_session, project_id):
    from uuid import uuid4
    service = EngineeringService(db_session)

    first = await service.create_isometric(project_id, "ISO-1")
    other = await service.create_isometric(uuid4(), "ISO-1")

    assert first.id != other.id


@pytest.mark.asyncio
async def test_get_latest_revision_returns_newest_vigente(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")
    await service.create_revision(iso.id, "0", RevisionState.OBSOLETA)
    vigente = await service.create_revision(iso.id, "1")
    await service.upload_spools(vigente.id, [SpoolCreate(name="SP-1", material="A106")])

    latest = await service.get_latest_revision(iso.id)

    assert latest.id == vigente.id
    assert [s.name for s in latest.spools] == ["SP-1"]


@pytest.mark.asyncio
async def test_get_latest_revision_without_vigente(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")
    await service.create_revision(iso.id, "0", RevisionState.OBSOLETA)

    assert await service.get_latest_revision(iso.id) is None


@pytest.mark.asyncio
async def test_get_revision_not_found(db_session):
    from uuid import uuid4
    service = EngineeringService(db_session)

    with pytest.raises(HTTPException) as exc:
        await service.get_revision(uuid4())
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_soft_delete_pending_revision(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")
    revision = await service.create_revision(iso.id, "0")
    revision.spooling_status = SPOOLING_PENDING
    await db_session.commit()

    deleted = await service.soft_delete_revision(revision.id)

    assert deleted.state == RevisionState.ELIMINADA
    assert deleted.spooling_status == SPOOLING_NOT_APPLICABLE


@pytest.mark.asyncio
async def test_soft_delete_spooled_revision(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")
    revision = await service.create_revision(iso.id, "0")
    revision.spooling_status = "SPOOLEADO"
    await db_session.commit()

    deleted = await service.soft_delete_revision(revision.id)

    assert deleted.state == RevisionState.ELIMINADA
    assert deleted.spooling_status == SPOOLING_DELETED
    # Soft delete keeps the row
    assert await db_session.get(IsometricRevision, revision.id) is not None


@pytest.mark.asyncio
async def test_search_and_stats(db_session, project_id):
    service = EngineeringService(db_session)
    iso_a = await service.create_isometric(project_id, "ISO-100", IsometricMetadata(area="NORTE"))
    iso_b = await service.create_isometric(project_id, "ISO-200", IsometricMetadata(area="SUR"))
    await service.create_isometric(project_id, "XYZ-300", IsometricMetadata(area="SUR"))
    await service.create_revision(iso_a.id, "0", RevisionState.OBSOLETA)
    await service.create_revision(iso_a.id, "1")
    await service.create_revision(iso_b.id, "0", RevisionState.ELIMINADA)

    result = await service.search_isometrics(project_id, "iso", page=0, page_size=10)
    assert result.count == 2
    assert [iso.code for iso in result.data] == ["ISO-100", "ISO-200"]
    assert [r.code for r in result.data[0].revisions] == ["1", "0"]

    by_area = await service.search_isometrics(project_id, "", filters=IsometricSearchFilters(area="SUR"))
    assert {iso.code for iso in by_area.data} == {"ISO-200", "XYZ-300"}

    pending = await service.search_isometrics(project_id, "", filters=IsometricSearchFilters(show_pending=True))
    assert [iso.code for iso in pending.data] == ["ISO-100"]

    paged = await service.search_isometrics(project_id, "", page=1, page_size=2)
    assert paged.count == 3
    assert [iso.code for iso in paged.data] == ["XYZ-300"]

    stats = await service.get_project_stats(project_id)
    assert (stats.total, stats.vigentes, stats.eliminados, stats.pending_spooling) == (3, 1, 1, 1)

    assert await service.get_project_areas(project_id) == ["NORTE", "SUR"]
    codes = await service.get_isometric_codes(project_id)
    assert [c.code for c in codes] == ["ISO-100", "ISO-200", "XYZ-300"]


def test_escape_like():
    assert escape_like("ISO_1%") == "ISO\\_1\\%"
    assert escape_like("A\\B") == "A\\\\B"


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(db_session, project_id):
    service = EngineeringService(db_session)
    await service.create_isometric(project_id, "ISO_1")
    await service.create_isometric(project_id, "ISOX1")
    await service.create_isometric(project_id, "ISO-100%")

    underscore = await service.search_isometrics(project_id, "O_1")
    percent = await service.search_isometrics(project_id, "100%")

    assert [iso.code for iso in underscore.data] == ["ISO_1"]
    assert [iso.code for iso in percent.data] == ["ISO-100%"]


@pytest.mark.asyncio
async def test_cancelled_search_is_reraised_without_error_log(db_session, project_id, monkeypatch, caplog):
    service = EngineeringService(db_session)

    async def cancelled(*args, **kwargs):
        raise asyncio.CancelledError()

    monkeypatch.setattr(db_session, "scalar", cancelled)

    with caplog.at_level(logging.DEBUG, logger="src.engineering.service"):
        with pytest.raises(asyncio.CancelledError):
            await service.search_isometrics(project_id, "ISO")

    assert not [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("cancelled" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_failed_search_is_logged_and_reraised(db_session, project_id, monkeypatch, caplog):
    service = EngineeringService(db_session)

    async def broken(*args, **kwargs):
        raise RuntimeError("query failed")

    monkeypatch.setattr(db_session, "scalar", broken)

    with pytest.raises(RuntimeError):
        await service.search_isometrics(project_id, "ISO")

    assert any(r.levelno == logging.ERROR for r in caplog.records)


@pytest.mark.asyncio
async def test_recalculate_current_revision_keeps_one_vigente(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")
    await service.create_revision(iso.id, "0")
    rev_1 = await service.create_revision(iso.id, "1")
    await service.create_revision(iso.id, "A")

    latest = await service.recalculate_current_revision(iso.id)

    assert latest.id == rev_1.id
    states = {r.code: r.state for r in await service.fetch_revisions_chunk([iso.id])}
    assert states == {"0": RevisionState.OBSOLETA, "1": RevisionState.VIGENTE, "A": RevisionState.OBSOLETA}
    refreshed = (await db_session.execute(
        select(Isometric).where(Isometric.id == iso.id).execution_options(populate_existing=True)
    )).scalar_one()
    assert refreshed.current_revision_id == rev_1.id


@pytest.mark.asyncio
async def test_recalculate_without_revisions(db_session, project_id):
    service = EngineeringService(db_session)
    iso = await service.create_isometric(project_id, "ISO-1")

    assert await service.recalculate_current_revision(iso.id) is None
