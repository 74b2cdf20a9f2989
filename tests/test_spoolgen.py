import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from src.engineering.models import Joint, Material, Spool, RevisionState, JointCategory, ShopField
from src.engineering.schemas import SpoolCreate, SpoolGenImportRequest
from src.engineering.service import EngineeringService
from src.engineering.spoolgen import (
    SpoolGenImportService, derive_joints, derive_spools, derive_materials, duplicate_tags, parse_inches, row_value,
)
from src.impacts.models import IsometricImpact, ImpactChangeType, ImpactEntityType
from src.impacts.service import ImpactService


@pytest.mark.parametrize(
    "value, expected",
    [(2, 2.0), ('2"', 2.0), ('1/2"', 0.5), ('1 1/2"', 1.5), ("", 0.0), (None, 0.0), ("abc", None)],
)
def test_parse_inches(value, expected):
    assert parse_inches(value) == expected


def test_row_value_accepts_labels_and_snake_case_keys():
    assert row_value({"WELD NUMBER": "W-1"}, "WELD NUMBER") == "W-1"
    assert row_value({"weld_number": "W-2"}, "WELD NUMBER") == "W-2"
    assert row_value({}, "WELD NUMBER") is None


def test_derive_spools_keeps_first_row_per_spool():
    spools = derive_spools([
        {"SPOOL NUMBER": "SP-1", "MATERIAL": "A106", "NPS": '2"'},
        {"SPOOL NUMBER": "SP-1", "MATERIAL": "A53"},
        {"SPOOL NUMBER": "SP-2"},
        {"ITEM CODE": "LOOSE"},
    ])

    assert [s.name for s in spools] == ["SP-1", "SP-2"]
    assert spools[0].material == "A106"
    assert spools[0].diameter_in == 2.0
    assert spools[1].diameter_in is None


def test_derive_joints_classifies_welds_and_bolts():
    joints = derive_joints(
        spools_welds=[
            {"WELD NUMBER": "W-1", "TYPE WELD": "BW", "NPS": '3/4"', "DESTINATION": "CAMPO", "SPOOL NUMBER": "SP-1"},
            {"WELD NUMBER": "W-2", "TYPE WELD": "SW", "DESTINATION": "Campo"},
            {"TYPE WELD": "BW"},
        ],
        bolted_joints=[{"FLANGED JOINT NUMBER": "F-1", "RATING": "150#", "BOLT SIZE": '5/8"'}],
    )

    assert [j.tag for j in joints] == ["W-1", "W-2", "F-1"]
    w1, w2, f1 = joints
    assert (w1.joint_category, w1.shop_field, w1.diameter_in, w1.spool_name) == (
        JointCategory.WELD, ShopField.FIELD, 0.75, "SP-1",
    )
    assert w2.shop_field == ShopField.SHOP
    assert (f1.joint_category, f1.shop_field, f1.rating) == (JointCategory.BOLT, ShopField.FIELD, "150#")


def test_derive_materials_falls_back_to_item_code_for_description():
    materials = derive_materials([{"ITEM CODE": "P-1", "QTY": "2.5", "SPOOL NUMBER": "SP-1"}])

    assert materials[0].description == "P-1"
    assert materials[0].quantity == 2.5
    assert materials[0].spool_name == "SP-1"


async def seed_revision(db, project_id, code="ISO-100", revision_code="0"):
    store = EngineeringService(db)
    iso = await store.create_isometric(project_id, code)
    revision = await store.create_revision(iso.id, revision_code)
    await store.upload_spools(revision.id, [SpoolCreate(name="SP-1", material="A106")])
    return iso, revision


async def spools_of(db, revision_id):
    result = await db.execute(
        select(Spool).where(Spool.revision_id == revision_id).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_material_change_is_recorded_as_impact(db_session, project_id):
    iso, revision = await seed_revision(db_session, project_id)
    request = SpoolGenImportRequest(
        isometric_code="ISO-100",
        revision_code="0",
        material_take_off=[{"SPOOL NUMBER": "SP-1", "MATERIAL": "A53", "ITEM CODE": "P-1", "QTY": 2}],
    )

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert result.success
    assert result.revision_id == revision.id
    assert result.impacts_detected

    impacts = (await db_session.execute(select(IsometricImpact))).scalars().all()
    assert len(impacts) == 1
    impact = impacts[0]
    assert impact.entity_type == ImpactEntityType.SPOOL
    assert impact.entity_identifier == "SP-1"
    assert impact.change_type == ImpactChangeType.MODIFY
    assert impact.changes == {"changes": [{"field": "material", "old": "A106", "new": "A53"}]}

    refreshed = await EngineeringService(db_session).get_revision_details(revision.id)
    assert refreshed.state == RevisionState.OBSOLETA

    spools = await spools_of(db_session, revision.id)
    assert [(s.name, s.material) for s in spools] == [("SP-1", "A53")]

    material = (await db_session.execute(select(Material))).scalar_one()
    assert material.spool_id == spools[0].id


@pytest.mark.asyncio
async def test_joints_are_linked_to_their_spools(db_session, project_id):
    _, revision = await seed_revision(db_session, project_id)
    request = SpoolGenImportRequest(
        isometric_code="ISO-100",
        revision_code="0",
        spools_welds=[{"weld_number": "W-1", "type_weld": "BW", "spool_number": "SP-1"}],
        bolted_joints=[{"flanged_joint_number": "F-1"}],
        material_take_off=[{"spool_number": "SP-1", "material": "A106"}],
    )

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert result.success
    joints = (await db_session.execute(select(Joint).order_by(Joint.tag))).scalars().all()
    spool = (await spools_of(db_session, revision.id))[0]
    assert [(j.tag, j.spool_id) for j in joints] == [("F-1", None), ("W-1", spool.id)]

    impacts = (await db_session.execute(select(IsometricImpact))).scalars().all()
    assert {(i.entity_type, i.entity_identifier, i.change_type) for i in impacts} == {
        (ImpactEntityType.JOINT, "W-1", ImpactChangeType.NEW),
        (ImpactEntityType.JOINT, "F-1", ImpactChangeType.NEW),
    }


@pytest.mark.asyncio
async def test_revision_mismatch_is_rejected_without_writes(db_session, project_id):
    _, revision = await seed_revision(db_session, project_id)
    request = SpoolGenImportRequest(
        isometric_code="ISO-100",
        revision_code="1",
        material_take_off=[{"SPOOL NUMBER": "SP-9", "MATERIAL": "A53"}],
    )

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert not result.success
    assert "does not match" in result.message
    assert await db_session.scalar(select(func.count(IsometricImpact.id))) == 0
    refreshed = await EngineeringService(db_session).get_revision_details(revision.id)
    assert refreshed.state == RevisionState.VIGENTE
    assert [s.name for s in await spools_of(db_session, revision.id)] == ["SP-1"]


@pytest.mark.asyncio
async def test_unknown_isometric_is_rejected(db_session, project_id):
    request = SpoolGenImportRequest(isometric_code="ISO-404", revision_code="0")

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert not result.success
    assert "does not exist" in result.message


@pytest.mark.asyncio
async def test_isometric_without_vigente_revision_is_rejected(db_session, project_id):
    store = EngineeringService(db_session)
    iso = await store.create_isometric(project_id, "ISO-100")
    await store.create_revision(iso.id, "0", RevisionState.OBSOLETA)
    request = SpoolGenImportRequest(isometric_code="ISO-100", revision_code="0")

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert not result.success
    assert "no active VIGENTE revision" in result.message


def test_duplicate_tags_span_welds_and_bolts():
    joints = derive_joints(
        spools_welds=[{"WELD NUMBER": "1"}, {"WELD NUMBER": "2"}, {"WELD NUMBER": "1"}],
        bolted_joints=[{"FLANGED JOINT NUMBER": "2"}, {"FLANGED JOINT NUMBER": "F-1"}],
    )

    assert duplicate_tags(joints) == ["1", "2"]


@pytest.mark.asyncio
async def test_duplicate_weld_numbers_are_rejected_without_writes(db_session, project_id):
    _, revision = await seed_revision(db_session, project_id)
    request = SpoolGenImportRequest(
        isometric_code="ISO-100",
        revision_code="0",
        spools_welds=[{"WELD NUMBER": "1"}, {"WELD NUMBER": "1"}],
        material_take_off=[{"SPOOL NUMBER": "SP-2"}],
    )

    result = await SpoolGenImportService(db_session).process_import(project_id, request)

    assert not result.success
    assert result.message == "Duplicate joint numbers in SpoolGen data: 1"
    assert await db_session.scalar(select(func.count(IsometricImpact.id))) == 0
    refreshed = await EngineeringService(db_session).get_revision_details(revision.id)
    assert refreshed.state == RevisionState.VIGENTE
    assert [s.name for s in await spools_of(db_session, revision.id)] == ["SP-1"]


@pytest.mark.asyncio
async def test_impact_storage_error_stops_before_the_revision_is_retired(db_session, project_id, monkeypatch):
    _, revision = await seed_revision(db_session, project_id)
    impacts = ImpactService(db_session)

    async def failing_save(revision_id, diff):
        raise SQLAlchemyError("impact insert failed")

    monkeypatch.setattr(impacts, "save_impacts", failing_save)
    request = SpoolGenImportRequest(
        isometric_code="ISO-100",
        revision_code="0",
        material_take_off=[{"SPOOL NUMBER": "SP-1", "MATERIAL": "A53"}],
    )

    result = await SpoolGenImportService(db_session, impacts=impacts).process_import(project_id, request)

    assert not result.success
    assert result.message == "impact insert failed"
    refreshed = await EngineeringService(db_session).get_revision_details(revision.id)
    assert refreshed.state == RevisionState.VIGENTE
    assert [(s.name, s.material) for s in await spools_of(db_session, revision.id)] == [("SP-1", "A106")]
