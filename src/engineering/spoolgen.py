import logging
from fractions import Fraction
from uuid import UUID
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.engineering.models import JointCategory, RevisionState, ShopField
from src.engineering.schemas import (
    SpoolCreate, JointCreate, MaterialCreate, SpoolGenImportRequest, SpoolGenImportResult,
)
from src.engineering.service import EngineeringService
from src.impacts.diff import calculate_diff
from src.impacts.service import ImpactService

logger = logging.getLogger(__name__)

FIELD_DESTINATION = "CAMPO"


class SpoolGenValidationError(Exception):
    """Import rejected before any write."""


def row_value(row: Dict[str, Any], label: str) -> Any:
    """Read a spreadsheet column by its label ("WELD NUMBER") or snake_case key ("weld_number")."""
    if label in row:
        return row[label]
    key = label.lower().replace(" ", "_").replace("-", "_")
    return row.get(key)


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_inches(value: Any) -> Optional[float]:
    """Nominal size in inches: 2, '2"', '1/2"', '1 1/2"'."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace('"', "").strip()
    if not text:
        return 0.0
    try:
        return float(sum(Fraction(part) for part in text.split()))
    except (ValueError, ZeroDivisionError):
        return None


def derive_spools(material_take_off: Sequence[Dict[str, Any]]) -> List[SpoolCreate]:
    """Unique spools of the take-off; the first row of each spool provides its metadata."""
    spools: Dict[str, SpoolCreate] = {}
    for item in material_take_off:
        name = _text(row_value(item, "SPOOL NUMBER"))
        if not name or name in spools:
            continue
        nps = row_value(item, "NPS")
        spools[name] = SpoolCreate(
            name=name,
            sheet=_text(row_value(item, "SHEET")),
            piping_class=_text(row_value(item, "PIPING CLASS")),
            fab_location=_text(row_value(item, "FAB")),
            material=_text(row_value(item, "MATERIAL")),
            diameter_in=parse_inches(nps) if nps not in (None, "") else None,
            requires_pwht=False,
            requires_painting=False,
        )
    return list(spools.values())


def derive_joints(
    spools_welds: Sequence[Dict[str, Any]], bolted_joints: Sequence[Dict[str, Any]]
) -> List[JointCreate]:
    joints = []

    for weld in spools_welds:
        tag = _text(row_value(weld, "WELD NUMBER"))
        if not tag:
            logger.warning(f"Skipping weld row without WELD NUMBER: {weld}")
            continue
        destination = _text(row_value(weld, "DESTINATION"))
        joints.append(JointCreate(
            tag=tag,
            joint_category=JointCategory.WELD,
            joint_type=_text(row_value(weld, "TYPE WELD")),
            diameter_in=parse_inches(row_value(weld, "NPS")),
            schedule=_text(row_value(weld, "SCH")),
            thickness=_number(row_value(weld, "THICKNESS")) or 0.0,
            material=_text(row_value(weld, "MATERIAL")),
            shop_field=ShopField.FIELD if destination == FIELD_DESTINATION else ShopField.SHOP,
            sheet=_text(row_value(weld, "SHEET")),
            spool_name=_text(row_value(weld, "SPOOL NUMBER")),
        ))

    for bolt in bolted_joints:
        tag = _text(row_value(bolt, "FLANGED JOINT NUMBER"))
        if not tag:
            logger.warning(f"Skipping bolted joint row without FLANGED JOINT NUMBER: {bolt}")
            continue
        joints.append(JointCreate(
            tag=tag,
            joint_category=JointCategory.BOLT,
            diameter_in=parse_inches(row_value(bolt, "NPS")),
            rating=_text(row_value(bolt, "RATING")),
            bolt_size=_text(row_value(bolt, "BOLT SIZE")),
            material=_text(row_value(bolt, "MATERIAL")),
            sheet=_text(row_value(bolt, "SHEET")),
            shop_field=ShopField.FIELD,
        ))

    return joints


def duplicate_tags(joints: Sequence[JointCreate]) -> List[str]:
    """Tags carried by more than one joint, welds and bolts sharing one namespace."""
    seen, duplicates = set(), []
    for joint in joints:
        if joint.tag in seen and joint.tag not in duplicates:
            duplicates.append(joint.tag)
        seen.add(joint.tag)
    return duplicates


def derive_materials(material_take_off: Sequence[Dict[str, Any]]) -> List[MaterialCreate]:
    materials = []
    for item in material_take_off:
        item_code = _text(row_value(item, "ITEM CODE"))
        materials.append(MaterialCreate(
            item_code=item_code,
            description=_text(row_value(item, "DESCRIPTION")) or item_code,
            quantity=_number(row_value(item, "QTY")) or 0,
            quantity_unit=_text(row_value(item, "QTY UNIT")),
            piping_class=_text(row_value(item, "PIPING CLASS")),
            spool_name=_text(row_value(item, "SPOOL NUMBER")),
        ))
    return materials


class SpoolGenImportService:
    """Loads one isometric's SpoolGen fabrication detail into its VIGENTE revision.

    Stops at the first error. Validation failures happen before any write;
    a failure while inserting leaves the revision partially populated.
    """

    def __init__(
        self,
        db: AsyncSession,
        store: Optional[EngineeringService] = None,
        impacts: Optional[ImpactService] = None,
    ):
        self.db = db
        self.store = store or EngineeringService(db)
        self.impacts = impacts or ImpactService(db)

    async def process_import(self, project_id: UUID, data: SpoolGenImportRequest) -> SpoolGenImportResult:
        try:
            return await self._process(project_id, data)
        except SpoolGenValidationError as e:
            logger.warning(f"SpoolGen import rejected for {data.isometric_code}: {e}")
            return SpoolGenImportResult(success=False, message=str(e))
        except Exception as e:
            logger.exception(f"SpoolGen import failed for {data.isometric_code}")
            return SpoolGenImportResult(success=False, message=str(e))

    async def _process(self, project_id: UUID, data: SpoolGenImportRequest) -> SpoolGenImportResult:
        iso = await self.store.get_isometric_by_code(project_id, data.isometric_code)
        if not iso:
            raise SpoolGenValidationError(
                f"Isometric {data.isometric_code} does not exist. "
                "It must be loaded through the revision announcement first."
            )

        previous_rev = await self.store.get_latest_revision(iso.id)
        if not previous_rev:
            raise SpoolGenValidationError(
                f"Isometric {data.isometric_code} has no active VIGENTE revision."
            )

        if str(previous_rev.code) != str(data.revision_code):
            raise SpoolGenValidationError(
                f"SpoolGen revision ({data.revision_code}) does not match "
                f"the VIGENTE revision in the system ({previous_rev.code})."
            )

        revision_id = previous_rev.id
        logger.info(f"Using VIGENTE revision {previous_rev.code} ({revision_id}) of {iso.code}")

        spools = derive_spools(data.material_take_off)
        joints = derive_joints(data.spools_welds, data.bolted_joints)
        materials = derive_materials(data.material_take_off)

        duplicates = duplicate_tags(joints)
        if duplicates:
            raise SpoolGenValidationError(
                f"Duplicate joint numbers in SpoolGen data: {', '.join(duplicates)}"
            )

        diff = calculate_diff(list(previous_rev.spools), spools, list(previous_rev.joints), joints)
        await self.impacts.save_impacts(revision_id, diff)

        await self.store.update_revision_state(revision_id, RevisionState.OBSOLETA)

        # Names and tags are unique per revision, so the new generation replaces the old rows
        await self.store.clear_revision_structure(revision_id)

        spool_ids: Dict[str, UUID] = {}
        if spools:
            created = await self.store.upload_spools(revision_id, spools)
            spool_ids = {s.name: s.id for s in created}

        for joint in joints:
            if joint.spool_name:
                joint.spool_id = spool_ids.get(joint.spool_name)
        if joints:
            await self.store.upload_joints(revision_id, joints)

        for material in materials:
            if material.spool_name:
                material.spool_id = spool_ids.get(material.spool_name)
        if materials:
            await self.store.upload_materials(revision_id, materials)

        logger.info(
            f"SpoolGen import for {iso.code} Rev {previous_rev.code}: "
            f"{len(spools)} spools, {len(joints)} joints, {len(materials)} materials"
        )
        return SpoolGenImportResult(success=True, revision_id=revision_id, impacts_detected=True)
