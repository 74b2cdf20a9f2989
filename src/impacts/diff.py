"""
Structural diff between two generations of a revision's spools and joints.

Pure: no database access. Entities are matched by natural key (spool name,
joint tag) and compared on a fixed watch-list of fields; a rename shows up
as one removal plus one addition.
"""
from typing import Any, Iterable, List, Sequence, Tuple

from src.impacts.schemas import DiffResult, EntityDiff, FieldChange, ModifiedEntity

# (label recorded in the impact, attribute read from the entity)
SPOOL_WATCHED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("diameter", "diameter_in"),
    ("material", "material"),
    ("requires_pwht", "requires_pwht"),
)
JOINT_WATCHED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("type", "joint_type"),
    ("diameter", "diameter_in"),
    ("category", "shop_field"),
)


def _value(entity: Any, attr: str) -> Any:
    if isinstance(entity, dict):
        value = entity.get(attr)
    else:
        value = getattr(entity, attr, None)
    # Enum members compare and serialize by value
    return getattr(value, "value", value)


def _compare(old: Any, new: Any, watched: Iterable[Tuple[str, str]]) -> List[FieldChange]:
    changes = []
    for label, attr in watched:
        old_value, new_value = _value(old, attr), _value(new, attr)
        if old_value != new_value:
            changes.append(FieldChange(field=label, old=old_value, new=new_value))
    return changes


def _diff_entities(
    old_items: Sequence[Any],
    new_items: Sequence[Any],
    key: str,
    watched: Iterable[Tuple[str, str]],
) -> EntityDiff:
    result = EntityDiff()
    watched = tuple(watched)
    old_by_key = {_value(item, key): item for item in old_items}
    new_keys = {_value(item, key) for item in new_items}

    for new_item in new_items:
        old_item = old_by_key.get(_value(new_item, key))
        if old_item is None:
            result.added.append(new_item)
            continue
        changes = _compare(old_item, new_item, watched)
        if changes:
            result.modified.append(ModifiedEntity(item=new_item, changes=changes))

    for old_item in old_items:
        if _value(old_item, key) not in new_keys:
            result.removed.append(old_item)

    return result


def calculate_diff(
    old_spools: Sequence[Any],
    new_spools: Sequence[Any],
    old_joints: Sequence[Any],
    new_joints: Sequence[Any],
) -> DiffResult:
    return DiffResult(
        spools=_diff_entities(old_spools or [], new_spools or [], "name", SPOOL_WATCHED_FIELDS),
        joints=_diff_entities(old_joints or [], new_joints or [], "tag", JOINT_WATCHED_FIELDS),
    )


def entity_key(entity: Any, entity_kind: str) -> str:
    """Natural identifier of a spool ("name") or joint ("tag")."""
    return _value(entity, "name" if entity_kind == "SPOOL" else "tag")
