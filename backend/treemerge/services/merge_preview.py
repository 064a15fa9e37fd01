"""
Merge preview: which values survive and what happens to relationships
when one person (source) is folded into another (target).

Everything here is computed in memory from already loaded rows, so the
same plan drives both the preview shown to a user and the merge itself.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from treemerge.models.relationship import FATHER, MOTHER, PARENT_OF, SPOUSE
from treemerge.schemas.merge import FieldComparison, MergePreview, MergeValidation
from treemerge.schemas.tree import PersonSnapshot, RelationshipData, RelationshipSummary
from treemerge.services.importer import relationship_key

DATE_LIKE_RE = re.compile(r"^\d{4}(-\d{2})?(-\d{2})?$")

MERGEABLE_FIELDS = [
    "first_name",
    "last_name",
    "birth_date",
    "death_date",
    "gender",
    "photo_url",
    "birth_surname",
    "nickname",
]

CONFLICT_WARNINGS = {
    MOTHER: "Both people have different mothers - merge will overwrite",
    FATHER: "Both people have different fathers - merge will overwrite",
}


def select_best_value(source, target):
    """
    Pick the surviving value for one field.

        None, None  -> None        '', ''   -> ''
        '', None    -> None        None, '' -> ''

    A single blank side loses to the other. Two dates (YYYY, YYYY-MM,
    YYYY-MM-DD) keep the more precise one; other values keep the longer
    one. Ties keep the target.
    """
    if source is None and target is None:
        return None
    if source == "" and target == "":
        return ""
    if source == "" and target is None:
        return None
    if source is None and target == "":
        return ""

    if source and not target:
        return source
    if target and not source:
        return target

    source_str = str(source)
    target_str = str(target)

    if DATE_LIKE_RE.match(source_str) and DATE_LIKE_RE.match(target_str):
        if len(source_str) != len(target_str):
            return source if len(source_str) > len(target_str) else target

    if len(source_str) > len(target_str):
        return source
    if len(target_str) > len(source_str):
        return target
    return target


def merge_notes(source_notes: Optional[str], target_notes: Optional[str]) -> Optional[str]:
    """Target notes followed by source notes, without repeating identical text."""
    parts = []
    for notes in (target_notes, source_notes):
        if notes and notes.strip() and notes.strip() not in parts:
            parts.append(notes.strip())
    if not parts:
        return select_best_value(source_notes, target_notes)
    return "\n".join(parts)


def merge_fields(source, target) -> dict[str, Any]:
    merged = {name: select_best_value(getattr(source, name), getattr(target, name)) for name in MERGEABLE_FIELDS}
    merged["notes"] = merge_notes(getattr(source, "notes", None), getattr(target, "notes", None))
    return merged


def validate_merge(source, target, user=None) -> MergeValidation:
    errors = []

    if source.user_id != target.user_id:
        errors.append("Cannot merge records across different users")

    source_gender = source.gender
    target_gender = target.gender
    if (
        source_gender and target_gender
        and source_gender != "unspecified"
        and target_gender != "unspecified"
        and source_gender != target_gender
    ):
        errors.append(f"Gender mismatch: Cannot merge {source_gender} into {target_gender}")

    default_person_id = getattr(user, "default_person_id", None) if user is not None else None
    if default_person_id is not None:
        if default_person_id == source.id:
            errors.append("Cannot merge your profile person into another person")
        if default_person_id == target.id:
            errors.append("Cannot merge into your profile person")

    return MergeValidation(can_merge=not errors, errors=errors)


def _parent_of(person_id, role: str, relationships: Iterable) -> Optional[Any]:
    for rel in relationships:
        if rel.person2_id == person_id and rel.type == PARENT_OF and rel.parent_role == role:
            return rel
    return None


def detect_relationship_conflicts(source_id, target_id, source_relationships, target_relationships) -> list[str]:
    """Parent roles held by a different person on each side."""
    source_relationships = list(source_relationships)
    target_relationships = list(target_relationships)

    conflicts = []
    for role in (MOTHER, FATHER):
        source_parent = _parent_of(source_id, role, source_relationships)
        target_parent = _parent_of(target_id, role, target_relationships)
        if source_parent and target_parent and source_parent.person1_id != target_parent.person1_id:
            conflicts.append(role)
    return conflicts


@dataclass
class MergePlan:
    source_id: Any
    target_id: Any
    merged_fields: dict[str, Any] = field(default_factory=dict)
    conflicts: list[str] = field(default_factory=list)
    # target parent rows removed so the source's parent takes the role
    parent_roles_to_delete: list[str] = field(default_factory=list)
    relationships_to_insert: list[RelationshipData] = field(default_factory=list)


def _is_duplicate(person1_id, person2_id, rel, existing: Iterable) -> bool:
    for other in existing:
        if other.type != rel.type:
            continue
        if rel.type == PARENT_OF:
            if (
                other.person1_id == person1_id
                and other.person2_id == person2_id
                and (other.parent_role or "") == (rel.parent_role or "")
            ):
                return True
        elif rel.type == SPOUSE:
            if {other.person1_id, other.person2_id} == {person1_id, person2_id}:
                return True
        elif other.person1_id == person1_id and other.person2_id == person2_id:
            return True
    return False


def plan_merge(source, target, source_relationships, target_relationships) -> MergePlan:
    """
    Stage a merge without touching the store.

    Source relationships are re-pointed at the target. Rows the target
    already has, rows that would link the target to itself, and repeats
    are dropped.
    """
    source_relationships = list(source_relationships)
    target_relationships = list(target_relationships)

    plan = MergePlan(source_id=source.id, target_id=target.id)
    plan.merged_fields = merge_fields(source, target)
    plan.conflicts = detect_relationship_conflicts(
        source.id, target.id, source_relationships, target_relationships
    )
    plan.parent_roles_to_delete = list(plan.conflicts)

    seen = set()
    for rel in source_relationships:
        person1_id = target.id if rel.person1_id == source.id else rel.person1_id
        person2_id = target.id if rel.person2_id == source.id else rel.person2_id

        if person1_id == person2_id:
            continue
        if _is_duplicate(person1_id, person2_id, rel, target_relationships):
            continue

        key = relationship_key(person1_id, person2_id, rel.type, rel.parent_role)
        if key in seen:
            continue
        seen.add(key)

        plan.relationships_to_insert.append(RelationshipData(
            person1_id=person1_id,
            person2_id=person2_id,
            type=rel.type,
            parent_role=rel.parent_role,
            user_id=rel.user_id,
        ))

    return plan


def _snapshot(person) -> PersonSnapshot:
    return PersonSnapshot(id=person.id, **{name: getattr(person, name) for name in MERGEABLE_FIELDS})


def _summary(rel) -> RelationshipSummary:
    return RelationshipSummary(
        id=getattr(rel, "id", None),
        person1_id=rel.person1_id,
        person2_id=rel.person2_id,
        type=rel.type,
        parent_role=rel.parent_role,
        user_id=rel.user_id,
    )


def generate_merge_preview(source, target, user, source_relationships, target_relationships) -> MergePreview:
    """
    Everything a user needs to confirm a merge.

    Relationship conflicts are reported as warnings only; can_merge depends
    on validate_merge alone.
    """
    source_relationships = list(source_relationships)
    target_relationships = list(target_relationships)

    validation = validate_merge(source, target, user)
    plan = plan_merge(source, target, source_relationships, target_relationships)

    validation.conflict_fields = list(plan.conflicts)
    validation.warnings = [CONFLICT_WARNINGS[role] for role in plan.conflicts]

    merged = {"id": target.id, **plan.merged_fields, "user_id": target.user_id}
    comparison = {
        name: FieldComparison(
            source=getattr(source, name),
            target=getattr(target, name),
            merged=merged[name],
        )
        for name in MERGEABLE_FIELDS
    }

    return MergePreview(
        can_merge=validation.can_merge,
        validation=validation,
        source=_snapshot(source),
        target=_snapshot(target),
        merged=merged,
        comparison=comparison,
        relationships_to_transfer=[_summary(rel) for rel in plan.relationships_to_insert],
        existing_relationships=[_summary(rel) for rel in target_relationships],
    )
