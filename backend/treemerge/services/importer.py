"""
Turning a parsed document into store rows.

Pure functions: they decide which individuals become new people, which
map onto existing ones, and which relationships the families imply. The
writes themselves happen in ImportService.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional
from uuid import UUID

from treemerge.models.relationship import FATHER, MOTHER, PARENT_OF, SPOUSE
from treemerge.schemas.gedcom import Family, Individual
from treemerge.schemas.tree import PersonData, RelationshipData, ResolutionDecision
from treemerge.services.dates import append_modifier_note

logger = logging.getLogger(__name__)

MERGE = "merge"
SKIP = "skip"
IMPORT_AS_NEW = "import_as_new"
RESOLUTIONS = (MERGE, SKIP, IMPORT_AS_NEW)


@dataclass
class MergeTarget:
    gedcom_id: str
    existing_person_id: UUID
    individual: Individual


@dataclass
class ResolutionOutcome:
    individuals_to_import: list[Individual] = field(default_factory=list)
    gedcom_id_to_person_id: dict[str, UUID] = field(default_factory=dict)
    individuals_to_merge: list[MergeTarget] = field(default_factory=list)


def map_sex_to_gender(sex: Optional[str]) -> str:
    if not sex:
        return "unspecified"
    return {"M": "male", "F": "female", "U": "unspecified"}.get(sex.strip().upper(), "other")


def map_individual_to_person(individual: Individual, user_id: UUID) -> PersonData:
    """Person fields for an individual; date modifiers are kept as notes."""
    notes = None
    if individual.birth is not None and individual.birth.valid:
        notes = append_modifier_note(notes, individual.birth.modifier, "Birth")
    if individual.death is not None and individual.death.valid:
        notes = append_modifier_note(notes, individual.death.modifier, "Death")

    return PersonData(
        first_name=individual.first_name or "",
        last_name=individual.last_name or "",
        gender=map_sex_to_gender(individual.sex),
        birth_date=individual.birth_date,
        death_date=individual.death_date,
        photo_url=individual.photo_url,
        notes=notes,
        user_id=user_id,
    )


def apply_duplicate_resolutions(
    individuals: Iterable[Individual],
    decisions: Iterable[ResolutionDecision],
) -> ResolutionOutcome:
    """
    Split individuals by the caller's duplicate decisions.

    Individuals without a decision are imported as new. An unknown
    resolution, or a merge/skip without a target person, also falls back
    to importing as new.
    """
    by_gedcom_id = {d.gedcom_id: d for d in decisions}
    outcome = ResolutionOutcome()

    for individual in individuals:
        decision = by_gedcom_id.get(individual.id)
        if decision is None:
            outcome.individuals_to_import.append(individual)
            continue

        resolution = decision.resolution
        if resolution not in RESOLUTIONS:
            logger.warning(
                "Unknown resolution %r for %s; importing as new person", resolution, individual.id
            )
            outcome.individuals_to_import.append(individual)
            continue

        if resolution in (MERGE, SKIP) and decision.existing_person_id is None:
            logger.warning(
                "Resolution %r for %s has no existing person; importing as new person",
                resolution, individual.id,
            )
            outcome.individuals_to_import.append(individual)
            continue

        if resolution == MERGE:
            outcome.gedcom_id_to_person_id[individual.id] = decision.existing_person_id
            outcome.individuals_to_merge.append(MergeTarget(
                gedcom_id=individual.id,
                existing_person_id=decision.existing_person_id,
                individual=individual,
            ))
        elif resolution == SKIP:
            outcome.gedcom_id_to_person_id[individual.id] = decision.existing_person_id
        else:
            outcome.individuals_to_import.append(individual)

    return outcome


def relationship_key(person1_id, person2_id, type: str, parent_role: Optional[str] = None) -> tuple:
    return (person1_id, person2_id, type, parent_role or "")


def build_relationships_from_families(
    families: Iterable[Family],
    gedcom_id_to_person_id: dict[str, UUID],
    user_id: UUID,
) -> list[RelationshipData]:
    """
    Relationship rows implied by FAM records.

    Spouses get one row per direction; each child gets a parentOf row per
    known parent. Individuals missing from the map are left out, as are
    pairs that resolve to the same person, and rows repeated across
    families are emitted once.
    """
    relationships = []
    seen = set()

    def add(person1_id, person2_id, type, parent_role=None):
        if person1_id == person2_id:
            return
        key = relationship_key(person1_id, person2_id, type, parent_role)
        if key in seen:
            return
        seen.add(key)
        relationships.append(RelationshipData(
            person1_id=person1_id,
            person2_id=person2_id,
            type=type,
            parent_role=parent_role,
            user_id=user_id,
        ))

    for family in families:
        husband_id = gedcom_id_to_person_id.get(family.husband) if family.husband else None
        wife_id = gedcom_id_to_person_id.get(family.wife) if family.wife else None

        if husband_id and wife_id:
            add(husband_id, wife_id, SPOUSE)
            add(wife_id, husband_id, SPOUSE)

        for child_gedcom_id in family.children:
            child_id = gedcom_id_to_person_id.get(child_gedcom_id)
            if not child_id:
                continue
            if husband_id:
                add(husband_id, child_id, PARENT_OF, FATHER)
            if wife_id:
                add(wife_id, child_id, PARENT_OF, MOTHER)

    return relationships
