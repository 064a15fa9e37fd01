"""
Ephemeral state between parsing a GEDCOM upload and importing it.

A preview holds the parsed document, its duplicate candidates and the
caller's resolution decisions. Previews are keyed by (upload id, user id)
and expire after `preview_ttl_seconds`. Nothing here touches the store.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from pydantic import ValidationError

from treemerge.core.config import settings
from treemerge.core.exceptions import InvalidResolutionError, PreviewNotFoundError
from treemerge.models.relationship import FATHER, MOTHER, PARENT_OF, SPOUSE
from treemerge.schemas.gedcom import ConsistencyIssue, DuplicateCandidate, Individual, ParsedDocument
from treemerge.schemas.tree import ResolutionDecision
from treemerge.services.importer import RESOLUTIONS, SKIP

logger = logging.getLogger(__name__)

NEW = "new"
DUPLICATE = "duplicate"


@dataclass
class PreviewIndividual:
    gedcom_id: str
    name: str
    first_name: Optional[str]
    last_name: Optional[str]
    birth_date: Optional[str]
    death_date: Optional[str]
    sex: Optional[str]
    status: str
    duplicate: Optional[DuplicateCandidate] = None

    @classmethod
    def from_individual(cls, individual: Individual, duplicate: Optional[DuplicateCandidate]) -> "PreviewIndividual":
        return cls(
            gedcom_id=individual.id,
            name=individual.display_name,
            first_name=individual.first_name,
            last_name=individual.last_name,
            birth_date=individual.birth_date,
            death_date=individual.death_date,
            sex=individual.sex,
            status=DUPLICATE if duplicate else NEW,
            duplicate=duplicate,
        )

    def brief(self) -> dict:
        return {
            "gedcomId": self.gedcom_id,
            "name": self.name,
            "birthDate": self.birth_date,
            "deathDate": self.death_date,
        }

    def to_dict(self) -> dict:
        data = {
            "gedcomId": self.gedcom_id,
            "name": self.name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "birthDate": self.birth_date,
            "deathDate": self.death_date,
            "sex": self.sex,
            "status": self.status,
        }
        if self.duplicate is not None and self.duplicate.best_match is not None:
            best = self.duplicate.best_match
            data["duplicateMatch"] = {
                "existingPersonId": str(best.person_id),
                "confidence": best.confidence,
                "matchingFields": list(best.matching_fields),
            }
        return data


@dataclass
class PreviewSummary:
    total_individuals: int = 0
    new_count: int = 0
    duplicate_count: int = 0
    existing_count: int = 0

    def to_dict(self) -> dict:
        return {
            "totalIndividuals": self.total_individuals,
            "newCount": self.new_count,
            "duplicateCount": self.duplicate_count,
            "existingCount": self.existing_count,
        }


@dataclass
class PreviewData:
    upload_id: str
    user_id: UUID
    document: ParsedDocument
    individuals: list[PreviewIndividual]
    duplicates: list[DuplicateCandidate]
    summary: PreviewSummary
    relationship_issues: list[ConsistencyIssue] = field(default_factory=list)
    resolution_decisions: list[ResolutionDecision] = field(default_factory=list)
    created_at: float = 0.0


@dataclass
class IndividualPage:
    individuals: list[PreviewIndividual]
    page: int
    limit: int
    total: int
    total_pages: int

    def to_dict(self) -> dict:
        return {
            "individuals": [i.to_dict() for i in self.individuals],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "totalPages": self.total_pages,
            },
        }


SORT_KEYS = {
    "name": lambda i: i.name or "",
    "birthDate": lambda i: i.birth_date or "",
    "deathDate": lambda i: i.death_date or "",
}


class PreviewStore:
    """In-memory previews owned by whoever creates the store."""

    def __init__(self, ttl_seconds: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.preview_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._previews: dict[tuple[str, UUID], PreviewData] = {}

    def _expired(self, preview: PreviewData) -> bool:
        return self.clock() - preview.created_at >= self.ttl_seconds

    def store_preview(
        self,
        upload_id: str,
        user_id: UUID,
        document: ParsedDocument,
        duplicates: Iterable[DuplicateCandidate],
        relationship_issues: Iterable[ConsistencyIssue] = (),
    ) -> PreviewData:
        duplicates = list(duplicates)
        by_gedcom_id = {d.gedcom_id: d for d in duplicates}
        individuals = [
            PreviewIndividual.from_individual(i, by_gedcom_id.get(i.id)) for i in document.individuals
        ]

        summary = PreviewSummary(
            total_individuals=len(individuals),
            new_count=sum(1 for i in individuals if i.status == NEW),
            duplicate_count=sum(1 for i in individuals if i.status == DUPLICATE),
        )

        preview = PreviewData(
            upload_id=upload_id,
            user_id=user_id,
            document=document,
            individuals=individuals,
            duplicates=duplicates,
            summary=summary,
            relationship_issues=list(relationship_issues),
            created_at=self.clock(),
        )
        self._previews[(upload_id, user_id)] = preview
        logger.debug("Stored preview %s with %d individuals", upload_id, len(individuals))
        return preview

    def get_preview(self, upload_id: str, user_id: UUID) -> PreviewData:
        key = (upload_id, user_id)
        preview = self._previews.get(key)
        if preview is not None and self._expired(preview):
            del self._previews[key]
            preview = None
        if preview is None:
            raise PreviewNotFoundError(
                "Preview data not found. Please upload and parse a GEDCOM file first."
            )
        return preview

    def list_individuals(
        self,
        upload_id: str,
        user_id: UUID,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "name",
        sort_order: str = "asc",
        search: str = "",
    ) -> IndividualPage:
        preview = self.get_preview(upload_id, user_id)
        individuals = list(preview.individuals)
        page = max(page, 1)
        limit = max(limit, 1)

        if search:
            needle = search.lower()
            individuals = [
                i for i in individuals
                if needle in (i.name or "").lower()
                or needle in (i.first_name or "").lower()
                or needle in (i.last_name or "").lower()
            ]

        sort_key = SORT_KEYS.get(sort_by, lambda i: getattr(i, sort_by, None) or "")
        individuals.sort(key=sort_key, reverse=sort_order == "desc")

        total = len(individuals)
        offset = (page - 1) * limit
        return IndividualPage(
            individuals=individuals[offset:offset + limit],
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        )

    def get_person(self, upload_id: str, user_id: UUID, gedcom_id: str) -> Optional[dict]:
        """One previewed individual with its parents, spouses and children; None if unknown."""
        preview = self.get_preview(upload_id, user_id)
        people = {i.gedcom_id: i for i in preview.individuals}
        person = people.get(gedcom_id)
        if person is None:
            return None

        individual = preview.document.find_individual(gedcom_id)
        parents, spouses, children = [], [], []

        if individual.child_of_family:
            family = preview.document.find_family(individual.child_of_family)
            if family is not None:
                for parent_id, role in ((family.husband, FATHER), (family.wife, MOTHER)):
                    if parent_id in people:
                        parents.append({**people[parent_id].brief(), "relationshipType": role})

        for family_id in individual.spouse_families:
            family = preview.document.find_family(family_id)
            if family is None:
                continue
            spouse_id = family.wife if family.husband == gedcom_id else family.husband
            if spouse_id in people:
                spouses.append(people[spouse_id].brief())
            for child_id in family.children:
                if child_id in people:
                    children.append(people[child_id].brief())

        return {
            "person": person.to_dict(),
            "relationships": {"parents": parents, "spouses": spouses, "children": children},
        }

    def get_tree(self, upload_id: str, user_id: UUID) -> dict:
        """Individuals plus the relationships their families imply, by GEDCOM id."""
        preview = self.get_preview(upload_id, user_id)
        relationships = []
        for family in preview.document.families:
            if family.husband and family.wife:
                relationships.append({"type": SPOUSE, "person1": family.husband, "person2": family.wife})
            for child_id in family.children:
                for parent_id, role in ((family.husband, FATHER), (family.wife, MOTHER)):
                    if parent_id:
                        relationships.append({
                            "type": PARENT_OF,
                            "parent": parent_id,
                            "child": child_id,
                            "parentRole": role,
                        })

        individuals = []
        for i in preview.individuals:
            data = i.to_dict()
            data.pop("duplicateMatch", None)
            individuals.append(data)
        return {"individuals": individuals, "relationships": relationships}

    def get_summary(self, upload_id: str, user_id: UUID) -> PreviewSummary:
        return self.get_preview(upload_id, user_id).summary

    def save_resolution_decisions(self, upload_id: str, user_id: UUID, decisions: Iterable[Any]) -> int:
        """Validate and replace the stored decisions; returns how many were saved."""
        preview = self.get_preview(upload_id, user_id)

        parsed = []
        for decision in decisions:
            if not isinstance(decision, ResolutionDecision):
                try:
                    decision = ResolutionDecision.model_validate(decision)
                except ValidationError as e:
                    raise InvalidResolutionError(f"Invalid resolution decision: {e}") from e
            if decision.resolution not in RESOLUTIONS:
                raise InvalidResolutionError(f"Invalid resolution option: {decision.resolution}")
            parsed.append(decision)

        preview.resolution_decisions = parsed
        preview.summary.existing_count = sum(1 for d in parsed if d.resolution == SKIP)
        return len(parsed)

    def get_resolution_decisions(self, upload_id: str, user_id: UUID) -> list[ResolutionDecision]:
        return list(self.get_preview(upload_id, user_id).resolution_decisions)

    def clear(self, upload_id: str, user_id: UUID) -> None:
        self._previews.pop((upload_id, user_id), None)

    def purge_expired(self) -> int:
        """Drop every expired preview; returns how many were removed."""
        expired = [key for key, preview in self._previews.items() if self._expired(preview)]
        for key in expired:
            del self._previews[key]
        if expired:
            logger.info("Purged %d expired previews", len(expired))
        return len(expired)
