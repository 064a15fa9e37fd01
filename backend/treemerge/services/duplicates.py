"""Fuzzy matching of parsed individuals against a user's existing people."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from rapidfuzz.distance import Levenshtein
from sqlalchemy.ext.asyncio import AsyncSession

from treemerge.core.config import settings
from treemerge.models import Person
from treemerge.schemas.gedcom import DuplicateCandidate, DuplicateMatch, Individual
from treemerge.services.person_service import PersonService

logger = logging.getLogger(__name__)


@dataclass
class DuplicateScoring:
    name_weight: float = 0.6
    birth_date_weight: float = 0.4
    threshold: int = 70

    @classmethod
    def from_settings(cls) -> "DuplicateScoring":
        return cls(
            name_weight=settings.duplicate_name_weight,
            birth_date_weight=settings.duplicate_birth_date_weight,
            threshold=settings.duplicate_confidence_threshold,
        )


def _normalize_name(name: Optional[str]) -> str:
    return " ".join((name or "").lower().split())


def compare_names(name1: Optional[str], name2: Optional[str]) -> int:
    """Name similarity 0-100 from the normalized Levenshtein distance."""
    a = _normalize_name(name1)
    b = _normalize_name(name2)
    if not a or not b:
        return 0
    if a == b:
        return 100
    return round(Levenshtein.normalized_similarity(a, b) * 100)


def compare_dates(date1: Optional[str], date2: Optional[str]) -> int:
    """
    Birth date similarity 0-100 for YYYY, YYYY-MM or YYYY-MM-DD values.

        identical                         100
        different year                      0
        same year, either side year only  100
        same month, either side no day    100
        same month, different day          75
        same year, different month         50
    """
    if not date1 or not date2:
        return 0
    if date1 == date2:
        return 100

    parts1 = date1.split("-")
    parts2 = date2.split("-")

    if parts1[0] != parts2[0]:
        return 0
    if len(parts1) == 1 or len(parts2) == 1:
        return 100
    if parts1[1] != parts2[1]:
        return 50
    if len(parts1) == 2 or len(parts2) == 2:
        return 100
    return 75


def calculate_match_confidence(
    individual: Individual,
    person: Person,
    scoring: Optional[DuplicateScoring] = None,
) -> tuple[int, list[str]]:
    """Weighted confidence and the fields that contributed to it."""
    scoring = scoring or DuplicateScoring.from_settings()

    name_score = compare_names(individual.display_name, person.full_name)
    date_score = compare_dates(individual.birth_date, person.birth_date)

    matching_fields = []
    if name_score >= 80:
        matching_fields.append("name")
    if date_score >= 75:
        matching_fields.append("birthDate")

    confidence = round(scoring.name_weight * name_score + scoring.birth_date_weight * date_score)
    return min(confidence, 100), matching_fields


def find_duplicates(
    individuals: Iterable[Individual],
    existing_people: Iterable[Person],
    user_id: UUID,
    scoring: Optional[DuplicateScoring] = None,
) -> list[DuplicateCandidate]:
    """
    Return one candidate per individual that resembles at least one of the
    user's people; matches are sorted by confidence, highest first.
    """
    scoring = scoring or DuplicateScoring.from_settings()
    people = [p for p in existing_people if p.user_id == user_id]
    if not people:
        return []

    candidates = []
    for individual in individuals:
        matches = []
        for person in people:
            confidence, matching_fields = calculate_match_confidence(individual, person, scoring)
            if confidence >= scoring.threshold:
                matches.append(DuplicateMatch(
                    person_id=person.id,
                    name=person.full_name,
                    birth_date=person.birth_date,
                    confidence=confidence,
                    matching_fields=matching_fields,
                ))

        if matches:
            matches.sort(key=lambda m: m.confidence, reverse=True)
            candidates.append(DuplicateCandidate(
                gedcom_id=individual.id,
                gedcom_name=individual.display_name,
                gedcom_birth_date=individual.birth_date,
                matches=matches,
            ))

    logger.debug("Found %d duplicate candidates against %d people", len(candidates), len(people))
    return candidates


class DuplicateService:
    """Runs duplicate detection against the people stored for a user."""

    def __init__(self, session: AsyncSession, scoring: Optional[DuplicateScoring] = None):
        self.session = session
        self.scoring = scoring

    async def find_for_user(self, user_id: UUID, individuals: Iterable[Individual]) -> list[DuplicateCandidate]:
        people, _ = await PersonService(self.session).list_for_user(user_id)
        return find_duplicates(individuals, people, user_id, self.scoring)
