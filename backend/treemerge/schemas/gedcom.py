"""Parse-side entities produced from a GEDCOM document."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class DateModifier(str, Enum):
    ABT = "ABT"
    BEF = "BEF"
    AFT = "AFT"
    CAL = "CAL"
    EST = "EST"
    BET = "BET"


@dataclass(frozen=True)
class RawRecord:
    """One GEDCOM line and its nested sub-records."""
    level: int
    tag: str
    value: Optional[str] = None
    xref: Optional[str] = None
    line: int = 0
    children: tuple = ()

    def first(self, tag: str) -> Optional["RawRecord"]:
        """Return the first direct child with this tag, or None."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def all(self, tag: str) -> list["RawRecord"]:
        """Return all direct children with this tag."""
        return [c for c in self.children if c.tag == tag]

    @property
    def pointer(self) -> Optional[str]:
        """The value when it is an @XREF@ pointer."""
        if self.value and len(self.value) > 2 and self.value.startswith("@") and self.value.endswith("@"):
            return self.value
        return None


@dataclass(frozen=True)
class DateValue:
    """
    A GEDCOM date value reduced to a sortable ISO-like form.

    `normalized` is YYYY, YYYY-MM or YYYY-MM-DD. The modifier is kept apart
    from it so that "about 1980" stays queryable without string parsing.
    """
    original: Optional[str]
    normalized: Optional[str] = None
    valid: bool = False
    partial: bool = False
    modifier: Optional[DateModifier] = None
    error: Optional[str] = None
    range_end: Optional[str] = None

    @property
    def approximate(self) -> bool:
        return self.modifier is not None

    def to_dict(self) -> dict:
        return {
            "normalized": self.normalized,
            "original": self.original,
            "valid": self.valid,
            "partial": self.partial,
            "modifier": self.modifier.value if self.modifier else None,
            "error": self.error,
            "rangeEnd": self.range_end,
        }


@dataclass
class DateError:
    field: str
    original: Optional[str]
    error: str
    line: int = 0


@dataclass
class Individual:
    id: str
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    sex: Optional[str] = None
    birth: Optional[DateValue] = None
    death: Optional[DateValue] = None
    birth_place: Optional[str] = None
    death_place: Optional[str] = None
    child_of_family: Optional[str] = None
    spouse_families: list[str] = field(default_factory=list)
    photo_url: Optional[str] = None
    line: int = 0
    date_errors: list[DateError] = field(default_factory=list)

    @property
    def gedcom_id(self) -> str:
        return self.id

    @property
    def birth_date(self) -> Optional[str]:
        return self.birth.normalized if self.birth else None

    @property
    def death_date(self) -> Optional[str]:
        return self.death.normalized if self.death else None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "sex": self.sex,
            "birthDate": self.birth_date,
            "deathDate": self.death_date,
            "birthPlace": self.birth_place,
            "deathPlace": self.death_place,
            "childOfFamily": self.child_of_family,
            "spouseFamilies": list(self.spouse_families),
            "photoUrl": self.photo_url,
        }


@dataclass
class Family:
    id: str
    husband: Optional[str] = None
    wife: Optional[str] = None
    children: list[str] = field(default_factory=list)
    marriage_date: Optional[str] = None
    line: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "husband": self.husband,
            "wife": self.wife,
            "children": list(self.children),
            "marriageDate": self.marriage_date,
        }


@dataclass
class ParseIssue:
    line: int
    message: str
    severity: str = "warning"
    gedcom_id: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> dict:
        return {"line": self.line, "message": self.message, "severity": self.severity}


@dataclass
class ParsedDocument:
    success: bool
    version: Optional[str] = None
    individuals: list[Individual] = field(default_factory=list)
    families: list[Family] = field(default_factory=list)
    errors: list[ParseIssue] = field(default_factory=list)
    error: Optional[str] = None

    def find_individual(self, gedcom_id: str) -> Optional[Individual]:
        for individual in self.individuals:
            if individual.id == gedcom_id:
                return individual
        return None

    def find_family(self, family_id: str) -> Optional[Family]:
        for family in self.families:
            if family.id == family_id:
                return family
        return None

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "version": self.version,
            "individuals": [i.to_dict() for i in self.individuals],
            "families": [f.to_dict() for f in self.families],
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class Statistics:
    individuals_count: int = 0
    families_count: int = 0
    earliest_date: Optional[str] = None
    latest_date: Optional[str] = None
    version: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "individualsCount": self.individuals_count,
            "familiesCount": self.families_count,
            "earliestDate": self.earliest_date,
            "latestDate": self.latest_date,
            "version": self.version,
        }


@dataclass
class ConsistencyIssue:
    type: str  # 'child-family-mismatch' or 'parent-family-mismatch'
    description: str
    affected_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"type": self.type, "description": self.description, "affectedIds": list(self.affected_ids)}


@dataclass
class DuplicateMatch:
    person_id: object
    name: str
    birth_date: Optional[str]
    confidence: int
    matching_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "personId": str(self.person_id),
            "name": self.name,
            "birthDate": self.birth_date,
            "confidence": self.confidence,
            "matchingFields": list(self.matching_fields),
        }


@dataclass
class DuplicateCandidate:
    """A parsed individual and the existing people that resemble it."""
    gedcom_id: str
    gedcom_name: str
    gedcom_birth_date: Optional[str]
    matches: list[DuplicateMatch] = field(default_factory=list)

    @property
    def best_match(self) -> Optional[DuplicateMatch]:
        return self.matches[0] if self.matches else None

    def to_dict(self) -> dict:
        return {
            "gedcomId": self.gedcom_id,
            "name": self.gedcom_name,
            "birthDate": self.gedcom_birth_date,
            "matches": [m.to_dict() for m in self.matches],
        }


@dataclass
class ParseReport:
    """What parsing an upload found, returned before anything is imported."""
    upload_id: str
    version: Optional[str]
    statistics: Statistics
    errors: list[ParseIssue] = field(default_factory=list)
    duplicates: list[DuplicateCandidate] = field(default_factory=list)
    relationship_issues: list[ConsistencyIssue] = field(default_factory=list)
    # ImportIssue warnings for dangling family pointers and unparseable dates
    warnings: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "uploadId": self.upload_id,
            "version": self.version,
            "statistics": self.statistics.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "duplicates": [d.to_dict() for d in self.duplicates],
            "relationshipIssues": [i.to_dict() for i in self.relationship_issues],
            "warnings": [w.to_dict() for w in self.warnings],
        }
