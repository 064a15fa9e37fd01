"""
GEDCOM 5.5.1 / 7.0 parser.

Parsing runs in two passes:

    text -> lines -> record tree (depth stack over an arena of nodes)
    record tree -> Individual / Family entities

Malformed field content never aborts the parse; it is reported as a
line-scoped warning on the ParsedDocument. A missing or unsupported
version is the only fatal condition.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from treemerge.core.config import settings
from treemerge.core.exceptions import GedcomVersionError
from treemerge.schemas.gedcom import (
    DateError,
    Family,
    Individual,
    ParsedDocument,
    ParseIssue,
    RawRecord,
    Statistics,
)
from treemerge.services.dates import normalize_date

logger = logging.getLogger(__name__)

LINE_RE = re.compile(r"^(\d+)\s+(?:(@[^@\s]+@)\s+)?([A-Za-z0-9_]+)(?:\s(.*))?$")
NAME_RE = re.compile(r"^([^/]*)/([^/]*)/?(.*)$")
CONTINUATION_TAGS = {"CONT", "CONC"}


@dataclass
class VersionCheck:
    valid: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"valid": self.valid}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class _Line:
    line: int
    level: int
    xref: Optional[str]
    tag: str
    value: Optional[str]


@dataclass
class _Node:
    """Mutable arena entry; frozen into a RawRecord once the tree is complete."""
    line: _Line
    parent: Optional[int] = None
    children: list[int] = field(default_factory=list)
    value: Optional[str] = None


# --------------------------------------------------------------------------
# Pass 1: lines -> record tree
# --------------------------------------------------------------------------

def tokenize(content: str, errors: Optional[list] = None) -> list[_Line]:
    """Split GEDCOM text into lines; unparseable lines are reported and dropped."""
    if errors is None:
        errors = []

    lines = []
    for lineno, raw in enumerate(content.splitlines(), start=1):
        text = raw.strip()
        if lineno == 1:
            text = text.lstrip("\ufeff")
        if not text:
            continue

        match = LINE_RE.match(text)
        if not match:
            errors.append(ParseIssue(line=lineno, message=f"Unrecognized line: {text}"))
            continue

        level, xref, tag, value = match.groups()
        lines.append(_Line(
            line=lineno,
            level=int(level),
            xref=xref,
            tag=tag.upper(),
            value=value if value else None,
        ))
    return lines


def build_records(lines: Iterable[_Line], errors: Optional[list] = None) -> list[RawRecord]:
    """
    Build the record tree from a flat line list.

    A line whose level jumps more than one deeper than the open parent is
    attached to that parent and reported. CONT/CONC lines are folded into
    their parent's value.
    """
    if errors is None:
        errors = []

    arena: list[_Node] = []
    roots: list[int] = []
    stack: list[tuple[int, int]] = []  # (declared level, arena index) of open records

    for ln in lines:
        if ln.level == 0:
            arena.append(_Node(line=ln, value=ln.value))
            roots.append(len(arena) - 1)
            stack = [(0, len(arena) - 1)]
            continue

        while stack and stack[-1][0] >= ln.level:
            stack.pop()

        if not stack:
            errors.append(ParseIssue(
                line=ln.line,
                message=f"{ln.tag} at level {ln.level} has no enclosing record",
            ))
            continue

        parent_level, parent = stack[-1]
        if ln.level > parent_level + 1:
            errors.append(ParseIssue(
                line=ln.line,
                message=f"Level jumps from {parent_level} to {ln.level}; attached to the enclosing {arena[parent].line.tag}",
            ))

        if ln.tag in CONTINUATION_TAGS:
            joiner = "\n" if ln.tag == "CONT" else ""
            arena[parent].value = (arena[parent].value or "") + joiner + (ln.value or "")
            continue

        arena.append(_Node(line=ln, parent=parent, value=ln.value))
        index = len(arena) - 1
        arena[parent].children.append(index)
        stack.append((ln.level, index))

    def freeze(index: int, level: int) -> RawRecord:
        node = arena[index]
        return RawRecord(
            level=level,
            tag=node.line.tag,
            value=node.value,
            xref=node.line.xref,
            line=node.line.line,
            children=tuple(freeze(child, level + 1) for child in node.children),
        )

    return [freeze(index, 0) for index in roots]


# --------------------------------------------------------------------------
# Version detection
# --------------------------------------------------------------------------

def detect_version(records: Iterable[RawRecord]) -> Optional[str]:
    """Return the HEAD.GEDC.VERS value, or None."""
    for record in records:
        if record.tag != "HEAD":
            continue
        gedc = record.first("GEDC")
        if gedc is None:
            continue
        vers = gedc.first("VERS")
        if vers is not None and vers.value:
            return vers.value.strip()
    return None


def detect_gedcom_version(content: str) -> Optional[str]:
    """Detect the declared GEDCOM version from raw file content."""
    return detect_version(build_records(tokenize(content)))


def validate_gedcom_version(version: Optional[str], supported: Optional[list[str]] = None) -> VersionCheck:
    supported = supported or settings.supported_gedcom_versions

    if not version:
        return VersionCheck(valid=False, error="GEDCOM version not found in file")

    if version not in supported:
        return VersionCheck(
            valid=False,
            error=f"GEDCOM version {version} is not supported. Please use version {' or '.join(supported)}",
        )

    return VersionCheck(valid=True)


def ensure_supported_version(version: Optional[str], supported: Optional[list[str]] = None) -> str:
    """Return the version, or raise GedcomVersionError with the validator message."""
    check = validate_gedcom_version(version, supported)
    if not check.valid:
        raise GedcomVersionError(check.error)
    return version


# --------------------------------------------------------------------------
# Pass 2: record tree -> entities
# --------------------------------------------------------------------------

def _split_name(name_record: RawRecord) -> tuple[Optional[str], Optional[str], Optional[str]]:
    """Return (display name, first name, last name) for a NAME record."""
    value = (name_record.value or "").strip()
    first_name = last_name = None

    match = NAME_RE.match(value)
    if match:
        first_name = match.group(1).strip() or None
        last_name = match.group(2).strip() or None
    elif value:
        first_name = value

    givn = name_record.first("GIVN")
    surn = name_record.first("SURN")
    if givn is not None and givn.value:
        first_name = givn.value.strip()
    if surn is not None and surn.value:
        last_name = surn.value.strip()

    display = " ".join(value.replace("/", " ").split())
    if not display:
        display = " ".join(p for p in (first_name, last_name) if p)

    return display or None, first_name, last_name


def _media_index(records: Iterable[RawRecord]) -> dict[str, str]:
    """Map level-0 OBJE xrefs to their FILE reference."""
    index = {}
    for record in records:
        if record.tag == "OBJE" and record.xref:
            file_record = record.first("FILE")
            if file_record is not None and file_record.value:
                index[record.xref] = file_record.value.strip()
    return index


def _extract_photo(record: RawRecord, media: dict[str, str]) -> Optional[str]:
    for obje in record.all("OBJE"):
        if obje.pointer:
            if obje.pointer in media:
                return media[obje.pointer]
            continue
        file_record = obje.first("FILE")
        if file_record is not None and file_record.value:
            return file_record.value.strip()
    return None


def _extract_event(individual: Individual, record: RawRecord, tag: str, field_name: str, errors: list):
    """Read DATE and PLAC of a BIRT/DEAT event; returns (DateValue, place)."""
    event = record.first(tag)
    if event is None:
        return None, None

    date_value = None
    date_record = event.first("DATE")
    if date_record is not None:
        date_value = normalize_date(date_record.value)
        if not date_value.valid:
            individual.date_errors.append(DateError(
                field=field_name,
                original=date_record.value,
                error=date_value.error or "Invalid date format",
                line=date_record.line,
            ))
            errors.append(ParseIssue(
                line=date_record.line,
                message=f"Invalid date format in {tag} tag: {date_record.value}",
                gedcom_id=individual.id,
                field=field_name,
            ))

    place_record = event.first("PLAC")
    place = place_record.value.strip() if place_record is not None and place_record.value else None
    return date_value, place


def _extract_individual(record: RawRecord, media: dict[str, str], errors: list) -> Individual:
    individual = Individual(id=record.xref, line=record.line)

    name_record = record.first("NAME")
    if name_record is not None:
        individual.name, individual.first_name, individual.last_name = _split_name(name_record)

    sex_record = record.first("SEX")
    if sex_record is not None and sex_record.value:
        individual.sex = sex_record.value.strip()

    individual.birth, individual.birth_place = _extract_event(individual, record, "BIRT", "birthDate", errors)
    individual.death, individual.death_place = _extract_event(individual, record, "DEAT", "deathDate", errors)

    famc = [r.pointer for r in record.all("FAMC") if r.pointer]
    if famc:
        individual.child_of_family = famc[0]
        if len(famc) > 1:
            errors.append(ParseIssue(
                line=record.line,
                message=f"Individual {individual.id} is a child in {len(famc)} families; only {famc[0]} is used",
                gedcom_id=individual.id,
                field="childOfFamily",
            ))

    individual.spouse_families = [r.pointer for r in record.all("FAMS") if r.pointer]
    individual.photo_url = _extract_photo(record, media)
    return individual


def _extract_family(record: RawRecord, errors: list) -> Family:
    family = Family(id=record.xref, line=record.line)

    husband = record.first("HUSB")
    if husband is not None:
        family.husband = husband.pointer

    wife = record.first("WIFE")
    if wife is not None:
        family.wife = wife.pointer

    family.children = [r.pointer for r in record.all("CHIL") if r.pointer]

    marriage = record.first("MARR")
    if marriage is not None:
        date_record = marriage.first("DATE")
        if date_record is not None:
            date_value = normalize_date(date_record.value)
            if date_value.valid:
                family.marriage_date = date_value.normalized
            else:
                errors.append(ParseIssue(
                    line=date_record.line,
                    message=f"Invalid date format in MARR tag: {date_record.value}",
                    gedcom_id=family.id,
                    field="marriageDate",
                ))

    return family


def parse_gedcom(content, supported_versions: Optional[list[str]] = None) -> ParsedDocument:
    """
    Parse GEDCOM text into a ParsedDocument.

    Field-level problems are collected as warnings. An unsupported or
    missing version returns success=False with no individuals or families.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig", errors="replace")

    errors: list[ParseIssue] = []
    records = build_records(tokenize(content or "", errors), errors)

    version = detect_version(records)
    try:
        ensure_supported_version(version, supported_versions)
    except GedcomVersionError as e:
        logger.info("Rejected GEDCOM document: %s", e)
        return ParsedDocument(success=False, version=version, error=str(e))

    media = _media_index(records)
    individuals: list[Individual] = []
    families: list[Family] = []
    seen_individuals: set[str] = set()

    for record in records:
        if record.tag == "INDI":
            if not record.xref:
                errors.append(ParseIssue(line=record.line, message="INDI record without a cross-reference id was skipped"))
                continue
            if record.xref in seen_individuals:
                errors.append(ParseIssue(
                    line=record.line,
                    message=f"Duplicate individual {record.xref}; the first record is kept",
                    gedcom_id=record.xref,
                ))
                continue
            seen_individuals.add(record.xref)
            individuals.append(_extract_individual(record, media, errors))
        elif record.tag == "FAM":
            if not record.xref:
                errors.append(ParseIssue(line=record.line, message="FAM record without a cross-reference id was skipped"))
                continue
            families.append(_extract_family(record, errors))

    logger.debug(
        "Parsed GEDCOM %s: %d individuals, %d families, %d warnings",
        version, len(individuals), len(families), len(errors),
    )

    return ParsedDocument(
        success=True,
        version=version,
        individuals=individuals,
        families=families,
        errors=errors,
    )


def extract_statistics(parsed: ParsedDocument) -> Statistics:
    """Counts and the earliest/latest normalized birth or death date."""
    stats = Statistics(
        individuals_count=len(parsed.individuals),
        families_count=len(parsed.families),
        version=parsed.version,
    )

    dates = sorted(
        d for individual in parsed.individuals
        for d in (individual.birth_date, individual.death_date)
        if d
    )
    if dates:
        stats.earliest_date = dates[0]
        stats.latest_date = dates[-1]

    return stats
