"""Cross-reference checks between individuals and families of a parsed document."""

import logging
from dataclasses import dataclass, field, replace

from treemerge.schemas.gedcom import ConsistencyIssue, Family, Individual, ParsedDocument
from treemerge.services.error_report import ImportIssue, create_validation_warning

logger = logging.getLogger(__name__)

CHILD_FAMILY_MISMATCH = "child-family-mismatch"
PARENT_FAMILY_MISMATCH = "parent-family-mismatch"

DATE_FIX = "Use format YYYY-MM-DD or standard GEDCOM date format (DD MMM YYYY)"


@dataclass
class OrphanReport:
    has_orphans: bool = False
    warnings: list[ImportIssue] = field(default_factory=list)
    cleaned_families: list[Family] = field(default_factory=list)


def validate_relationship_consistency(parsed: ParsedDocument) -> list[ConsistencyIssue]:
    """
    Check that FAMC/FAMS pointers agree with the families they name.

    Advisory only: the result is surfaced to the caller and never blocks import.
    References to families missing from the document are left to
    validate_orphaned_references.
    """
    issues = []
    families = {f.id: f for f in parsed.families}

    for individual in parsed.individuals:
        if not individual.child_of_family:
            continue
        family = families.get(individual.child_of_family)
        if family is not None and individual.id not in family.children:
            issues.append(ConsistencyIssue(
                type=CHILD_FAMILY_MISMATCH,
                description=(
                    f"Individual {individual.id} ({individual.display_name}) references family "
                    f"{individual.child_of_family} but is not listed as a child"
                ),
                affected_ids=[individual.id, individual.child_of_family],
            ))

    for individual in parsed.individuals:
        for family_id in individual.spouse_families:
            family = families.get(family_id)
            if family is None:
                continue
            if individual.id not in (family.husband, family.wife):
                issues.append(ConsistencyIssue(
                    type=PARENT_FAMILY_MISMATCH,
                    description=(
                        f"Individual {individual.id} ({individual.display_name}) references family "
                        f"{family_id} as spouse but is not listed as husband or wife"
                    ),
                    affected_ids=[individual.id, family_id],
                ))

    if issues:
        logger.info("Found %d cross-reference mismatches", len(issues))
    return issues


def validate_orphaned_references(parsed: ParsedDocument) -> OrphanReport:
    """Warn about family pointers to individuals that are not in the document and drop them."""
    report = OrphanReport()
    known = {i.id for i in parsed.individuals}

    for family in parsed.families:
        cleaned = replace(family, children=list(family.children))

        for role in ("husband", "wife"):
            pointer = getattr(family, role)
            if pointer and pointer not in known:
                report.has_orphans = True
                report.warnings.append(create_validation_warning(
                    f"Orphaned {role} reference: Individual {pointer} not found",
                    line=family.line or None,
                    gedcom_id=family.id,
                    field=role,
                    suggested_fix=f"Remove invalid {role} reference or add missing individual",
                ))
                setattr(cleaned, role, None)

        orphaned = [c for c in family.children if c not in known]
        if orphaned:
            report.has_orphans = True
            report.warnings.append(create_validation_warning(
                f"Orphaned child reference(s): {', '.join(orphaned)} not found in family {family.id}",
                line=family.line or None,
                gedcom_id=family.id,
                field="children",
                suggested_fix="Remove invalid child references or add missing individuals",
            ))
            cleaned.children = [c for c in family.children if c in known]

        report.cleaned_families.append(cleaned)

    return report


def collect_parsing_errors(individuals: list[Individual]) -> list[ImportIssue]:
    """Turn per-individual date errors into structured warnings for the error log."""
    warnings = []
    for individual in individuals:
        for date_error in individual.date_errors:
            name = " ".join(p for p in (individual.first_name, individual.last_name) if p) or None
            warnings.append(create_validation_warning(
                f'Could not parse date "{date_error.original}" - {date_error.error}',
                line=date_error.line or None,
                gedcom_id=individual.id,
                individual_name=name,
                field=date_error.field,
                suggested_fix=DATE_FIX,
            ))
    return warnings
