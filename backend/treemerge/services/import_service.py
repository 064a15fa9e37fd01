"""Transactional import of a parsed GEDCOM document into a user's tree."""

import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from treemerge.core.exceptions import GedcomVersionError, ImportExecutionError
from treemerge.schemas.gedcom import Family, Individual, ParseReport
from treemerge.schemas.tree import ImportResult, PersonData, ResolutionDecision
from treemerge.services.consistency import (
    collect_parsing_errors,
    validate_orphaned_references,
    validate_relationship_consistency,
)
from treemerge.services.duplicates import DuplicateService
from treemerge.services.error_report import ErrorCode, classify_store_error
from treemerge.services.gedcom_parser import extract_statistics, parse_gedcom
from treemerge.services.importer import (
    apply_duplicate_resolutions,
    build_relationships_from_families,
    map_individual_to_person,
)
from treemerge.services.merge_preview import MERGEABLE_FIELDS, merge_notes, select_best_value
from treemerge.services.person_service import PersonService
from treemerge.services.preview_store import PreviewStore
from treemerge.services.relationship_service import RelationshipService

logger = logging.getLogger(__name__)


def merge_import_fields(incoming: PersonData, person) -> dict:
    """Field values for an existing person merged with an imported individual."""
    values = incoming.model_dump()
    if values.get("gender") == "unspecified":
        # a GEDCOM without SEX says nothing about the stored gender
        values["gender"] = None

    fields = {name: select_best_value(values.get(name), getattr(person, name)) for name in MERGEABLE_FIELDS}
    fields["notes"] = merge_notes(values.get("notes"), person.notes)
    return fields


class ImportService:
    """
    Writes an import in one transaction.

    Merge targets are updated, new individuals inserted, and the family
    relationships added. If anything fails nothing is written and an
    ImportExecutionError is raised.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.persons = PersonService(session)
        self.relationships = RelationshipService(session)

    async def import_document(
        self,
        individuals: Iterable[Individual],
        families: Iterable[Family],
        decisions: Iterable[ResolutionDecision],
        user_id: UUID,
    ) -> ImportResult:
        try:
            result = await self._import(list(individuals), list(families), list(decisions), user_id)
            await self.session.commit()
        except ImportExecutionError:
            await self.session.rollback()
            logger.exception("Import for user %s rejected; rolled back", user_id)
            raise
        except Exception as e:
            await self.session.rollback()
            logger.exception("Import for user %s failed; rolled back", user_id)
            code, message = classify_store_error(e)
            raise ImportExecutionError(message, code=code.value, details=str(e)) from e

        logger.info(
            "Imported for user %s: %d inserted, %d updated, %d relationships",
            user_id, result.persons_inserted, result.persons_updated, result.relationships_inserted,
        )
        return result

    async def _import(self, individuals, families, decisions, user_id: UUID) -> ImportResult:
        outcome = apply_duplicate_resolutions(individuals, decisions)
        result = ImportResult()

        existing = await self.persons.get_many(outcome.gedcom_id_to_person_id.values())
        for gedcom_id, person_id in outcome.gedcom_id_to_person_id.items():
            person = existing.get(person_id)
            if person is None or person.user_id != user_id:
                raise ImportExecutionError(
                    f"Existing person {person_id} for {gedcom_id} not found",
                    code=ErrorCode.VALIDATION_ERROR.value,
                    can_retry=False,
                )

        for target in outcome.individuals_to_merge:
            person = existing[target.existing_person_id]
            incoming = map_individual_to_person(target.individual, user_id)
            await self.persons.update(person, merge_import_fields(incoming, person))
            result.persons_updated += 1

        id_map = dict(outcome.gedcom_id_to_person_id)
        for individual in outcome.individuals_to_import:
            person = await self.persons.create(map_individual_to_person(individual, user_id))
            id_map[individual.id] = person.id
            result.persons_inserted += 1

        relationships = build_relationships_from_families(families, id_map, user_id)
        stored = await self.relationships.existing_keys(id_map.values())
        for data in relationships:
            if data.key in stored:
                continue
            await self.relationships.create(data)
            result.relationships_inserted += 1

        result.gedcom_id_to_person_id = id_map
        return result

    async def parse_upload(self, upload_id: str, content, user_id: UUID, store: PreviewStore) -> ParseReport:
        """
        Parse an upload, check it against the user's people and keep it as a preview.

        Raises GedcomVersionError when the document has no supported version;
        nothing is stored in that case. Everything else found along the way
        is reported, not raised.
        """
        parsed = parse_gedcom(content)
        if not parsed.success:
            raise GedcomVersionError(parsed.error)

        statistics = extract_statistics(parsed)
        duplicates = await DuplicateService(self.session).find_for_user(user_id, parsed.individuals)
        relationship_issues = validate_relationship_consistency(parsed)
        orphans = validate_orphaned_references(parsed)
        warnings = orphans.warnings + collect_parsing_errors(parsed.individuals)

        store.store_preview(upload_id, user_id, parsed, duplicates, relationship_issues)
        logger.info(
            "Parsed upload %s for user %s: %d individuals, %d duplicate candidates, %d relationship issues",
            upload_id, user_id, statistics.individuals_count, len(duplicates), len(relationship_issues),
        )

        return ParseReport(
            upload_id=upload_id,
            version=parsed.version,
            statistics=statistics,
            errors=parsed.errors,
            duplicates=duplicates,
            relationship_issues=relationship_issues,
            warnings=warnings,
        )

    async def import_preview(self, upload_id: str, user_id: UUID, store: PreviewStore) -> ImportResult:
        """Import a stored preview with its saved decisions, then discard the preview."""
        preview = store.get_preview(upload_id, user_id)
        result = await self.import_document(
            preview.document.individuals,
            preview.document.families,
            preview.resolution_decisions,
            user_id,
        )
        store.clear(upload_id, user_id)
        return result
