"""Transactional merge of two existing persons."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from treemerge.core.exceptions import MergeError
from treemerge.models import Person
from treemerge.schemas.merge import MergeExecutionResult, MergePreview
from treemerge.services.merge_preview import generate_merge_preview, plan_merge
from treemerge.services.person_service import PersonService
from treemerge.services.relationship_service import RelationshipService

logger = logging.getLogger(__name__)


class MergeService:
    """
    Folds a source person into a target person.

    The whole merge runs in the session's transaction: the target takes the
    merged field values, conflicting parent rows on the target are replaced
    by the source's, the source's remaining relationships move to the
    target, and the source is deleted. Any failure rolls everything back.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.persons = PersonService(session)
        self.relationships = RelationshipService(session)

    async def _load_pair(self, source_id: UUID, target_id: UUID) -> tuple[Person, Person]:
        source = await self.persons.get_by_id(source_id)
        target = await self.persons.get_by_id(target_id)

        if source is None:
            raise MergeError("Source person not found")
        if target is None:
            raise MergeError("Target person not found")
        return source, target

    async def preview(self, source_id: UUID, target_id: UUID, user_id: UUID) -> MergePreview:
        """Read-only preview of what execute_merge would do."""
        source, target = await self._load_pair(source_id, target_id)
        if source.user_id != user_id or target.user_id != user_id:
            raise MergeError("Person not found")

        user = await self.persons.get_user(user_id)
        source_relationships = await self.relationships.for_person(source_id)
        target_relationships = await self.relationships.for_person(target_id)

        return generate_merge_preview(source, target, user, source_relationships, target_relationships)

    async def execute_merge(self, source_id: UUID, target_id: UUID, user_id: UUID) -> MergeExecutionResult:
        try:
            result = await self._execute(source_id, target_id, user_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            logger.exception("Merge of %s into %s failed; rolled back", source_id, target_id)
            raise

        logger.info(
            "Merged person %s into %s (%d relationships transferred)",
            source_id, target_id, result.relationships_transferred,
        )
        return result

    async def _execute(self, source_id: UUID, target_id: UUID, user_id: UUID) -> MergeExecutionResult:
        source, target = await self._load_pair(source_id, target_id)

        if source.user_id != user_id:
            raise MergeError("Source person does not belong to current user")
        if target.user_id != user_id:
            raise MergeError("Target person does not belong to current user")

        user = await self.persons.get_user(user_id)
        if user is not None and user.default_person_id is not None:
            if user.default_person_id == target_id:
                raise MergeError("Cannot merge into your profile person")
            if user.default_person_id == source_id:
                raise MergeError("Cannot merge your profile person into another person")

        source_relationships = await self.relationships.for_person(source_id)
        target_relationships = await self.relationships.for_person(target_id)

        plan = plan_merge(source, target, source_relationships, target_relationships)

        await self.persons.update(target, plan.merged_fields)

        removed = 0
        for role in plan.parent_roles_to_delete:
            removed += await self.relationships.delete_parent(target_id, role)

        for data in plan.relationships_to_insert:
            await self.relationships.create(data)
        await self.session.flush()

        await self.persons.delete(source)

        return MergeExecutionResult(
            success=True,
            target_id=target_id,
            source_id=source_id,
            relationships_transferred=len(plan.relationships_to_insert),
            relationships_removed=removed,
            merged_data={"id": target_id, **plan.merged_fields, "user_id": target.user_id},
        )
