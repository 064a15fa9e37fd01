"""Relationship store access used by the import and merge executors."""

from uuid import UUID
from typing import Iterable

from sqlalchemy import select, or_, and_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from treemerge.models import Relationship
from treemerge.models.relationship import PARENT_OF
from treemerge.schemas.tree import RelationshipData


class RelationshipService:
    """Service for relationship-related operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def for_person(self, person_id: UUID) -> list[Relationship]:
        """All relationships in which the person appears on either side."""
        stmt = select(Relationship).where(
            or_(
                Relationship.person1_id == person_id,
                Relationship.person2_id == person_id
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def existing_keys(self, person_ids: Iterable[UUID]) -> set[tuple]:
        """Keys of stored relationships between any of the given persons."""
        ids = list(set(person_ids))
        if not ids:
            return set()

        stmt = select(Relationship).where(
            and_(Relationship.person1_id.in_(ids), Relationship.person2_id.in_(ids))
        )
        result = await self.session.execute(stmt)
        return {rel.key for rel in result.scalars().all()}

    async def create(self, data: RelationshipData) -> Relationship:
        relationship = Relationship(
            person1_id=data.person1_id,
            person2_id=data.person2_id,
            type=data.type,
            parent_role=data.parent_role,
            user_id=data.user_id
        )
        self.session.add(relationship)
        await self.session.flush()
        return relationship

    async def delete_parent(self, child_id: UUID, parent_role: str) -> int:
        """Remove the child's parentOf rows for one role; returns the row count."""
        stmt = (
            delete(Relationship)
            .where(
                and_(
                    Relationship.person2_id == child_id,
                    Relationship.type == PARENT_OF,
                    Relationship.parent_role == parent_role
                )
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount
