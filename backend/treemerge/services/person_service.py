"""Person store access used by the import and merge executors."""

from uuid import UUID
from typing import Any, Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from treemerge.models import Person, User
from treemerge.schemas.tree import PersonData


class PersonService:
    """
    Service for person-related operations.

    Methods flush but never commit; the calling executor owns the transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, person_id: UUID) -> Optional[Person]:
        return await self.session.get(Person, person_id)

    async def get_many(self, person_ids: Iterable[UUID]) -> dict[UUID, Person]:
        """Load several persons at once, keyed by id."""
        ids = list(set(person_ids))
        if not ids:
            return {}

        stmt = select(Person).where(Person.id.in_(ids))
        result = await self.session.execute(stmt)
        return {person.id: person for person in result.scalars().all()}

    async def list_for_user(self, user_id: UUID, limit: Optional[int] = None, offset: int = 0) -> tuple[list[Person], int]:
        """List a user's persons with pagination."""
        count_stmt = select(func.count(Person.id)).where(Person.user_id == user_id)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar()

        stmt = (
            select(Person)
            .where(Person.user_id == user_id)
            .order_by(Person.last_name, Person.first_name)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_user(self, user_id: UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def create(self, data: PersonData) -> Person:
        """Add a new person and flush so its id is available."""
        person = Person(**data.model_dump())
        self.session.add(person)
        await self.session.flush()
        return person

    async def update(self, person: Person, fields: dict[str, Any]) -> Person:
        """Set the given fields on a loaded person."""
        for name, value in fields.items():
            setattr(person, name, value)
        await self.session.flush()
        return person

    async def delete(self, person: Person) -> None:
        """Delete a person; the database cascade removes its relationships."""
        await self.session.delete(person)
        await self.session.flush()
