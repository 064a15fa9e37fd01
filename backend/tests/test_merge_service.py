"""End-to-end merge tests against SQLite."""

import uuid

import pytest
from sqlalchemy import func, or_, select

from treemerge.core.exceptions import MergeError
from treemerge.models import Person, Relationship, User
from treemerge.services.merge_service import MergeService
from treemerge.services.relationship_service import RelationshipService


async def relationship_keys(session_factory, person_id):
    async with session_factory() as session:
        result = await session.execute(
            select(Relationship).where(
                or_(Relationship.person1_id == person_id, Relationship.person2_id == person_id)
            )
        )
        return {rel.key for rel in result.scalars().all()}


async def count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


@pytest.fixture
async def family(session, add_user, add_person, add_relationship):
    """
    source and target are the same man recorded twice. They share a father,
    have different mothers, and only the source has a wife and a child.
    """
    user = await add_user()
    people = {
        "source": await add_person(user, "John", "Smith", gender="male", birth_date="1950", notes="From GEDCOM"),
        "target": await add_person(
            user, "John", "Smith", gender="male", birth_date="1950-03-15", photo_url="https://photos.example.com/john.jpg"
        ),
        "mother_a": await add_person(user, "Ann", "Smith", gender="female"),
        "mother_b": await add_person(user, "Beth", "Smith", gender="female"),
        "father": await add_person(user, "Carl", "Smith", gender="male"),
        "wife": await add_person(user, "Wendy", "Smith", gender="female"),
        "child": await add_person(user, "Cal", "Smith"),
    }
    await add_relationship(people["mother_a"], people["source"], "parentOf", "mother")
    await add_relationship(people["father"], people["source"], "parentOf", "father")
    await add_relationship(people["source"], people["wife"], "spouse")
    await add_relationship(people["source"], people["child"], "parentOf", "father")
    await add_relationship(people["mother_b"], people["target"], "parentOf", "mother")
    await add_relationship(people["father"], people["target"], "parentOf", "father")
    await session.commit()

    ids = {name: p.id for name, p in people.items()}
    ids["user"] = user.id
    return ids


async def test_merge(session, session_factory, family):
    result = await MergeService(session).execute_merge(family["source"], family["target"], family["user"])

    assert result.success
    assert result.relationships_transferred == 4
    assert result.relationships_removed == 1
    assert result.merged_data["birth_date"] == "1950-03-15"
    assert result.merged_data["photo_url"] == "https://photos.example.com/john.jpg"

    target_id = family["target"]
    assert await relationship_keys(session_factory, target_id) == {
        (family["mother_a"], target_id, "parentOf", "mother"),
        (family["father"], target_id, "parentOf", "father"),
        (target_id, family["wife"], "spouse", ""),
        (family["wife"], target_id, "spouse", ""),
        (target_id, family["child"], "parentOf", "father"),
    }
    assert await relationship_keys(session_factory, family["source"]) == set()
    assert await count(session_factory, Relationship) == 5

    async with session_factory() as check:
        assert await check.get(Person, family["source"]) is None
        target = await check.get(Person, target_id)
        assert target.birth_date == "1950-03-15"
        assert target.notes == "From GEDCOM"
        assert target.photo_url == "https://photos.example.com/john.jpg"
        assert await check.get(Person, family["mother_b"]) is not None


async def test_failed_transfer_rolls_back_everything(session, session_factory, family, monkeypatch):
    transferred = []
    original = RelationshipService.create

    async def fail_on_second(self, data):
        if transferred:
            raise RuntimeError("connection lost")
        transferred.append(data)
        await original(self, data)

    monkeypatch.setattr(RelationshipService, "create", fail_on_second)
    rows_before = await count(session_factory, Relationship)

    with pytest.raises(RuntimeError, match="connection lost"):
        await MergeService(session).execute_merge(family["source"], family["target"], family["user"])

    assert len(transferred) == 1
    assert await count(session_factory, Relationship) == rows_before
    async with session_factory() as check:
        assert await check.get(Person, family["source"]) is not None
        target = await check.get(Person, family["target"])
        assert target.notes is None
    assert (family["mother_b"], family["target"], "parentOf", "mother") in await relationship_keys(
        session_factory, family["target"]
    )


async def test_missing_people(session, family):
    service = MergeService(session)
    with pytest.raises(MergeError, match="Source person not found"):
        await service.execute_merge(uuid.uuid4(), family["target"], family["user"])
    with pytest.raises(MergeError, match="Target person not found"):
        await service.execute_merge(family["source"], uuid.uuid4(), family["user"])


async def test_source_owned_by_someone_else(session, family):
    with pytest.raises(MergeError, match="Source person does not belong to current user"):
        await MergeService(session).execute_merge(family["source"], family["target"], uuid.uuid4())


async def test_profile_person_is_protected(session, session_factory, family):
    user = await session.get(User, family["user"])
    user.default_person_id = family["target"]
    await session.commit()

    with pytest.raises(MergeError, match="Cannot merge into your profile person"):
        await MergeService(session).execute_merge(family["source"], family["target"], family["user"])

    async with session_factory() as check:
        assert await check.get(Person, family["source"]) is not None


async def test_preview(session, family):
    preview = await MergeService(session).preview(family["source"], family["target"], family["user"])

    assert preview.can_merge
    assert preview.validation.conflict_fields == ["mother"]
    assert len(preview.relationships_to_transfer) == 4
    assert len(preview.existing_relationships) == 2
