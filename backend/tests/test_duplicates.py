"""Tests for duplicate detection."""

import uuid

import pytest

from treemerge.models import Person
from treemerge.schemas.gedcom import Individual
from treemerge.services.dates import normalize_date
from treemerge.services.duplicates import (
    DuplicateScoring,
    DuplicateService,
    compare_dates,
    compare_names,
    find_duplicates,
)

USER_ID = uuid.uuid4()
OTHER_USER_ID = uuid.uuid4()


def individual(gedcom_id, name, birth=None):
    return Individual(id=gedcom_id, name=name, birth=normalize_date(birth) if birth else None)


def person(first_name, last_name, birth_date=None, user_id=USER_ID):
    return Person(id=uuid.uuid4(), first_name=first_name, last_name=last_name, birth_date=birth_date, user_id=user_id)


@pytest.mark.parametrize("a,b,expected", [
    ("John Smith", "John Smith", 100),
    ("John Smith", "  john   SMITH ", 100),
    ("John Smith", "Jon Smith", 90),
    ("John Smith", "", 0),
    (None, "John Smith", 0),
])
def test_compare_names(a, b, expected):
    assert compare_names(a, b) == expected


@pytest.mark.parametrize("a,b,expected", [
    ("1950-01-15", "1950-01-15", 100),
    ("1950-01-15", "1951-01-15", 0),
    ("1950", "1950-01-15", 100),
    ("1950-01-15", "1950", 100),
    ("1950-01", "1950-01-15", 100),
    ("1950-01-15", "1950-01-20", 75),
    ("1950-01-15", "1950-06-15", 50),
    ("1950-01", "1950-06", 50),
    (None, "1950", 0),
    ("1950", None, 0),
])
def test_compare_dates(a, b, expected):
    assert compare_dates(a, b) == expected


def test_identical_name_and_birth_date_scores_100():
    existing = person("John", "Smith", "1950-01-15")
    candidates = find_duplicates([individual("@I1@", "John Smith", "15 JAN 1950")], [existing], USER_ID)

    assert len(candidates) == 1
    match = candidates[0].best_match
    assert match.person_id == existing.id
    assert match.confidence == 100
    assert match.matching_fields == ["name", "birthDate"]
    assert candidates[0].gedcom_birth_date == "1950-01-15"


def test_no_existing_people():
    assert find_duplicates([individual("@I1@", "John Smith")], [], USER_ID) == []


def test_other_users_people_are_ignored():
    existing = person("John", "Smith", "1950-01-15", user_id=OTHER_USER_ID)
    assert find_duplicates([individual("@I1@", "John Smith", "1950-01-15")], [existing], USER_ID) == []


def test_name_alone_is_below_threshold():
    existing = person("John", "Smith")
    assert find_duplicates([individual("@I1@", "John Smith")], [existing], USER_ID) == []


def test_custom_threshold():
    existing = person("John", "Smith")
    scoring = DuplicateScoring(threshold=50)
    candidates = find_duplicates([individual("@I1@", "John Smith")], [existing], USER_ID, scoring)
    assert candidates[0].best_match.confidence == 60
    assert candidates[0].best_match.matching_fields == ["name"]


def test_matches_sorted_by_confidence():
    close = person("Jon", "Smith", "1950-01-15")
    exact = person("John", "Smith", "1950-01-15")
    candidates = find_duplicates(
        [individual("@I1@", "John Smith", "1950-01-15")], [close, exact], USER_ID
    )
    assert [m.person_id for m in candidates[0].matches] == [exact.id, close.id]
    assert [m.confidence for m in candidates[0].matches] == [100, 94]


def test_unrelated_people_are_not_matched():
    existing = person("Robert", "Brown", "1930-05-01")
    assert find_duplicates([individual("@I1@", "John Smith", "1950-01-15")], [existing], USER_ID) == []


async def test_duplicate_service_queries_the_users_people(session, add_user, add_person):
    owner = await add_user("owner@example.com")
    stranger = await add_user("stranger@example.com")
    mine = await add_person(owner, "John", "Smith", birth_date="1950-01-15")
    await add_person(stranger, "John", "Smith", birth_date="1950-01-15")
    await session.commit()

    candidates = await DuplicateService(session).find_for_user(
        owner.id, [individual("@I1@", "John Smith", "1950-01-15")]
    )

    assert len(candidates) == 1
    assert [m.person_id for m in candidates[0].matches] == [mine.id]
