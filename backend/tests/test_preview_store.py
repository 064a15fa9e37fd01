"""Tests for the ephemeral preview store."""

import uuid

import pytest

from treemerge.core.exceptions import InvalidResolutionError, PreviewNotFoundError
from treemerge.schemas.gedcom import DuplicateCandidate, DuplicateMatch
from treemerge.services.preview_store import PreviewStore

USER_ID = uuid.uuid4()


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def duplicates():
    return [DuplicateCandidate(
        gedcom_id="@I1@",
        gedcom_name="John Smith",
        gedcom_birth_date="1950-01-15",
        matches=[DuplicateMatch(person_id=uuid.uuid4(), name="John Smith", birth_date="1950", confidence=100,
                                matching_fields=["name", "birthDate"])],
    )]


@pytest.fixture
def store(parsed, duplicates, clock):
    store = PreviewStore(ttl_seconds=60, clock=clock)
    store.store_preview("upload-1", USER_ID, parsed, duplicates)
    return store


def test_summary(store):
    summary = store.get_summary("upload-1", USER_ID)
    assert summary.to_dict() == {
        "totalIndividuals": 3,
        "newCount": 2,
        "duplicateCount": 1,
        "existingCount": 0,
    }


def test_previews_are_per_user(store):
    with pytest.raises(PreviewNotFoundError):
        store.get_preview("upload-1", uuid.uuid4())
    with pytest.raises(KeyError):
        store.get_preview("upload-2", USER_ID)


def test_previews_expire(store, clock):
    clock.now += 59
    assert store.get_preview("upload-1", USER_ID)
    clock.now += 1
    with pytest.raises(PreviewNotFoundError):
        store.get_preview("upload-1", USER_ID)


def test_purge_expired(store, parsed, clock):
    clock.now += 30
    store.store_preview("upload-2", USER_ID, parsed, [])
    clock.now += 30

    assert store.purge_expired() == 1
    assert store.get_preview("upload-2", USER_ID)


def test_list_individuals_sorted_and_paged(store):
    page = store.list_individuals("upload-1", USER_ID, page=1, limit=2)
    assert [i.name for i in page.individuals] == ["Alice Smith", "John Smith"]
    assert page.total == 3
    assert page.total_pages == 2

    second = store.list_individuals("upload-1", USER_ID, page=2, limit=2)
    assert [i.name for i in second.individuals] == ["Mary Jones"]


def test_page_below_one_is_the_first_page(store):
    page = store.list_individuals("upload-1", USER_ID, page=0, limit=2)
    assert page.page == 1
    assert [i.name for i in page.individuals] == ["Alice Smith", "John Smith"]

    assert store.list_individuals("upload-1", USER_ID, page=-3, limit=0).limit == 1


def test_list_individuals_by_birth_date_descending(store):
    page = store.list_individuals("upload-1", USER_ID, sort_by="birthDate", sort_order="desc")
    assert [i.gedcom_id for i in page.individuals] == ["@I3@", "@I2@", "@I1@"]


def test_search(store):
    page = store.list_individuals("upload-1", USER_ID, search="smith")
    assert {i.gedcom_id for i in page.individuals} == {"@I1@", "@I3@"}


def test_duplicate_status(store, duplicates):
    page = store.list_individuals("upload-1", USER_ID, search="john")
    data = page.to_dict()["individuals"][0]
    assert data["status"] == "duplicate"
    assert data["duplicateMatch"]["existingPersonId"] == str(duplicates[0].matches[0].person_id)
    assert data["duplicateMatch"]["confidence"] == 100


def test_get_person(store):
    alice = store.get_person("upload-1", USER_ID, "@I3@")
    assert alice["person"]["name"] == "Alice Smith"
    assert [(p["gedcomId"], p["relationshipType"]) for p in alice["relationships"]["parents"]] == [
        ("@I1@", "father"),
        ("@I2@", "mother"),
    ]

    john = store.get_person("upload-1", USER_ID, "@I1@")
    assert [s["gedcomId"] for s in john["relationships"]["spouses"]] == ["@I2@"]
    assert [c["gedcomId"] for c in john["relationships"]["children"]] == ["@I3@"]

    assert store.get_person("upload-1", USER_ID, "@I99@") is None


def test_get_tree(store):
    tree = store.get_tree("upload-1", USER_ID)
    assert len(tree["individuals"]) == 3
    assert "duplicateMatch" not in tree["individuals"][0]
    assert [r["type"] for r in tree["relationships"]] == ["spouse", "parentOf", "parentOf"]


def test_save_resolution_decisions(store):
    person_id = uuid.uuid4()
    saved = store.save_resolution_decisions("upload-1", USER_ID, [
        {"gedcomId": "@I1@", "resolution": "skip", "existingPersonId": str(person_id)},
        {"gedcomId": "@I2@", "resolution": "import_as_new"},
    ])

    assert saved == 2
    assert store.get_summary("upload-1", USER_ID).existing_count == 1
    decisions = store.get_resolution_decisions("upload-1", USER_ID)
    assert decisions[0].existing_person_id == person_id


def test_unknown_resolution_is_rejected(store):
    store.save_resolution_decisions("upload-1", USER_ID, [{"gedcomId": "@I1@", "resolution": "skip"}])

    with pytest.raises(InvalidResolutionError, match="Invalid resolution option: replace"):
        store.save_resolution_decisions("upload-1", USER_ID, [
            {"gedcomId": "@I2@", "resolution": "import_as_new"},
            {"gedcomId": "@I1@", "resolution": "replace"},
        ])

    assert [d.resolution for d in store.get_resolution_decisions("upload-1", USER_ID)] == ["skip"]


def test_clear(store):
    store.clear("upload-1", USER_ID)
    store.clear("upload-1", USER_ID)
    with pytest.raises(PreviewNotFoundError):
        store.get_preview("upload-1", USER_ID)
