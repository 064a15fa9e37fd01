"""Tests for resolution handling, field mapping and relationship building."""

import logging
import uuid

import pytest

from treemerge.schemas.gedcom import Family, Individual
from treemerge.schemas.tree import ResolutionDecision
from treemerge.services.dates import normalize_date
from treemerge.services.importer import (
    apply_duplicate_resolutions,
    build_relationships_from_families,
    map_individual_to_person,
    map_sex_to_gender,
    relationship_key,
)

USER_ID = uuid.uuid4()


@pytest.mark.parametrize("sex,gender", [
    ("M", "male"),
    ("f", "female"),
    ("U", "unspecified"),
    (None, "unspecified"),
    ("", "unspecified"),
    ("X", "other"),
])
def test_map_sex_to_gender(sex, gender):
    assert map_sex_to_gender(sex) == gender


def test_map_individual_to_person():
    individual = Individual(
        id="@I2@",
        first_name="Mary",
        last_name="Jones",
        sex="F",
        birth=normalize_date("ABT 1952"),
        death=normalize_date("BEF 2001"),
        photo_url="photos/mary.jpg",
    )
    data = map_individual_to_person(individual, USER_ID)

    assert data.first_name == "Mary"
    assert data.gender == "female"
    assert data.birth_date == "1952"
    assert data.death_date == "2001"
    assert data.photo_url == "photos/mary.jpg"
    assert data.notes == "Birth (Date approximate)\nDeath (Date before)"
    assert data.user_id == USER_ID


def test_map_individual_without_names():
    data = map_individual_to_person(Individual(id="@I9@"), USER_ID)
    assert data.first_name == ""
    assert data.last_name == ""
    assert data.birth_date is None
    assert data.notes is None


class TestResolutions:
    individuals = [Individual(id=f"@I{n}@") for n in range(1, 6)]

    def test_every_resolution(self):
        merge_target = uuid.uuid4()
        skip_target = uuid.uuid4()
        decisions = [
            ResolutionDecision(gedcom_id="@I1@", resolution="merge", existing_person_id=merge_target),
            ResolutionDecision(gedcomId="@I2@", resolution="skip", existingPersonId=skip_target),
            ResolutionDecision(gedcom_id="@I3@", resolution="import_as_new"),
        ]
        outcome = apply_duplicate_resolutions(self.individuals, decisions)

        assert [i.id for i in outcome.individuals_to_import] == ["@I3@", "@I4@", "@I5@"]
        assert outcome.gedcom_id_to_person_id == {"@I1@": merge_target, "@I2@": skip_target}
        assert len(outcome.individuals_to_merge) == 1
        assert outcome.individuals_to_merge[0].gedcom_id == "@I1@"
        assert outcome.individuals_to_merge[0].existing_person_id == merge_target
        assert outcome.individuals_to_merge[0].individual is self.individuals[0]

    def test_unknown_resolution_imports_as_new(self, caplog):
        decisions = [ResolutionDecision(gedcom_id="@I1@", resolution="replace", existing_person_id=uuid.uuid4())]
        with caplog.at_level(logging.WARNING, logger="treemerge.services.importer"):
            outcome = apply_duplicate_resolutions(self.individuals[:1], decisions)

        assert [i.id for i in outcome.individuals_to_import] == ["@I1@"]
        assert outcome.gedcom_id_to_person_id == {}
        assert "Unknown resolution" in caplog.text

    def test_merge_without_target_imports_as_new(self):
        decisions = [ResolutionDecision(gedcom_id="@I1@", resolution="merge")]
        outcome = apply_duplicate_resolutions(self.individuals[:1], decisions)
        assert [i.id for i in outcome.individuals_to_import] == ["@I1@"]
        assert outcome.individuals_to_merge == []


class TestRelationshipBuilder:
    ids = {gedcom_id: uuid.uuid4() for gedcom_id in ("@I1@", "@I2@", "@I3@", "@I4@")}

    def test_family_rows(self):
        family = Family(id="@F1@", husband="@I1@", wife="@I2@", children=["@I3@"])
        rows = build_relationships_from_families([family], self.ids, USER_ID)

        keys = [r.key for r in rows]
        husband, wife, child = self.ids["@I1@"], self.ids["@I2@"], self.ids["@I3@"]
        assert keys == [
            relationship_key(husband, wife, "spouse"),
            relationship_key(wife, husband, "spouse"),
            relationship_key(husband, child, "parentOf", "father"),
            relationship_key(wife, child, "parentOf", "mother"),
        ]
        assert all(r.user_id == USER_ID for r in rows)

    def test_unresolved_people_are_left_out(self):
        family = Family(id="@F1@", husband="@I1@", wife="@I9@", children=["@I3@", "@I8@"])
        rows = build_relationships_from_families([family], self.ids, USER_ID)

        assert [(r.type, r.parent_role) for r in rows] == [("parentOf", "father")]

    def test_repeated_family_blocks_give_the_same_rows(self):
        family = Family(id="@F1@", husband="@I1@", wife="@I2@", children=["@I3@", "@I4@"])
        once = build_relationships_from_families([family], self.ids, USER_ID)
        twice = build_relationships_from_families([family, family], self.ids, USER_ID)

        assert [r.key for r in twice] == [r.key for r in once]
        assert len(once) == 6

    def test_people_resolved_to_the_same_person_are_not_linked(self):
        same = uuid.uuid4()
        child = uuid.uuid4()
        ids = {"@I1@": same, "@I2@": same, "@I3@": child}
        family = Family(id="@F1@", husband="@I1@", wife="@I2@", children=["@I3@"])

        rows = build_relationships_from_families([family], ids, USER_ID)

        assert all(r.person1_id != r.person2_id for r in rows)
        assert [r.key for r in rows] == [
            relationship_key(same, child, "parentOf", "father"),
            relationship_key(same, child, "parentOf", "mother"),
        ]

    def test_child_resolved_to_its_parent_is_not_linked(self):
        same = uuid.uuid4()
        family = Family(id="@F1@", husband="@I1@", children=["@I3@"])

        assert build_relationships_from_families([family], {"@I1@": same, "@I3@": same}, USER_ID) == []
