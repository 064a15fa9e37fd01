"""
Pytest fixtures shared by the treemerge tests.

Store tests run against a file-backed SQLite database per test, with
foreign keys switched on so ON DELETE CASCADE behaves as on PostgreSQL.
"""

import pytest

from treemerge.db.session import build_engine, build_session_factory, init_models
from treemerge.models import Person, Relationship, User
from treemerge.services.gedcom_parser import parse_gedcom

SAMPLE_GEDCOM = """0 HEAD
1 SOUR treemerge-tests
1 GEDC
2 VERS 5.5.1
2 FORM LINEAGE-LINKED
1 CHAR UTF-8
0 @I1@ INDI
1 NAME John /Smith/
1 SEX M
1 BIRT
2 DATE 15 JAN 1950
2 PLAC Springfield
1 FAMS @F1@
0 @I2@ INDI
1 NAME Mary /Jones/
1 SEX F
1 BIRT
2 DATE ABT 1952
1 FAMS @F1@
0 @I3@ INDI
1 NAME Alice /Smith/
1 SEX F
1 BIRT
2 DATE MAR 1980
1 DEAT
2 DATE 2 FEB 2020
1 FAMC @F1@
0 @F1@ FAM
1 HUSB @I1@
1 WIFE @I2@
1 CHIL @I3@
1 MARR
2 DATE 10 JUN 1975
0 TRLR
"""


@pytest.fixture
def sample_gedcom() -> str:
    return SAMPLE_GEDCOM


@pytest.fixture
def parsed(sample_gedcom):
    return parse_gedcom(sample_gedcom)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'treemerge.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_user(session):
    """Factory: add a user and flush."""
    async def _add(email: str = "owner@example.com", **fields) -> User:
        user = User(email=email, **fields)
        session.add(user)
        await session.flush()
        return user
    return _add


@pytest.fixture
def add_person(session):
    """Factory: add a person owned by `user` and flush."""
    async def _add(user: User, first_name: str, last_name: str = "", **fields) -> Person:
        person = Person(first_name=first_name, last_name=last_name, user_id=user.id, **fields)
        session.add(person)
        await session.flush()
        return person
    return _add


@pytest.fixture
def add_relationship(session):
    """Factory: add a relationship row; spouse rows are added in both directions."""
    async def _add(person1: Person, person2: Person, type: str, parent_role: str = None) -> None:
        pairs = [(person1, person2)]
        if type == "spouse":
            pairs.append((person2, person1))
        for a, b in pairs:
            session.add(Relationship(
                person1_id=a.id,
                person2_id=b.id,
                type=type,
                parent_role=parent_role,
                user_id=a.user_id,
            ))
        await session.flush()
    return _add
