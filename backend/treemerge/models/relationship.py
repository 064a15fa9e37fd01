import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from treemerge.db.session import Base

SPOUSE = "spouse"
PARENT_OF = "parentOf"
MOTHER = "mother"
FATHER = "father"


class Relationship(Base):
    """
    A directed link between two people.

    'parentOf': person1 is a parent of person2, parent_role is 'mother' or 'father'.
    'spouse': stored as two rows, one per direction, parent_role is NULL.
    """
    __tablename__ = "relationships"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    person1_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    person2_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("persons.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    type = Column(String(20), nullable=False)
    parent_role = Column(String(10), nullable=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    person1 = relationship(
        "Person",
        foreign_keys=[person1_id],
        back_populates="relationships_as_person1"
    )
    person2 = relationship(
        "Person",
        foreign_keys=[person2_id],
        back_populates="relationships_as_person2"
    )

    # NULL parent_role values are distinct under this constraint, so spouse rows
    # are deduplicated before insertion rather than here
    __table_args__ = (
        UniqueConstraint("person1_id", "person2_id", "type", "parent_role", name="unique_relationship"),
    )

    @property
    def key(self) -> tuple:
        return (self.person1_id, self.person2_id, self.type, self.parent_role or "")

    def __repr__(self) -> str:
        role = f" ({self.parent_role})" if self.parent_role else ""
        return f"<Relationship {self.person1_id} {self.type}{role} {self.person2_id}>"
