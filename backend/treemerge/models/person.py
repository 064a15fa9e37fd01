import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from treemerge.db.session import Base


class Person(Base):
    __tablename__ = "persons"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    gender = Column(String(20), nullable=True)  # 'male', 'female', 'unspecified', 'other'
    birth_date = Column(String(10), nullable=True)  # YYYY, YYYY-MM or YYYY-MM-DD
    death_date = Column(String(10), nullable=True)
    photo_url = Column(Text, nullable=True)
    birth_surname = Column(String(255), nullable=True)
    nickname = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    owner = relationship("User", back_populates="people")
    relationships_as_person1 = relationship(
        "Relationship",
        foreign_keys="Relationship.person1_id",
        back_populates="person1",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    relationships_as_person2 = relationship(
        "Relationship",
        foreign_keys="Relationship.person2_id",
        back_populates="person2",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index('idx_persons_user_name', 'user_id', 'last_name', 'first_name'),
    )

    @property
    def full_name(self) -> str:
        """First and last name joined by a single space"""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self) -> str:
        return f"<Person {self.id} {self.full_name!r}>"
