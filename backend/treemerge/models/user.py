import uuid
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from treemerge.db.session import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=True, unique=True)
    # The user's own profile person. Not a foreign key: persons already point
    # at users, and a dangling id is treated as "no default person".
    default_person_id = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    people = relationship(
        "Person",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
