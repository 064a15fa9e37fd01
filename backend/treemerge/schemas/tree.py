from typing import Optional, List, Dict
from uuid import UUID
from pydantic import BaseModel, Field


class PersonData(BaseModel):
    """Field set written to the persons table"""
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    gender: Optional[str] = None
    birth_date: Optional[str] = Field(None, alias="birthDate")
    death_date: Optional[str] = Field(None, alias="deathDate")
    photo_url: Optional[str] = Field(None, alias="photoUrl")
    birth_surname: Optional[str] = Field(None, alias="birthSurname")
    nickname: Optional[str] = None
    notes: Optional[str] = None
    user_id: UUID = Field(alias="userId")

    class Config:
        from_attributes = True
        populate_by_name = True


class PersonSnapshot(BaseModel):
    id: UUID
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    birth_date: Optional[str] = Field(None, alias="birthDate")
    death_date: Optional[str] = Field(None, alias="deathDate")
    gender: Optional[str] = None
    photo_url: Optional[str] = Field(None, alias="photoUrl")
    birth_surname: Optional[str] = Field(None, alias="birthSurname")
    nickname: Optional[str] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class RelationshipData(BaseModel):
    person1_id: UUID = Field(alias="person1Id")
    person2_id: UUID = Field(alias="person2Id")
    type: str
    parent_role: Optional[str] = Field(None, alias="parentRole")
    user_id: UUID = Field(alias="userId")

    class Config:
        from_attributes = True
        populate_by_name = True

    @property
    def key(self) -> tuple:
        return (self.person1_id, self.person2_id, self.type, self.parent_role or "")


class RelationshipSummary(RelationshipData):
    id: Optional[UUID] = None


class ResolutionDecision(BaseModel):
    """A caller's answer for one duplicate candidate"""
    gedcom_id: str = Field(alias="gedcomId")
    resolution: str  # 'merge', 'skip' or 'import_as_new'
    existing_person_id: Optional[UUID] = Field(None, alias="existingPersonId")

    class Config:
        populate_by_name = True


class ImportResult(BaseModel):
    success: bool = True
    persons_inserted: int = Field(0, alias="personsInserted")
    persons_updated: int = Field(0, alias="personsUpdated")
    relationships_inserted: int = Field(0, alias="relationshipsInserted")
    gedcom_id_to_person_id: Dict[str, UUID] = Field(default_factory=dict, alias="gedcomIdToPersonId")
    warnings: List[str] = []

    class Config:
        populate_by_name = True
