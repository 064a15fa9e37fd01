from typing import Any, List, Dict
from uuid import UUID
from pydantic import BaseModel, Field

from treemerge.schemas.tree import PersonSnapshot, RelationshipSummary


class MergeValidation(BaseModel):
    can_merge: bool = Field(alias="canMerge", default=True)
    errors: List[str] = []
    warnings: List[str] = []
    conflict_fields: List[str] = Field(default_factory=list, alias="conflictFields")

    class Config:
        populate_by_name = True


class FieldComparison(BaseModel):
    source: Any = None
    target: Any = None
    merged: Any = None


class MergePreview(BaseModel):
    can_merge: bool = Field(alias="canMerge")
    validation: MergeValidation
    source: PersonSnapshot
    target: PersonSnapshot
    merged: Dict[str, Any]
    comparison: Dict[str, FieldComparison]
    relationships_to_transfer: List[RelationshipSummary] = Field(
        default_factory=list, alias="relationshipsToTransfer"
    )
    existing_relationships: List[RelationshipSummary] = Field(
        default_factory=list, alias="existingRelationships"
    )

    class Config:
        populate_by_name = True


class MergeExecutionResult(BaseModel):
    success: bool = True
    target_id: UUID = Field(alias="targetId")
    source_id: UUID = Field(alias="sourceId")
    relationships_transferred: int = Field(0, alias="relationshipsTransferred")
    relationships_removed: int = Field(0, alias="relationshipsRemoved")
    merged_data: Dict[str, Any] = Field(default_factory=dict, alias="mergedData")

    class Config:
        populate_by_name = True
