from treemerge.schemas.gedcom import (
    DateModifier,
    DateValue,
    RawRecord,
    Individual,
    Family,
    ParseIssue,
    ParsedDocument,
    Statistics,
    ConsistencyIssue,
    DuplicateMatch,
    DuplicateCandidate,
)
from treemerge.schemas.tree import (
    PersonData,
    PersonSnapshot,
    RelationshipData,
    RelationshipSummary,
    ResolutionDecision,
    ImportResult,
)
from treemerge.schemas.merge import (
    MergeValidation,
    FieldComparison,
    MergePreview,
    MergeExecutionResult,
)

__all__ = [
    "DateModifier",
    "DateValue",
    "RawRecord",
    "Individual",
    "Family",
    "ParseIssue",
    "ParsedDocument",
    "Statistics",
    "ConsistencyIssue",
    "DuplicateMatch",
    "DuplicateCandidate",
    "PersonData",
    "PersonSnapshot",
    "RelationshipData",
    "RelationshipSummary",
    "ResolutionDecision",
    "ImportResult",
    "MergeValidation",
    "FieldComparison",
    "MergePreview",
    "MergeExecutionResult",
]
