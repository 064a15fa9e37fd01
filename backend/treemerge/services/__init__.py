"""Services for the GEDCOM import and merge pipeline."""

from treemerge.services.person_service import PersonService
from treemerge.services.relationship_service import RelationshipService
from treemerge.services.duplicates import DuplicateService
from treemerge.services.import_service import ImportService
from treemerge.services.merge_service import MergeService
from treemerge.services.preview_store import PreviewStore

__all__ = [
    "PersonService",
    "RelationshipService",
    "DuplicateService",
    "ImportService",
    "MergeService",
    "PreviewStore",
]
