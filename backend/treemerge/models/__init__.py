from treemerge.models.user import User
from treemerge.models.person import Person
from treemerge.models.relationship import Relationship

__all__ = ["User", "Person", "Relationship"]
