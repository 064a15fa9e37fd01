"""Exception hierarchy for the import and merge pipeline."""

from typing import Optional


class TreeMergeError(Exception):
    """Base class for all treemerge errors."""


class GedcomVersionError(TreeMergeError):
    """The document declares no version, or one that is not supported."""


class PreviewNotFoundError(TreeMergeError, KeyError):
    """No preview is stored for this upload (never parsed, cleared or expired)."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Preview data not found"


class InvalidResolutionError(TreeMergeError, ValueError):
    """A duplicate resolution decision names an unknown resolution."""


class MergeError(TreeMergeError, ValueError):
    """A merge could not be executed; the transaction has been rolled back."""


class ImportExecutionError(TreeMergeError):
    """
    The import transaction failed and was rolled back.

    `code` is one of the ErrorCode values from services.error_report.
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[str] = None,
        can_retry: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.can_retry = can_retry

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "canRetry": self.can_retry,
        }
