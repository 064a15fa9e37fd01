"""Structured import errors and the downloadable error log."""

import csv
import dataclasses
import io
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError, OperationalError


class ErrorCode(str, Enum):
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_WARNING = "VALIDATION_WARNING"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ErrorSeverity(str, Enum):
    ERROR = "Error"
    WARNING = "Warning"


CSV_HEADERS = ["Severity", "Line", "GEDCOM ID", "Name", "Field", "Error", "Suggested Fix"]


@dataclasses.dataclass
class ImportIssue:
    severity: ErrorSeverity
    code: ErrorCode
    message: str
    line: Optional[int] = None
    gedcom_id: Optional[str] = None
    individual_name: Optional[str] = None
    field: Optional[str] = None
    suggested_fix: Optional[str] = None
    timestamp: datetime = dataclasses.field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "line": self.line,
            "gedcomId": self.gedcom_id,
            "individualName": self.individual_name,
            "field": self.field,
            "suggestedFix": self.suggested_fix,
        }


def create_import_error(message: str, code: ErrorCode = ErrorCode.UNKNOWN_ERROR, **context) -> ImportIssue:
    return ImportIssue(severity=ErrorSeverity.ERROR, code=code, message=message, **context)


def create_validation_warning(message: str, **context) -> ImportIssue:
    return ImportIssue(
        severity=ErrorSeverity.WARNING,
        code=ErrorCode.VALIDATION_WARNING,
        message=message,
        **context,
    )


def format_error_message(issue: ImportIssue) -> str:
    """Multi-line, user facing description of where and why an import failed."""
    parts = []

    if issue.gedcom_id:
        number = re.sub(r"[@A-Za-z]", "", issue.gedcom_id).lstrip("0")
        parts.append(f"Import failed at individual #{number or '0'}")

    if issue.line:
        parts.append(f"Line {issue.line} in GEDCOM file")

    if issue.individual_name and issue.gedcom_id:
        parts.append(f"Individual: {issue.individual_name} ({issue.gedcom_id})")
    elif issue.individual_name:
        parts.append(f"Individual: {issue.individual_name}")
    elif issue.gedcom_id:
        parts.append(f"GEDCOM ID: {issue.gedcom_id}")

    if issue.field:
        parts.append(f"Field: {issue.field}")

    if issue.code is ErrorCode.CONSTRAINT_VIOLATION:
        parts.append(f"Database constraint violation: {issue.message}")
    else:
        parts.append(f"Error: {issue.message}")

    if issue.suggested_fix:
        parts.append(f"Suggested fix: {issue.suggested_fix}")

    return "\n".join(parts)


def generate_error_log_csv(issues: Iterable[ImportIssue]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for issue in issues:
        writer.writerow([
            issue.severity.value,
            "" if issue.line is None else str(issue.line),
            issue.gedcom_id or "",
            issue.individual_name or "",
            issue.field or "",
            issue.message or "",
            issue.suggested_fix or "",
        ])
    return buffer.getvalue().rstrip("\n")


def classify_store_error(exc: BaseException) -> tuple[ErrorCode, str]:
    """Map a store exception to an error code and a user message."""
    text = str(exc)
    if isinstance(exc, IntegrityError):
        if "FOREIGN KEY" in text.upper():
            return ErrorCode.CONSTRAINT_VIOLATION, "Database constraint violation: Invalid relationship reference"
        return ErrorCode.CONSTRAINT_VIOLATION, "Database constraint violation: Duplicate record detected"
    if isinstance(exc, OperationalError) and "timeout" in text.lower():
        return ErrorCode.TIMEOUT_ERROR, "Import timed out - please try again"
    return ErrorCode.UNKNOWN_ERROR, f"Import failed: {text}"
