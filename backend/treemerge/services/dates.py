"""GEDCOM date value normalization."""

import re
from typing import Optional

from treemerge.schemas.gedcom import DateModifier, DateValue

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MODIFIER_RE = re.compile(r"^(ABT|BEF|AFT|CAL|EST|BET)\s+(.+)$", re.IGNORECASE)
RANGE_RE = re.compile(r"^(.+?)\s+AND\s+(.+)$", re.IGNORECASE)
YEAR_RE = re.compile(r"^\d{4}$")
DAY_RE = re.compile(r"^\d{1,2}$")

INVALID_FORMAT = "Invalid date format"

MODIFIER_NOTES = {
    DateModifier.ABT: "(Date approximate)",
    DateModifier.BEF: "(Date before)",
    DateModifier.AFT: "(Date after)",
    DateModifier.CAL: "(Date calculated)",
    DateModifier.EST: "(Date estimated)",
    DateModifier.BET: "(Date between)",
}


def _invalid(original, error: str = INVALID_FORMAT) -> DateValue:
    return DateValue(original=original, normalized=None, valid=False, error=error)


def _parse_plain(text: str) -> tuple[Optional[str], bool, Optional[str]]:
    """
    Parse a date without modifier.

    Returns (normalized, partial, error); normalized is None on failure.
    """
    if ISO_DATE_RE.match(text):
        return text, False, None

    parts = text.split()

    if len(parts) == 1 and YEAR_RE.match(parts[0]):
        return parts[0], True, None

    if len(parts) == 2:
        month = MONTHS.get(parts[0].upper())
        if month and YEAR_RE.match(parts[1]):
            return f"{parts[1]}-{month:02d}", True, None

    if len(parts) == 3:
        month = MONTHS.get(parts[1].upper())
        if DAY_RE.match(parts[0]) and month and YEAR_RE.match(parts[2]):
            return f"{parts[2]}-{month:02d}-{int(parts[0]):02d}", False, None

    return None, False, INVALID_FORMAT


def normalize_date(value) -> DateValue:
    """
    Normalize a GEDCOM date value.

    Recognized forms, each optionally prefixed by ABT, BEF, AFT, CAL, EST or BET:
        1950-01-15   -> 1950-01-15
        15 JAN 1950  -> 1950-01-15
        JAN 1952     -> 1952-01     (partial)
        1975         -> 1975        (partial)

    "BET 1950 AND 1960" normalizes the first date and reports the second
    as range_end. The original string is always kept verbatim.
    """
    if not value or not isinstance(value, str):
        return _invalid(value)

    text = " ".join(value.split())
    if not text:
        return _invalid(value)

    modifier = None
    match = MODIFIER_RE.match(text)
    if match:
        modifier = DateModifier(match.group(1).upper())
        text = match.group(2)

    range_end = None
    if modifier is DateModifier.BET:
        range_match = RANGE_RE.match(text)
        if range_match:
            text = range_match.group(1)
            range_end, _, end_error = _parse_plain(range_match.group(2))
            if range_end is None:
                return _invalid(value, end_error)

    normalized, partial, error = _parse_plain(text)
    if normalized is None:
        return _invalid(value, error)

    return DateValue(
        original=value,
        normalized=normalized,
        valid=True,
        partial=partial,
        modifier=modifier,
        range_end=range_end,
    )


def modifier_note(modifier: Optional[DateModifier]) -> Optional[str]:
    """Human readable note for a date modifier."""
    if modifier is None:
        return None
    modifier = DateModifier(modifier)
    return MODIFIER_NOTES.get(modifier, f"(Date {modifier.value.lower()})")


def append_modifier_note(notes: Optional[str], modifier: Optional[DateModifier], label: str = "") -> Optional[str]:
    """Append the modifier note to notes on a new line; notes are unchanged without a modifier."""
    note = modifier_note(modifier)
    if not note:
        return notes
    if label:
        note = f"{label} {note}"
    if not notes or not notes.strip():
        return note
    return f"{notes}\n{note}"
