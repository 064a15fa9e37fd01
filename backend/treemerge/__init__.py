"""GEDCOM import and identity resolution for a family tree store."""

__version__ = "0.1.0"
