"""Utility functions for N4L graph operations."""

from .constants import INVALID_SUBJECTS


def edge_storage_key(from_ref: str, to_ref: str, label: str) -> str:
    """Generate the id of an edge built from a note."""
    return f"{from_ref}->{to_ref}:{label}"


def edge_pair_key(from_ref: str, to_ref: str) -> str:
    """Key an edge by its endpoints only, as version diffs do."""
    return f"{from_ref}->{to_ref}"


def is_valid_subject(subject: str) -> bool:
    """Check a subject or node id is not one of the parser's placeholders."""
    return subject not in INVALID_SUBJECTS


def is_capitalized(text: str) -> bool:
    """Check the first character is an uppercase letter."""
    return bool(text) and text[0].isupper()


def contains_any(text: str, words) -> bool:
    """Substring test of several keywords against text."""
    return any(word in text for word in words)


def unique(items) -> list:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(items))
