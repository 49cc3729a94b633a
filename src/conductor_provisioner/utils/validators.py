"""
Desired-state document validators.
"""
from __future__ import annotations

from typing import Any, Optional


class ValidationError(Exception):
    """Raised when a desired-state source cannot be read at all (bad JSON, bad encoding)."""
    pass


def declared_name(document: Any) -> Optional[str]:
    """Return the document's ``name`` when it is a non-empty string, else None.

    A document that is not a JSON object has no name; the reconciler counts it
    as invalid and skips it.
    """
    if not isinstance(document, dict):
        return None
    name = document.get("name")
    if isinstance(name, str) and name.strip():
        return name
    return None
