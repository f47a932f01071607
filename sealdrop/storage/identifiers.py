"""Entry identifier generation and validation.

Identifiers are 24 hexadecimal characters (96 random bits). They are
generated lowercase; validation accepts either case so that ids pasted from
elsewhere still resolve.

Examples:
    >>> new_entry_id()
    '9f3b1c2d4e5f60718293a4b5'
    >>> is_valid_entry_id("9F3B1C2D4E5F60718293A4B5")
    True
    >>> is_valid_entry_id("not-an-id")
    False
"""

from __future__ import annotations

import re
import secrets

ENTRY_ID_LENGTH = 24

_ENTRY_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")


def new_entry_id() -> str:
    """Generate a fresh entry identifier."""
    return secrets.token_hex(ENTRY_ID_LENGTH // 2)


def is_valid_entry_id(value: object) -> bool:
    """Check identifier syntax without touching storage.

    Args:
        value: Candidate identifier.

    Returns:
        True if value is a 24 character hex string.
    """
    return isinstance(value, str) and _ENTRY_ID_RE.fullmatch(value) is not None


def normalize_entry_id(value: str) -> str:
    """Lowercase a valid identifier for lookup."""
    return value.lower()
