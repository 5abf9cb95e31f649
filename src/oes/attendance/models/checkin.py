"""Check-in models."""
from enum import Enum
from typing import Optional

CODE_CHARS = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
"""Check-in code alphabet, without easily confused characters."""

CODE_LENGTH = 8
"""Length of a generated check-in code."""


class CheckinMethod(str, Enum):
    """How a user reached the check-in code."""

    link = "link"
    qr = "qr"
    nfc = "nfc"


def normalize_method(value: Optional[str]) -> CheckinMethod:
    """Get the :class:`CheckinMethod` for a client supplied value.

    Missing and unrecognized values become :attr:`CheckinMethod.link` rather than
    being rejected.
    """
    try:
        return CheckinMethod(value)
    except (ValueError, TypeError):
        return CheckinMethod.link
