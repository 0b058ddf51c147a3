"""
Postcode Normalization Utilities
================================

Single source of truth for turning user or record postcodes into the
canonical key form used by the views ("ct20 1lf" -> "CT201LF").

Usage:
    from utils.postcode import canonicalize_postcode, PostcodeValidationError

    try:
        postcode = canonicalize_postcode(raw)
    except PostcodeValidationError:
        return redirect("/")
"""

from typing import Optional

from constants import (
    POSTCODE_PATTERN,
    POSTCODE_STRIP_PATTERN,
    POSTCODE_INWARD_LENGTH,
)


class PostcodeValidationError(ValueError):
    """Raised when input cannot be normalized to a valid UK postcode."""

    def __init__(self, message: str, received_value=None):
        super().__init__(message)
        self.received_value = received_value


def normalize_postcode(value: Optional[str]) -> str:
    """
    Uppercase and strip everything that is not A-Z or 0-9.

    None and empty input normalize to the empty string.
    """
    if not value:
        return ""
    return POSTCODE_STRIP_PATTERN.sub("", str(value).upper())


def is_valid_postcode(normalized: str) -> bool:
    """Check an already-normalized postcode against the UK grammar."""
    return bool(normalized) and POSTCODE_PATTERN.match(normalized) is not None


def canonicalize_postcode(value: Optional[str]) -> str:
    """
    Normalize and validate a postcode.

    Returns:
        Canonical postcode, e.g. "CT201LF"

    Raises:
        PostcodeValidationError: If the normalized form is not a UK postcode
    """
    normalized = normalize_postcode(value)
    if not is_valid_postcode(normalized):
        raise PostcodeValidationError(
            f"Invalid postcode: {value!r}",
            received_value=value
        )
    return normalized


def postcode_district(postcode: str) -> str:
    """
    Outward code of a canonical postcode ("CT201LF" -> "CT20").

    The inward code is always a fixed 3 characters (sector digit + unit).
    """
    return postcode[:-POSTCODE_INWARD_LENGTH]


def district_for_record(value: Optional[str]) -> Optional[str]:
    """District of a stored record's postcode, or None if it is unusable."""
    normalized = normalize_postcode(value)
    if not is_valid_postcode(normalized):
        return None
    return postcode_district(normalized)
