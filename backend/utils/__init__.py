"""
Utility modules for the backend.
"""
from .postcode import (
    PostcodeValidationError,
    normalize_postcode,
    is_valid_postcode,
    canonicalize_postcode,
    postcode_district,
    district_for_record,
)
from .retry import run_with_retry
from .timing import log_timing

__all__ = [
    'PostcodeValidationError',
    'normalize_postcode',
    'is_valid_postcode',
    'canonicalize_postcode',
    'postcode_district',
    'district_for_record',
    'run_with_retry',
    'log_timing',
]
