"""
Global middleware for requests.

Provides:
- Request ID injection (X-Request-ID) and sampled request logging
- Error envelope standardization
"""

from .request_logging import setup_request_logging_middleware
from .error_envelope import setup_error_handlers

__all__ = [
    'setup_request_logging_middleware',
    'setup_error_handlers',
]
