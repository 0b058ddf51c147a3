"""
Error envelope middleware - Standardize all error responses.

Provides consistent error response format:
{
    "error": {
        "code": "QUERY_FAILED",
        "message": "Price data is temporarily unavailable",
        "requestId": "uuid"
    }
}
"""

import logging
from flask import Flask, jsonify, g
from werkzeug.exceptions import HTTPException

from services.postcode_service import PostcodeQueryError, QueryTimeoutError


logger = logging.getLogger('api.middleware.error')


def _envelope(code: str, message: str, status: int):
    request_id = getattr(g, 'request_id', None)
    response = jsonify({
        "error": {
            "code": code,
            "message": message,
            "requestId": request_id,
        }
    })
    response.status_code = status
    if request_id:
        response.headers['X-Request-ID'] = request_id
    return response


def setup_error_handlers(app: Flask) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - HTTP exceptions (404, 405, ...) with their own status codes
    - Postcode query failures (503) and timeouts (504)
    - Unhandled Python exceptions (500)
    """

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')
        return _envelope(code, error.description, error.code)

    @app.errorhandler(PostcodeQueryError)
    def handle_query_error(error):
        request_id = getattr(g, 'request_id', None)
        if isinstance(error, QueryTimeoutError):
            logger.error(f"Postcode query timed out: {error} request_id={request_id}")
            return _envelope("QUERY_TIMEOUT", "Price data took too long to load", 504)

        logger.error(f"Postcode query failed: {error} (cause: {error.__cause__!r}) "
                     f"request_id={request_id}")
        return _envelope("QUERY_FAILED", "Price data is temporarily unavailable", 503)

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        if isinstance(error, HTTPException):
            return handle_http_error(error)

        logger.exception(
            f"Unhandled error: {error}",
            extra={
                "event": "unhandled_error",
                "request_id": getattr(g, 'request_id', None),
                "error_type": type(error).__name__,
            }
        )
        return _envelope("INTERNAL_ERROR", "An unexpected error occurred", 500)
