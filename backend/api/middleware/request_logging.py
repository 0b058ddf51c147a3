"""
Request middleware - request ids and sampled request logging.

Every request gets an X-Request-ID (echoed from the client if supplied).
Requests on watched path prefixes, or a random sample of all requests, are
logged with status and duration on the "houseprices.request" logger.
"""

import logging
import os
import random
import time
import uuid
from typing import List

from flask import Flask, g, request


logger = logging.getLogger("houseprices.request")

DEFAULT_WATCHLIST = "/postcode"


def _parse_watchlist(raw: str) -> List[str]:
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _should_log(path: str, watchlist: List[str], sample_rate: float) -> bool:
    if any(path.startswith(prefix) for prefix in watchlist):
        return True
    if sample_rate <= 0:
        return False
    if sample_rate >= 1:
        return True
    return random.random() <= sample_rate


def setup_request_logging_middleware(app: Flask) -> None:
    """
    Set up request id + request logging middleware on Flask app.

    Env vars:
      - REQUEST_LOG_ENABLED (default: true)
      - REQUEST_LOG_SAMPLE_RATE (default: 0.0)
      - REQUEST_LOG_ENDPOINTS (comma-separated path prefixes to always log,
        default: /postcode)
    """
    enabled = os.environ.get("REQUEST_LOG_ENABLED", "true").lower() == "true"
    sample_rate_raw = os.environ.get("REQUEST_LOG_SAMPLE_RATE", "0.0")
    try:
        sample_rate = float(sample_rate_raw)
    except ValueError:
        sample_rate = 0.0
    watchlist = _parse_watchlist(os.environ.get("REQUEST_LOG_ENDPOINTS", DEFAULT_WATCHLIST))

    @app.before_request
    def _start_request():
        g.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        g.request_start = time.perf_counter()

    @app.after_request
    def _finish_request(response):
        request_id = getattr(g, "request_id", None)
        if request_id and "X-Request-ID" not in response.headers:
            response.headers["X-Request-ID"] = request_id

        if not enabled or not _should_log(request.path, watchlist, sample_rate):
            return response

        duration_ms = None
        if hasattr(g, "request_start"):
            duration_ms = round((time.perf_counter() - g.request_start) * 1000, 2)

        logger.info(
            "request path=%s method=%s status=%s duration_ms=%s request_id=%s",
            request.path,
            request.method,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response
