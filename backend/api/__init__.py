"""
API package - request-level plumbing shared by all routes.

This package provides:
- Global middleware (request id, request logging, error envelope)
"""
