"""
Error taxonomy for the JSON API.

Services and route handlers raise these; the app factory turns them into
`{"message": ..., "requestId": ...}` responses with the matching status code.
"""
from __future__ import annotations


class TrackerError(Exception):
    status_code = 500
    default_message = "Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(TrackerError):
    status_code = 400
    default_message = "Invalid request."


class Unauthenticated(TrackerError):
    status_code = 401
    default_message = "Authentication required."


class Forbidden(TrackerError):
    status_code = 403
    default_message = "Not authorized."


class NotFound(TrackerError):
    status_code = 404
    default_message = "Not found."


class RateLimited(TrackerError):
    status_code = 429
    default_message = "Too many requests."
