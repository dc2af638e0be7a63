"""
Domain errors for the dispatch core.

Primary-path failures (validation, authorization, selection, primary
writes) are raised as ``DispatchError`` subclasses and reach the caller
with the HTTP status each class names. Side-effect failures (timeline
appends, notifications) are never raised; they are logged where they
happen.
"""

from __future__ import annotations


class DispatchError(Exception):
    code = "DISPATCH_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(DispatchError):
    code = "VALIDATION_ERROR"
    http_status = 400


class Unauthorized(DispatchError):
    code = "AUTH_REQUIRED"
    http_status = 401


class Forbidden(DispatchError):
    code = "FORBIDDEN"
    http_status = 403


class NotFound(DispatchError):
    code = "NOT_FOUND"
    http_status = 404


class StationUnavailable(DispatchError):
    code = "STATION_UNAVAILABLE"
    http_status = 409


class InvalidTransition(DispatchError):
    code = "INVALID_TRANSITION"
    http_status = 409


class Conflict(DispatchError):
    code = "CONFLICT"
    http_status = 409


class NoStationsAvailable(DispatchError):
    code = "NO_STATIONS_AVAILABLE"
    http_status = 503


class PersistenceError(DispatchError):
    code = "PERSISTENCE_ERROR"
    http_status = 500
