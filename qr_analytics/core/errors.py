"""
errors.py — Application error taxonomy.

Every failure the heatmap engine reports carries a machine-readable code,
a human message and the HTTP status the web layer should answer with.
Services raise these; HeatmapService converts them into a failed
ServiceResponse so nothing escapes its public methods.

    AppError          generic, passed through verbatim
    ValidationError   bad HeatmapOptions / image format        → 400
    NotFoundError     unknown resource                         → 404
    DatabaseError     scan-event store failure or unavailable  → 500 / 503
"""

from typing import Any, Optional


class AppError(Exception):
    """Base error carrying its own code and HTTP status."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class ValidationError(AppError):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__("VALIDATION_ERROR", message, 400, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__("NOT_FOUND", message, 404)


class DatabaseError(AppError):
    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        code: str = "DATABASE_ERROR",
        status_code: int = 500,
    ):
        super().__init__(code, message, status_code, details)
