"""Custom exceptions for Presta Reports."""
from __future__ import annotations
from typing import Optional


class PrestaReportsError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['success'] = False
        return rv


class TransportError(PrestaReportsError):
    """Upstream webservice unreachable or answered with a non-2xx status."""
    def __init__(self, dataset: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"[{dataset}] {message}", status_code=502, payload={"dataset": dataset})
        self.dataset = dataset
        self.upstream_status = status_code


class ParseError(TransportError):
    """Upstream payload could not be decoded (bad JSON/XML or unexpected shape)."""


class IntervalValidationError(PrestaReportsError):
    """Rejected interval reconfiguration; the scheduler is left untouched."""
    def __init__(self, value, message: Optional[str] = None):
        super().__init__(
            message or "Invalid interval value. Please provide a valid number in milliseconds.",
            status_code=400,
            payload={"interval": value if value is None else str(value)},
        )
        self.value = value


class UnknownJobError(PrestaReportsError):
    """Raised when a sync job name is not registered with the scheduler."""
    def __init__(self, name: str):
        super().__init__(f"Unknown sync job: {name}", status_code=404)
        self.name = name
