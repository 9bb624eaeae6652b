from typing import Any, List, Optional


class StudySpotsError(Exception):
    """Base class for errors raised by the spots core."""


class ValidationFailure(StudySpotsError):
    """
    Review input was rejected before reaching storage.

    Raised for an empty body or author, or a rating outside 1–5.
    Nothing is written when this is raised.
    """

    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class StorageFailure(StudySpotsError):
    """The review store could not complete a read or write."""


class SpotNotFound(StudySpotsError):
    """No catalog entry matches the requested spot key."""

    def __init__(self, spot_key: str):
        super().__init__(f"Study spot '{spot_key}' not found")
        self.spot_key = spot_key


class OperationNotSupported(StudySpotsError):
    """The requested operation is declared but intentionally not implemented."""
