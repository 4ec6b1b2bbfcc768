"""Custom exceptions for SnapTag.

Each exception type represents a category of error. The ``kind`` and
``status_code`` attributes let the HTTP layer translate any of them into a
response without knowing the concrete class.
"""


class SnaptagError(Exception):
    """Base exception for all SnapTag errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class NotFound(SnaptagError):
    """Raised when an image or tag id does not exist."""

    kind = "not_found"
    status_code = 404


class Conflict(SnaptagError):
    """Raised for detected duplicates and uniqueness violations.

    ``duplicate`` carries the existing record when the conflict comes from the
    duplicate guard.
    """

    kind = "conflict"
    status_code = 409

    def __init__(self, message: str = "", duplicate=None):
        super().__init__(message)
        self.duplicate = duplicate

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.duplicate is not None:
            payload["duplicate"] = self.duplicate.to_dict()
        return payload


class ValidationError(SnaptagError):
    """Raised when a filter or payload is empty or malformed."""

    kind = "validation_error"
    status_code = 400


class UpstreamUnavailable(SnaptagError):
    """Raised when the visual oracle is unreachable or mis-configured."""

    kind = "upstream_unavailable"
    status_code = 502


class StoreError(SnaptagError):
    """Raised for generic persistence faults."""

    kind = "store_error"
    status_code = 500
