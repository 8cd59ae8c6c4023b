"""Error taxonomy shared by the services.

Routers never build HTTP errors for these themselves; `main.py` registers a
single handler that maps each kind to its status code.
"""

from typing import Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        # zero-based position of the offending item in a batch request
        self.index = index

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.index is not None:
            body["index"] = self.index
        return body


class InvalidInput(ServiceError):
    """Missing or malformed required field; the caller must fix the request."""

    status_code = 400


class Unauthorized(ServiceError):
    """Target device is absent or belongs to someone else.

    Both cases share one error so non-owners cannot probe for existence.
    """

    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    """Uniqueness violation or a status transition that is not allowed."""

    status_code = 409


class StoreUnavailable(ServiceError):
    status_code = 503
