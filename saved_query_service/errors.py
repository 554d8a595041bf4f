from enum import Enum

__all__ = [
    "ErrorKind",
    "PipelineError",
    "NotFound",
    "Unauthorized",
    "StoreFailure",
]


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    STORE_FAILURE = "store_failure"


class PipelineError(Exception):
    """
    Base class for failures of the authorization-gated saved query pipeline. Each subclass is tagged with the
    kind of failure at the point where it is raised, so handlers never have to inspect error messages.
    """

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(PipelineError):
    """Project or team role could not be resolved."""

    kind = ErrorKind.NOT_FOUND


class Unauthorized(PipelineError):
    """The policy engine denied the requested action for the resolved role."""

    kind = ErrorKind.UNAUTHORIZED


class StoreFailure(PipelineError):
    """A persistence operation (or a lookup backing a resolver) failed."""

    kind = ErrorKind.STORE_FAILURE
