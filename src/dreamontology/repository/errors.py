"""
Repository error taxonomy.

Every backend raises exactly these exceptions. Callers (REST handlers, MCP
tools, CLI) translate them into their own wire format:

    NotFoundError   -> 404 / resource not found
    ConflictError   -> 409 / invalid request
    ValidationError -> 400 / invalid params
    InternalError   -> 500 / internal error (detail logged, not returned)
"""


class RepositoryError(Exception):
    """Base class for all repository failures."""

    kind = "repository"
    label = "Repository error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.label}: {self.message}"


class NotFoundError(RepositoryError):
    """Requested id does not exist."""

    kind = "not_found"
    label = "Not found"


class ConflictError(RepositoryError):
    """Create attempted with an id that already exists."""

    kind = "conflict"
    label = "Conflict"


class ValidationError(RepositoryError):
    """
    Caller-supplied data failed a precondition (empty id, empty name, ...).

    Raised by the calling layers, never by the backends themselves.
    """

    kind = "validation"
    label = "Validation error"


class InternalError(RepositoryError):
    """Storage-layer failure: connectivity, serialization, pool timeout."""

    kind = "internal"
    label = "Internal error"
