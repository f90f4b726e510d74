"""Error kinds raised by the catalog services."""


class CatalogError(Exception):
    """Base class for catalog failures scoped to a single request."""

    kind = "ERROR"
    exit_code = 1

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CatalogError):
    """An entity id or key does not resolve."""

    kind = "NOT_FOUND"
    exit_code = 3


class ValidationError(CatalogError):
    """A required field is missing or a store constraint was violated."""

    kind = "VALIDATION"
    exit_code = 4


class AuthRequiredError(CatalogError):
    """The operation needs an authenticated username and none was supplied."""

    kind = "AUTH_REQUIRED"
    exit_code = 5


class ForbiddenError(CatalogError):
    """The authenticated user lacks the role the operation requires."""

    kind = "FORBIDDEN"
    exit_code = 6


class ExternalUnavailableError(CatalogError):
    """The book metadata provider failed or timed out.

    Raised by the HTTP client only; the suggestion service absorbs it and
    returns an empty result instead.
    """

    kind = "EXTERNAL_UNAVAILABLE"

