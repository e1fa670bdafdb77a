class LibrisAPIError(Exception):
    """Base for every failure surfaced to a caller as a structured message."""

    kind = "error"

    def __init__(self, message: str = "", ids=None):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind
        self.ids = list(ids or [])

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.ids:
            body["ids"] = self.ids
        return body

class ValidationError(LibrisAPIError):
    """Missing required field, duplicate unique field or malformed identifier."""
    kind = "validation_error"

class ReferentialConflict(LibrisAPIError):
    """Record is still referenced by other records."""
    kind = "referential_conflict"

class InsufficientCopies(LibrisAPIError):
    """No copies available for issuing."""
    kind = "insufficient_copies"

class InvalidState(LibrisAPIError):
    """Operation is not allowed in the record's current state."""
    kind = "invalid_state"

class ConcurrentUpdateError(InvalidState):
    """Record was modified by another request; reload and retry."""
    kind = "concurrent_update"

class BackendUnavailable(LibrisAPIError):
    """The data store could not complete the request."""
    kind = "backend_unavailable"

class NotFoundError(LibrisAPIError):
    """Record not found."""
    kind = "not_found"

class BookNotFoundError(NotFoundError): pass

class AuthorNotFoundError(NotFoundError): pass

class StudentNotFoundError(NotFoundError): pass

class LibrarianNotFoundError(NotFoundError): pass

class DepartmentNotFoundError(NotFoundError): pass

class LoanNotFoundError(NotFoundError): pass

class FineNotFoundError(NotFoundError): pass

class AuthenticationError(LibrisAPIError):
    """Not authenticated."""
    kind = "unauthenticated"

class PermissionDeniedError(LibrisAPIError):
    """Not allowed for this role."""
    kind = "forbidden"
