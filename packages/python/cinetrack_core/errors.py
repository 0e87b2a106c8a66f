class DomainError(Exception):
    """Base for errors the HTTP layer maps to a status and a machine-readable code."""

    code: str = "domain_error"
    status: int = 400

    def __init__(self, message: str = "", *, code: str | None = None, status: int | None = None):
        super().__init__(message or self.__class__.__name__)
        if code: self.code = code
        if status: self.status = status

class Conflict(DomainError):
    # duplicate key, or a bundle written for a user that no longer exists
    code = "conflict"
    status = 409

class Forbidden(DomainError):
    code = "forbidden"
    status = 403

class RuleViolation(DomainError):
    code = "rule_violation"
    status = 422

class StoreUnavailable(DomainError):
    """History/cache store could not be read or written."""
    code = "store_unavailable"
    status = 503
