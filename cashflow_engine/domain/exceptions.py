"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any mutation; carries the offending field"""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class NotFoundError(DomainException):
    """Referenced record does not exist"""

    pass


class InvalidStateError(DomainException):
    """Operation not allowed in the record's current state"""

    pass


class NotDueError(InvalidStateError):
    """Recurring transaction has nothing due as of the requested date"""

    pass


class ConcurrencyConflictError(DomainException):
    """Optimistic commit kept losing to concurrent writers; safe to retry later"""

    pass


class ReferenceDataError(DomainException):
    """Reference data service returned an error or is unavailable"""

    pass
