class AppException(Exception):
    """Base application exception."""

    pass


class NotFoundError(AppException):
    """Resource not found exception."""

    pass


class ValidationError(AppException):
    """Validation error exception."""

    pass


class InvalidStateError(AppException):
    """Operation is not valid for the current state of the resource."""

    pass


class PersistenceError(AppException):
    """Storage operation error exception."""

    pass
