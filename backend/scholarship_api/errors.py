"""Service-level error taxonomy.

Services signal every failure by raising one of these exceptions; the
HTTP layer maps them to status codes in one place.
"""


class ServiceError(Exception):
    """Base class for expected business failures."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError, ValueError):
    """A business rule rejected the input (duplicates, bad date ranges...)."""
    status_code = 400


class NotFoundError(ServiceError, LookupError):
    """The requested entity does not exist."""
    status_code = 404
