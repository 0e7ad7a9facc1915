"""
Application errors shared by the services, the HTTP layer and the chat gateway.

Each error carries an HTTP status and a short code used in real-time
``messageError`` events.
"""


class AppError(Exception):
    """Base error for all application failures"""

    status_code = 500
    code = "server"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Bad or missing payload field"""

    status_code = 422
    code = "validation"

    def __init__(self, message: str, field: str = None):
        self.field = field
        super().__init__(message)


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"


class ForbiddenError(AuthorizationError):
    pass


class NotFoundError(AppError):
    status_code = 404
    code = "validation"


class ConflictError(AppError):
    status_code = 409
    code = "validation"


class StorageError(AppError):
    """Persistence layer unavailable or failed. The message is safe to show; the cause is logged."""

    status_code = 503

    def __init__(self, message: str = "Storage is temporarily unavailable"):
        super().__init__(message)


class EnrichmentError(AppError):
    """Post-persist lookup of the sender profile failed"""

    def __init__(self, message: str = "Message details could not be prepared after saving"):
        super().__init__(message)
