"""Domain errors raised by the services and rendered by the HTTP layer.

Every error carries the status code and the public message the client sees.
Nothing else about the failure crosses the HTTP boundary.
"""


class PortalError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict | None = None):
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)


class ValidationError(PortalError):
    status_code = 400
    message = "Invalid request"


class InvalidCredentials(PortalError):
    status_code = 401
    message = "Invalid username or password"


class InvalidToken(PortalError):
    status_code = 401
    message = "Invalid or expired token"


class AccountLocked(PortalError):
    status_code = 403
    message = "Account is locked"


class NoOpRejected(PortalError):
    status_code = 400
    message = "New password must differ from the current password"


class Forbidden(PortalError):
    status_code = 400
    message = "Operation not allowed"


class NotFound(PortalError):
    status_code = 404
    message = "Not found"


class DuplicateUsername(PortalError):
    status_code = 409
    message = "Username already exists"


class DuplicateTransactionCode(PortalError):
    status_code = 409
    message = "Transaction code already exists"


class RateLimited(PortalError):
    status_code = 429
    message = "Too many requests. Please try again later."


class ServiceUnavailable(PortalError):
    status_code = 500
    message = "Unable to verify payment with bank. Please try again later."


class UnauthorizedAccess(PortalError):
    status_code = 401
    message = "Unauthorized access"


class AccessDenied(PortalError):
    status_code = 403
    message = "Access denied"
