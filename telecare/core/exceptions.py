"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


class ServiceUnavailableException(AppException):
    """Transient failure; the same call can be retried."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


class SlotConflictException(ConflictException):
    """The requested slot is already held by another appointment."""

    def __init__(self, message: str = "Slot is no longer available"):
        super().__init__(message)


class InvalidTransitionException(ConflictException):
    """The appointment's current status does not allow the action."""

    def __init__(self, message: str = "Action not allowed for the current appointment status"):
        super().__init__(message)


class PaymentVerificationException(AppException):
    """Provider response did not verify against the stored order."""

    def __init__(self, message: str = "Payment verification failed"):
        super().__init__(message, status_code=400)


class PaymentGatewayException(AppException):
    """Payment provider call failed."""

    def __init__(self, message: str = "Payment provider unavailable"):
        super().__init__(message, status_code=502)


class SessionExpiredException(UnauthorizedException):
    """Client session could not be refreshed."""

    def __init__(self, message: str = "Session expired. Please login again."):
        super().__init__(message)


class AccountBlockedException(ForbiddenException):
    """Account was blocked by an administrator."""

    def __init__(self, message: str = "User is blocked"):
        super().__init__(message)
