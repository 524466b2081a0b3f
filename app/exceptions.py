from typing import Optional


class MarketError(Exception):
    """Base for every error that is reported to the caller as `{success: false, message}`."""
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(MarketError):
    status_code = 400
    default_message = "Invalid input"


class UnauthorizedError(MarketError):
    status_code = 401
    default_message = "Access token required"


class ForbiddenError(MarketError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(MarketError):
    status_code = 404
    default_message = "Not found"


class ConflictError(MarketError):
    status_code = 409
    default_message = "Conflict"


class InvalidTransitionError(ConflictError):
    def __init__(self, message: Optional[str] = None, current=None):
        self.current = current
        super().__init__(message)


class InvalidSignatureError(MarketError):
    status_code = 400
    default_message = "Invalid signature"


class DownloadDeniedError(MarketError):
    status_code = 400
    default_message = "Download not available"


class NotCompletedError(DownloadDeniedError):
    default_message = "Purchase not completed"


class LimitExceededError(DownloadDeniedError):
    default_message = "Download limit exceeded"


class ExpiredError(DownloadDeniedError):
    default_message = "Purchase has expired"


class GatewayUnavailableError(MarketError):
    status_code = 503
    default_message = "Payment system not configured"


class InternalError(MarketError):
    status_code = 500
