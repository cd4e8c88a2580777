from typing import Optional


class RmaError(Exception):
    status_code = 500
    code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(RmaError):
    status_code = 404


class RmaValidationError(RmaError):
    status_code = 400


class InvalidTransitionError(RmaError):
    status_code = 400
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current_status: str, action: str, message: Optional[str] = None):
        super().__init__(message or f"Cannot {action.lower().replace('_', ' ')} in status: {current_status}")
        self.current_status = current_status
        self.action = action


class MalformedDataError(RmaError):
    """Stored data does not have the expected shape. Never shown to clients."""

    status_code = 500


class ExternalServiceError(RmaError):
    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
