"""
Domain error hierarchy.

Services raise these instead of HTTP errors; the API layer maps each kind
to a response. Every error carries a machine-readable ``code``.
"""
from typing import Optional


class LoanbookError(Exception):
    """Base class for all recoverable domain errors"""

    code: str = "LOANBOOK_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(LoanbookError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, key):
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key


class ValidationError(LoanbookError):
    code = "VALIDATION_ERROR"


class ConflictError(LoanbookError):
    code = "CONFLICT"


class InvalidStateError(LoanbookError):
    code = "INVALID_STATE"

    def __init__(self, entity: str, key, current: str, action: str):
        super().__init__(f"Cannot {action} {entity} {key} in status '{current}'")
        self.entity = entity
        self.key = key
        self.current = current
        self.action = action


class PermissionDeniedError(LoanbookError):
    code = "PERMISSION_DENIED"


# OTP


class InvalidCodeError(LoanbookError):
    code = "OTP_INVALID_CODE"

    def __init__(self, otp_id: int):
        super().__init__("Invalid OTP code")
        self.otp_id = otp_id


class ExpiredError(LoanbookError):
    code = "OTP_EXPIRED"

    def __init__(self, otp_id: int):
        super().__init__("OTP has expired")
        self.otp_id = otp_id


class AlreadyUsedError(LoanbookError):
    code = "OTP_ALREADY_USED"

    def __init__(self, otp_id: int):
        super().__init__("OTP has already been used")
        self.otp_id = otp_id


# Sessions


class SessionExpiredError(LoanbookError):
    code = "SESSION_EXPIRED"

    def __init__(self, session_id: int):
        super().__init__("Session has expired")
        self.session_id = session_id


class SessionRevokedError(LoanbookError):
    code = "SESSION_REVOKED"

    def __init__(self, session_id: int):
        super().__init__("Session has been revoked")
        self.session_id = session_id


# Error audit


class AlreadyResolvedError(LoanbookError):
    code = "ERROR_ALREADY_RESOLVED"

    def __init__(self, error_log_id: int):
        super().__init__(f"Error log {error_log_id} is already resolved")
        self.error_log_id = error_log_id
