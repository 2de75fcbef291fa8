"""
Domain error taxonomy.
Services raise these; the app-level exception handler in main.py maps them
to the {success: false, error} envelope and an HTTP status.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation_error"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    PRECONDITION_FAILED = "precondition_failed"
    TRANSPORT = "transport_error"
    RATE_LIMITED = "rate_limited"


STATUS_CODES = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VALIDATION: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.PRECONDITION_FAILED: 400,
    ErrorCode.TRANSPORT: 502,
    ErrorCode.RATE_LIMITED: 429,
}


@dataclass(eq=False)
class DomainError(Exception):
    """Base class for errors raised by the domain services"""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return self.message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.code]


class NotFoundError(DomainError):
    def __init__(self, message: str = "Not found"):
        super().__init__(ErrorCode.NOT_FOUND, message)


class ValidationError(DomainError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.VALIDATION, message)


class UnauthorizedError(DomainError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(ErrorCode.UNAUTHORIZED, message)


class ForbiddenError(DomainError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(ErrorCode.FORBIDDEN, message)


class PreconditionFailedError(DomainError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.PRECONDITION_FAILED, message)


class TransportError(DomainError):
    def __init__(self, message: str):
        super().__init__(ErrorCode.TRANSPORT, message)


class RateLimitedError(DomainError):
    def __init__(self, message: str = "Rate limited by upstream service"):
        super().__init__(ErrorCode.RATE_LIMITED, message)
