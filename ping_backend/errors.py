"""
Service error taxonomy, mapped to HTTP status codes at the API boundary
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONTENT_REJECTED = "CONTENT_REJECTED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    ALREADY_EXISTS = "ALREADY_EXISTS"


_HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.CONTENT_REJECTED: 422,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.ALREADY_EXISTS: 409,
}


class ServiceError(Exception):
    """Base error raised by services"""
    code: ErrorCode = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.extra = extra or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self.code, 500)

    def model_dump(self) -> Dict[str, Any]:
        """Dict representation for API responses"""
        return {"code": self.code.value, "message": self.message, **self.extra}


class NotFoundError(ServiceError):
    code = ErrorCode.NOT_FOUND


class PermissionDeniedError(ServiceError):
    code = ErrorCode.PERMISSION_DENIED


class ValidationFailedError(ServiceError):
    code = ErrorCode.VALIDATION_FAILED


class QuotaExceededError(ServiceError):
    code = ErrorCode.QUOTA_EXCEEDED


class ContentRejectedError(ServiceError):
    code = ErrorCode.CONTENT_REJECTED

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason
        super().__init__(message, {"reason": reason})


class AlreadyExistsError(ServiceError):
    code = ErrorCode.ALREADY_EXISTS

    def __init__(self, message: str, conflict_name: Optional[str] = None, conflict_id: Optional[Any] = None):
        self.conflict_name = conflict_name
        self.conflict_id = conflict_id
        super().__init__(message, {"conflict_name": conflict_name, "conflict_id": conflict_id})
