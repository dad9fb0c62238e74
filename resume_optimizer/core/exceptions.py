from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable, client-switchable failure codes carried by terminal error events."""
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    MISSING_JOB_INFO = "MISSING_JOB_INFO"
    EXTRACTION_ERROR = "EXTRACTION_ERROR"
    PARSING_ERROR = "PARSING_ERROR"
    PARSING_TIMEOUT = "PARSING_TIMEOUT"
    ANALYSIS_ERROR = "ANALYSIS_ERROR"
    OPTIMIZATION_ERROR = "OPTIMIZATION_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    INSUFFICIENT_CONTENT_ERROR = "INSUFFICIENT_CONTENT_ERROR"
    FATAL_ERROR = "FATAL_ERROR"


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None,
        step: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        self.step = step
        super().__init__(self.message)


# --- Request / access errors ---

class AuthenticationError(AppException):
    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code=ErrorCode.AUTH_ERROR.value
        )

class AccessDeniedError(AppException):
    """Ownership failure. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "You do not have permission to access this resource"):
        super().__init__(
            message=message,
            status_code=403,
            error_code=ErrorCode.UNAUTHORIZED.value
        )

class NotFoundError(AppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(
            message=message,
            status_code=404,
            error_code=ErrorCode.NOT_FOUND.value
        )

class InvalidInputError(AppException):
    def __init__(self, message: str, error_code: str = "INVALID_INPUT", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )

class MissingJobInfoError(InvalidInputError):
    def __init__(self, message: str = "Job description or URL is required"):
        super().__init__(message=message, error_code=ErrorCode.MISSING_JOB_INFO.value)


# --- Pipeline errors (tagged with the step they occurred in) ---

class PipelineError(AppException):
    default_code = ErrorCode.FATAL_ERROR
    default_status = 502

    def __init__(self, message: str, step: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=self.default_status,
            error_code=self.default_code.value,
            details=details,
            step=step
        )

class JobResolutionError(PipelineError):
    default_code = ErrorCode.EXTRACTION_ERROR
    default_status = 422

class ExtractionError(JobResolutionError):
    """The job page yielded no usable description text."""

class ParsingError(PipelineError):
    default_code = ErrorCode.PARSING_ERROR

class ParsingTimeoutError(ParsingError):
    default_code = ErrorCode.PARSING_TIMEOUT
    default_status = 504

class AnalysisError(PipelineError):
    default_code = ErrorCode.ANALYSIS_ERROR

class OptimizationError(PipelineError):
    default_code = ErrorCode.OPTIMIZATION_ERROR

class InsufficientContentError(OptimizationError):
    default_code = ErrorCode.INSUFFICIENT_CONTENT_ERROR

class StepTimeoutError(PipelineError):
    default_code = ErrorCode.TIMEOUT_ERROR
    default_status = 504


# --- Collaborator errors ---

class AIError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=503,
            error_code="AI_SERVICE_UNAVAILABLE",
            details=details
        )

class AIKillSwitchError(AIError):
    def __init__(self):
        super().__init__(message="AI services are currently offline for maintenance.")
        self.error_code = "AI_KILL_SWITCH_ACTIVE"

class StorageError(AppException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code=ErrorCode.FATAL_ERROR.value,
            details=details
        )
