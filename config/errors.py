"""Blueprint takeoff error handling.

Custom exceptions and error codes for the analysis pipeline.
"""

from typing import Optional, Dict, Any


# Error Codes
class ErrorCode:
    """Error code constants."""

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_FIELD = "INVALID_FIELD"

    # Analysis Errors
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    ANALYSIS_CANCELLED = "ANALYSIS_CANCELLED"

    # LLM Errors
    LLM_ERROR = "LLM_ERROR"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RATE_LIMIT = "LLM_RATE_LIMIT"
    LLM_CONNECTION_ERROR = "LLM_CONNECTION_ERROR"
    LLM_CONTEXT_TOO_LONG = "LLM_CONTEXT_TOO_LONG"


# Upstream failures worth another attempt
TRANSIENT_ERROR_CODES = frozenset({
    ErrorCode.LLM_ERROR,
    ErrorCode.LLM_TIMEOUT,
    ErrorCode.LLM_RATE_LIMIT,
    ErrorCode.LLM_CONNECTION_ERROR,
})


class TakeoffError(Exception):
    """Base exception for blueprint takeoff errors.

    Provides structured error information for callers.

    Attributes:
        code: Error code from ErrorCode constants
        message: Human-readable error message
        details: Additional error context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Initialize TakeoffError.

        Args:
            code: Error code from ErrorCode constants
            message: Human-readable error message
            details: Additional error context
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request may succeed."""
        return self.code in TRANSIENT_ERROR_CODES

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response.

        Returns:
            Dictionary with code, message, and details.
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }

    def __repr__(self) -> str:
        return f"TakeoffError(code={self.code!r}, message={self.message!r})"


class ValidationError(TakeoffError):
    """Validation-specific error."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={**(details or {}), "field": field} if field else details
        )


class AnalysisFailedError(TakeoffError):
    """Terminal failure after the retry budget is exhausted."""

    USER_MESSAGE = (
        "We couldn't analyze these blueprints right now. "
        "Please try again in a few minutes, or upload clearer images."
    )

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error_code: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        super().__init__(
            code=ErrorCode.ANALYSIS_FAILED,
            message=f"{message} (after {attempts} attempt{'s' if attempts != 1 else ''})",
            details={
                **(details or {}),
                "attempts": attempts,
                "last_error_code": last_error_code,
            }
        )
        self.attempts = attempts
        self.last_error_code = last_error_code

    @property
    def user_message(self) -> str:
        """Actionable message safe to show to end users."""
        return self.USER_MESSAGE


class AnalysisCancelledError(TakeoffError):
    """Raised when the caller cancels an in-flight analysis."""

    def __init__(self, attempts: int = 0):
        super().__init__(
            code=ErrorCode.ANALYSIS_CANCELLED,
            message="Analysis was cancelled",
            details={"attempts": attempts}
        )
        self.attempts = attempts
