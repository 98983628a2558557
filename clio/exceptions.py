"""Custom exception hierarchy for Clio."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses and job failures."""

    # Job errors
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_TIMEOUT = "JOB_TIMEOUT"

    # Version errors
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"

    # Repository errors
    REPOSITORY_NOT_FOUND = "REPOSITORY_NOT_FOUND"
    INSTALLATION_NOT_FOUND = "INSTALLATION_NOT_FOUND"

    # Pipeline errors
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    GENERATION_FAILED = "GENERATION_FAILED"
    GITHUB_API_ERROR = "GITHUB_API_ERROR"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ClioException(Exception):
    """
    Base exception for all Clio errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    - A ``temporary`` flag the job orchestrator reads when deciding on a retry
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        temporary: bool = False,
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
            temporary: True when retrying the same work may succeed
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.temporary = temporary

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class JobNotFoundError(ClioException):
    """README job not found in database."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job not found: {job_id}",
            ErrorCode.JOB_NOT_FOUND,
            status_code=404,
            details={"job_id": job_id}
        )


class VersionNotFoundError(ClioException):
    """README version not found in database."""

    def __init__(self, version_id: str):
        super().__init__(
            f"Version not found: {version_id}",
            ErrorCode.VERSION_NOT_FOUND,
            status_code=404,
            details={"version_id": version_id}
        )


class RepositoryNotFoundError(ClioException):
    """Repository row missing, or not linked to a GitHub App installation."""

    def __init__(self, repository_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Repository not found: {repository_id}",
            ErrorCode.REPOSITORY_NOT_FOUND,
            status_code=404,
            details={"repository_id": repository_id}
        )


class InstallationNotFoundError(ClioException):
    """GitHub App installation missing for a repository."""

    def __init__(self, repository_id: str):
        super().__init__(
            "Repository or installation not found",
            ErrorCode.INSTALLATION_NOT_FOUND,
            status_code=404,
            details={"repository_id": repository_id}
        )


class GitHubAPIError(ClioException):
    """GitHub REST call failed.

    ``temporary`` is set for transport errors, 5xx responses and rate limits.
    """

    def __init__(self, message: str, status: int = 0, temporary: bool = False):
        super().__init__(
            message,
            ErrorCode.GITHUB_API_ERROR,
            status_code=502,
            details={"github_status": status},
            temporary=temporary,
        )
        self.status = status


class AnalysisError(ClioException):
    """Repository analysis could not produce a result."""

    def __init__(self, message: str, temporary: bool = False, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.ANALYSIS_FAILED,
            status_code=502,
            details=details,
            temporary=temporary,
        )


class GenerationError(ClioException):
    """The language model call failed or returned nothing usable."""

    def __init__(self, message: str, temporary: bool = False, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            ErrorCode.GENERATION_FAILED,
            status_code=502,
            details=details,
            temporary=temporary,
        )


class JobTimeoutError(ClioException):
    """A job attempt exceeded its wall-clock budget."""

    def __init__(self, job_id: str, timeout_seconds: float):
        super().__init__(
            f"Job {job_id} timed out after {timeout_seconds:g}s",
            ErrorCode.JOB_TIMEOUT,
            status_code=504,
            details={"job_id": job_id, "timeout_seconds": timeout_seconds},
            temporary=True,
        )


class ValidationError(ClioException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class AuthenticationError(ClioException):
    """Request lacks valid authentication credentials."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )


class ForbiddenError(ClioException):
    """Authenticated user lacks permission for the requested resource."""

    def __init__(self, message: str = "You do not have permission to access this resource"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class DatabaseError(ClioException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )


# Lower-cased substrings that mark a foreign error message as transient.
TRANSIENT_MARKERS = ("timeout", "timed out", "network", "connection", "rate limit", "temporary")


def looks_transient(message: str) -> bool:
    """True when an error message reads like a timeout, network or rate-limit failure."""
    message = (message or "").lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)
