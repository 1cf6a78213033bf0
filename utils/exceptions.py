"""
Normalized error model shared by the dispatcher, adapters and middleware.
"""
from typing import Optional, Dict, Any


ERR_CODE_THROTTLING = "aws.throttling"
ERR_CODE_AUTHENTICATION_FAILED = "aws.authentication_failed"
ERR_CODE_AUTHORIZATION_FAILED = "aws.authorization_failed"
ERR_CODE_SERVICE_UNAVAILABLE = "aws.service_unavailable"
ERR_CODE_INVALID_REQUEST = "aws.invalid_request"
ERR_CODE_NOT_FOUND = "aws.not_found"
ERR_CODE_CONFLICT = "aws.conflict"
ERR_CODE_CONDITIONAL_CHECK_FAILED = "aws.conditional_check_failed"

_DEFAULT_STATUS_CODES = {
    ERR_CODE_INVALID_REQUEST: 400,
    ERR_CODE_AUTHENTICATION_FAILED: 401,
    ERR_CODE_AUTHORIZATION_FAILED: 403,
    ERR_CODE_NOT_FOUND: 404,
    ERR_CODE_CONFLICT: 409,
    ERR_CODE_CONDITIONAL_CHECK_FAILED: 412,
    ERR_CODE_THROTTLING: 429,
    ERR_CODE_SERVICE_UNAVAILABLE: 503,
}


def default_status_code(code: str) -> int:
    """Return the HTTP-like status conventionally paired with an error code."""
    return _DEFAULT_STATUS_CODES.get(code, 500)


class CloudError(Exception):
    """Exception raised for every failure surfaced by the cloud client."""

    def __init__(
        self,
        code: str,
        message: str,
        retriable: bool = False,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize a normalized error.

        Args:
            code: Machine-readable code, e.g. "aws.invalid_request" or
                "sqs.send_message.error"
            message: Human-readable message
            retriable: Hint that the same operation may be re-attempted
            cause: Underlying SDK error, if any
            status_code: HTTP-like classification (derived from code if omitted)
            metadata: Free-form error metadata
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.retriable = retriable
        self.cause = cause
        self.status_code = status_code if status_code is not None else default_status_code(code)
        self.metadata: Dict[str, Any] = dict(metadata) if metadata else {}
        # Keeps the original reachable through standard exception chaining
        self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code}: {self.message} (caused by: {self.cause})"
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"CloudError(code={self.code!r}, message={self.message!r}, "
            f"retriable={self.retriable!r}, status_code={self.status_code!r})"
        )

    def unwrap(self) -> Optional[BaseException]:
        """Return the underlying error."""
        return self.cause

    def is_retriable(self) -> bool:
        return self.retriable

    def with_metadata(self, key: str, value: Any) -> "CloudError":
        """
        Annotate the error in place.

        Returns:
            The same error instance, so calls can be chained
        """
        self.metadata[key] = value
        return self


def new_error(code: str, message: str) -> CloudError:
    """Create an error with no underlying cause."""
    return CloudError(code, message)


def new_error_with_cause(code: str, message: str, cause: BaseException) -> CloudError:
    """Create an error wrapping an underlying cause."""
    return CloudError(code, message, cause=cause)
