"""Error taxonomy for Subculture Ground API interactions."""

from typing import Optional

import httpx


class SubgroundError(Exception):
    """Base exception for all subground errors."""
    pass


class APIError(SubgroundError):
    """Base exception for transport and HTTP errors."""
    pass


class NetworkError(APIError):
    """Transport-level failure (connection refused, timeout, ...)."""
    pass


class ResponseError(APIError):
    """Server answered with an error status or an unusable payload."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[httpx.Response] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class AuthError(ResponseError):
    """Authentication failure (HTTP 401)."""
    pass


class CodecError(SubgroundError):
    """Base exception for envelope encoding errors."""
    pass


class EncryptionError(CodecError):
    """Outbound value could not be serialized or encrypted."""
    pass


class DecryptionError(CodecError):
    """
    Inbound payload could not be decrypted.

    The message carries the failure reason and a bounded excerpt of the
    encrypted input. It never carries the secret or recovered plaintext.
    """

    def __init__(self, reason: str, excerpt: str = ""):
        message = f"Decryption failed: {reason}"
        if excerpt:
            message = f"{message} (encrypted data: {excerpt!r})"
        super().__init__(message)
        self.reason = reason
        self.excerpt = excerpt


HTTP_STATUS_MESSAGES = {
    400: "Bad request",
    401: "Authentication required",
    403: "Forbidden",
    404: "Not found",
    409: "Conflict",
    422: "Unprocessable payload",
    429: "Too many requests",
    500: "Internal server error",
    502: "Bad gateway",
    503: "Service unavailable",
}


def get_error_message(status_code: int) -> str:
    """
    Get user-friendly error message for HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        Error message string
    """
    return HTTP_STATUS_MESSAGES.get(
        status_code,
        f"Unknown error (HTTP {status_code})"
    )


def error_for_response(response: httpx.Response, context: str = "") -> ResponseError:
    """
    Build the exception matching an error response.

    Args:
        response: httpx response with status >= 400
        context: Additional context for error message (e.g. "GET /events")

    Returns:
        AuthError for 401, ResponseError otherwise
    """
    status_code = response.status_code
    msg = f"{get_error_message(status_code)} (HTTP {status_code})"
    if context:
        msg = f"{msg} [{context}]"

    if status_code == 401:
        return AuthError(msg, status_code=status_code, response=response)
    return ResponseError(msg, status_code=status_code, response=response)


def is_auth_failure(error: BaseException) -> bool:
    """
    Check if an error means the bearer token was rejected.

    Args:
        error: Exception to check

    Returns:
        True if the error carries HTTP status 401
    """
    return getattr(error, "status_code", None) == 401
