"""
Domain errors and helpers for turning them into HTTP responses.

Every error carries a human-readable message only; no structured codes are
returned to clients.
"""
import logging
from typing import Optional

from fastapi import HTTPException

logger = logging.getLogger(__name__)

GENERIC_BACKEND_MESSAGE = "Terjadi kesalahan pada server. Silakan coba lagi."


class UjianError(Exception):
    """Base class for errors shown to the user as a plain message."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(UjianError):
    """Unknown identifier or wrong credential."""
    status_code = 401


class ValidationFailed(UjianError):
    """Malformed input that blocks the requested action."""
    status_code = 400


class NotFoundError(UjianError):
    status_code = 404


class BackendError(UjianError):
    """Data store or file storage failure. Never retried."""
    status_code = 503

    def __init__(self, message: str = GENERIC_BACKEND_MESSAGE):
        super().__init__(message)


class LiveChannelError(UjianError):
    """Live channel could not be joined. Callers degrade instead of raising."""
    status_code = 503


def safe_raise_http(user_message: str, exc: Optional[Exception] = None, status_code: int = 500) -> None:
    """
    Log the full exception server-side and raise a generic HTTPException for clients.

    - user_message: short, non-sensitive message returned to client
    - exc: optional exception instance; full details are logged with stack trace
    - status_code: HTTP status code to raise
    """
    if exc is not None:
        logger.exception("%s: %s", user_message, exc)
    else:
        logger.error(user_message)
    raise HTTPException(status_code=status_code, detail=user_message)


def safe_log(user_message: str, exc: Optional[Exception] = None) -> None:
    """
    Log exceptions safely on the server. Prefer logger.exception to capture stack traces.
    """
    if exc is not None:
        logger.exception("%s: %s", user_message, exc)
    else:
        logger.error(user_message)
