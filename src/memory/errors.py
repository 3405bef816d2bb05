"""
Memory retrieval error taxonomy.

Every storage failure is classified into a closed set of kinds. Retry
eligibility is decided per kind in one table.
"""

import re
from enum import Enum
from typing import Dict, Optional


class RetrievalErrorKind(str, Enum):
    CONNECTION_ERROR = "CONNECTION_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    DATA_CORRUPTION_ERROR = "DATA_CORRUPTION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# TIMEOUT_ERROR is not retried: the timed-out query may still be running
RETRYABLE: Dict[RetrievalErrorKind, bool] = {
    RetrievalErrorKind.CONNECTION_ERROR: True,
    RetrievalErrorKind.TIMEOUT_ERROR: False,
    RetrievalErrorKind.RATE_LIMIT_ERROR: True,
    RetrievalErrorKind.DATA_CORRUPTION_ERROR: False,
    RetrievalErrorKind.VALIDATION_ERROR: False,
    RetrievalErrorKind.UNKNOWN_ERROR: False,
}


def is_retryable(kind: RetrievalErrorKind) -> bool:
    return RETRYABLE[kind]


class RetrievalError(Exception):
    """A classified memory retrieval failure."""

    def __init__(
        self,
        kind: RetrievalErrorKind,
        message: str,
        attempts: int = 1,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.attempts = attempts
        self.cause = cause

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind)

    def __repr__(self) -> str:
        return f"RetrievalError({self.kind.value}, {self.message!r}, attempts={self.attempts})"


_CONNECTION_PATTERNS = (
    "connection refused",
    "connection reset",
    "not found",
    "timed out",
    "econnrefused",
    "enotfound",
    "etimedout",
    "econnreset",
    "network",
)

_RATE_LIMIT_PATTERNS = (
    "429",
    "rate limit",
    "rate-limit",
    "too many requests",
)

_CORRUPTION_PATTERNS = (
    "malformed",
    "invalid",
    "corrupt",
)

# Postgres class 08 (connection exception) and admin shutdown
_PG_CONNECTION_CODE = re.compile(r"^(08[0-9A-Z]{3}|57P01)$")


def _error_code(error: BaseException) -> str:
    for attr in ("code", "pgcode", "status_code", "status"):
        value = getattr(error, attr, None)
        if value is not None:
            return str(value)
    return ""


def classify_error(error: BaseException) -> RetrievalErrorKind:
    """
    Classify an arbitrary storage exception by its message and code.

    Args:
        error: Exception raised by the storage collaborator

    Returns:
        The matching RetrievalErrorKind (UNKNOWN_ERROR when nothing matches)
    """
    if isinstance(error, RetrievalError):
        return error.kind

    code = _error_code(error).upper()
    message = f"{error} {code}".lower()

    if _PG_CONNECTION_CODE.match(code) or any(p in message for p in _CONNECTION_PATTERNS):
        return RetrievalErrorKind.CONNECTION_ERROR
    if code == "429" or any(p in message for p in _RATE_LIMIT_PATTERNS):
        return RetrievalErrorKind.RATE_LIMIT_ERROR
    if any(p in message for p in _CORRUPTION_PATTERNS):
        return RetrievalErrorKind.DATA_CORRUPTION_ERROR

    # Bare exceptions with no useful message
    if isinstance(error, TimeoutError) and not str(error):
        return RetrievalErrorKind.TIMEOUT_ERROR
    if isinstance(error, (ConnectionError, OSError)):
        return RetrievalErrorKind.CONNECTION_ERROR
    return RetrievalErrorKind.UNKNOWN_ERROR
