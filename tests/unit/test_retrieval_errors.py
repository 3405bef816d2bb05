"""
Unit tests for retrieval error classification and the retry policy
"""
import pytest

from memory.errors import RETRYABLE, RetrievalError, RetrievalErrorKind, classify_error, is_retryable
from memory.retry import RetryPolicy


class CodedError(Exception):
    def __init__(self, message: str = "", code=None):
        super().__init__(message)
        self.code = code


def test_retryable_table_covers_every_kind():
    """Test retry eligibility is decided for every error kind"""
    assert set(RETRYABLE) == set(RetrievalErrorKind)
    retryable = {kind for kind in RetrievalErrorKind if is_retryable(kind)}
    assert retryable == {RetrievalErrorKind.CONNECTION_ERROR, RetrievalErrorKind.RATE_LIMIT_ERROR}


@pytest.mark.parametrize("message", [
    "connect ECONNREFUSED 10.0.0.1:5432",
    "getaddrinfo ENOTFOUND db.internal",
    "read ETIMEDOUT",
    "Connection refused",
    "socket hang up: ECONNRESET",
    "relation not found",
    "query timed out",
    "network unreachable",
])
def test_connection_messages(message):
    assert classify_error(Exception(message)) == RetrievalErrorKind.CONNECTION_ERROR


@pytest.mark.parametrize("code", ["08000", "08003", "08006", "57P01"])
def test_postgres_connection_codes(code):
    assert classify_error(CodedError("server closed", code=code)) == RetrievalErrorKind.CONNECTION_ERROR


@pytest.mark.parametrize("error", [
    Exception("429 Too Many Requests"),
    Exception("Rate limit exceeded"),
    CodedError("slow down", code=429),
])
def test_rate_limit(error):
    assert classify_error(error) == RetrievalErrorKind.RATE_LIMIT_ERROR


@pytest.mark.parametrize("message", ["malformed array literal", "invalid input syntax", "corrupt page"])
def test_data_corruption(message):
    assert classify_error(ValueError(message)) == RetrievalErrorKind.DATA_CORRUPTION_ERROR


def test_unknown():
    assert classify_error(RuntimeError("something odd")) == RetrievalErrorKind.UNKNOWN_ERROR


def test_bare_builtin_exceptions():
    assert classify_error(TimeoutError()) == RetrievalErrorKind.TIMEOUT_ERROR
    assert classify_error(ConnectionResetError()) == RetrievalErrorKind.CONNECTION_ERROR


def test_timeout_error_with_message_is_connection_error():
    assert classify_error(TimeoutError("connection timed out")) == RetrievalErrorKind.CONNECTION_ERROR
    assert classify_error(TimeoutError("socket deadline")) == RetrievalErrorKind.CONNECTION_ERROR


def test_retrieval_error_keeps_its_kind():
    error = RetrievalError(RetrievalErrorKind.VALIDATION_ERROR, "connection refused")
    assert classify_error(error) == RetrievalErrorKind.VALIDATION_ERROR
    assert not error.retryable


def test_delay_schedule():
    """Test delay = min(initial * multiplier^(attempt-1), max)"""
    policy = RetryPolicy(max_attempts=5, initial_delay=0.1, max_delay=0.5, multiplier=2.0)
    assert policy.delay_for(1) == pytest.approx(0.1)
    assert policy.delay_for(2) == pytest.approx(0.2)
    assert policy.delay_for(3) == pytest.approx(0.4)
    assert policy.delay_for(4) == pytest.approx(0.5)


def test_policy_is_immutable():
    policy = RetryPolicy()
    with pytest.raises(AttributeError):
        policy.max_attempts = 10


@pytest.mark.parametrize("kwargs", [
    {"max_attempts": 0},
    {"initial_delay": -1},
    {"multiplier": 0.5},
])
def test_policy_validation(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_from_attempts_zero_means_single_attempt():
    assert RetryPolicy.from_attempts(0).max_attempts == 1
    assert RetryPolicy.from_attempts(4).max_attempts == 4


@pytest.mark.asyncio
async def test_retrying_stops_on_non_retryable():
    """Test non-retryable errors are re-raised after one attempt"""
    policy = RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0)
    attempts = 0

    with pytest.raises(RetrievalError) as exc_info:
        async for attempt in policy.retrying("test"):
            with attempt:
                attempts += 1
                raise RetrievalError(RetrievalErrorKind.TIMEOUT_ERROR, "slow")

    assert attempts == 1
    assert exc_info.value.kind == RetrievalErrorKind.TIMEOUT_ERROR


@pytest.mark.asyncio
async def test_retrying_exhausts_retryable():
    policy = RetryPolicy(max_attempts=3, initial_delay=0, max_delay=0)
    attempts = 0

    with pytest.raises(RetrievalError):
        async for attempt in policy.retrying("test"):
            with attempt:
                attempts += 1
                raise RetrievalError(RetrievalErrorKind.RATE_LIMIT_ERROR, "429")

    assert attempts == 3
