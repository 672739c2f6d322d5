"""Tests for the call-level retry policy."""

import pytest

from novelgen.story.errors import (
    GenerationNetworkError,
    GenerationTimeoutError,
    InvalidRequestError,
    MalformedOutputError,
    RateLimitError,
    UpstreamServerError,
)
from novelgen.story.retry_policy import RetryPolicy, is_retryable


class Scripted:
    """Callable that raises or returns scripted outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def delays():
    return []


@pytest.fixture
def policy(delays):
    return RetryPolicy(max_retries=3, base_delay_ms=1000, max_delay_ms=30000, sleep=delays.append)


class TestClassification:
    """Which errors are worth another call."""

    @pytest.mark.parametrize(
        "error",
        [
            RateLimitError(),
            UpstreamServerError("502", 502),
            GenerationNetworkError("reset"),
            GenerationTimeoutError("slow"),
            TimeoutError(),
            ConnectionResetError(),
        ],
    )
    def test_transient(self, error):
        assert is_retryable(error)

    @pytest.mark.parametrize(
        "error",
        [
            InvalidRequestError("bad request", 400),
            MalformedOutputError("empty"),
            ValueError("bug"),
        ],
    )
    def test_fatal(self, error):
        assert not is_retryable(error)


class TestBackoff:
    """Delay schedule."""

    def test_doubles_from_base(self, policy):
        assert [policy.compute_delay_ms(a) for a in range(4)] == [1000, 2000, 4000, 8000]

    def test_capped_at_max(self):
        policy = RetryPolicy(max_retries=10, base_delay_ms=1000, max_delay_ms=5000)
        assert policy.compute_delay_ms(6) == 5000

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=0)


class TestCall:
    """The attempt loop."""

    def test_first_success_does_not_sleep(self, policy, delays):
        operation = Scripted("text")

        assert policy.call(operation) == "text"
        assert operation.calls == 1
        assert delays == []

    def test_recovers_after_transient_failures(self, policy, delays):
        operation = Scripted(RateLimitError(), GenerationTimeoutError("slow"), "text")

        assert policy.call(operation) == "text"
        assert operation.calls == 3
        assert delays == [1.0, 2.0]

    def test_no_sleep_after_final_attempt(self, policy, delays):
        operation = Scripted(RateLimitError(), RateLimitError(), RateLimitError("still limited"))

        with pytest.raises(RateLimitError, match="still limited"):
            policy.call(operation)

        assert operation.calls == 3
        assert delays == [1.0, 2.0]

    def test_fatal_error_raised_immediately(self, policy, delays):
        operation = Scripted(InvalidRequestError("unknown model", 404), "never")

        with pytest.raises(InvalidRequestError):
            policy.call(operation)

        assert operation.calls == 1
        assert delays == []
