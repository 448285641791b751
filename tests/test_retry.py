import pytest

from fieldroute.errors import ProviderUnavailable
from fieldroute.services.routing.retry import RateLimited, RetryPolicy, TransientProviderError


class FlakyOperation:
    def __init__(self, failures):
        self.failures = list(failures)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_retries_transient_failures_with_short_backoff():
    sleeps = []
    operation = FlakyOperation([TransientProviderError("500"), TransientProviderError("timeout")])

    result = RetryPolicy(sleep=sleeps.append).run(operation)

    assert result == "ok"
    assert operation.calls == 3
    assert sleeps == [1.0, 1.0]


def test_rate_limit_waits_longer():
    sleeps = []
    operation = FlakyOperation([RateLimited("429")])

    RetryPolicy(sleep=sleeps.append).run(operation)

    assert sleeps == [2.0]


def test_exhausted_without_fallback_raises_provider_unavailable():
    sleeps = []
    operation = FlakyOperation([TransientProviderError("boom")] * 5)

    with pytest.raises(ProviderUnavailable) as excinfo:
        RetryPolicy(sleep=sleeps.append).run(operation, description="table")

    assert operation.calls == 3
    assert len(sleeps) == 2
    assert isinstance(excinfo.value.__cause__, TransientProviderError)
    assert isinstance(excinfo.value, ConnectionError)


def test_exhausted_with_fallback_returns_fallback_value():
    operation = FlakyOperation([RateLimited("429")] * 3)

    result = RetryPolicy(sleep=lambda _: None).run(operation, fallback=lambda: "approx")

    assert result == "approx"
    assert operation.calls == 3


def test_unrelated_errors_are_not_retried():
    def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        RetryPolicy(sleep=lambda _: None).run(broken)


def test_custom_attempts_and_backoff():
    sleeps = []
    operation = FlakyOperation([TransientProviderError("x")] * 4)
    policy = RetryPolicy(max_attempts=5, backoff_seconds=0.25, sleep=sleeps.append)

    assert policy.run(operation) == "ok"
    assert sleeps == [0.25] * 4


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
