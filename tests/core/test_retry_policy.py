import pytest

from meetflow.core.enums import ErrorKind
from meetflow.core.errors import PermanentError, TransientError
from meetflow.core.jobs.service.retry import RetryPolicy, classify_error, with_retry


@pytest.mark.parametrize("error, expected", [
    (TransientError("provider busy"), ErrorKind.TRANSIENT),
    (PermanentError("corrupt media"), ErrorKind.PERMANENT),
    (TimeoutError(), ErrorKind.TRANSIENT),
    (ConnectionError("reset"), ErrorKind.TRANSIENT),
    (RuntimeError("429 Too Many Requests"), ErrorKind.TRANSIENT),
    (RuntimeError("Rate limit reached"), ErrorKind.TRANSIENT),
    (RuntimeError("read ECONNRESET"), ErrorKind.TRANSIENT),
    (RuntimeError("401 Unauthorized"), ErrorKind.PERMANENT),
    (RuntimeError("invalid request: bad payload"), ErrorKind.PERMANENT),
    (ValueError("something odd"), ErrorKind.PERMANENT),
])
def test_classify_error(error, expected):
    assert classify_error(error) == expected


def test_delay_grows_exponentially_and_is_capped():
    policy = RetryPolicy(max_retries=10, initial_delay=1.0, max_delay=30.0, backoff_multiplier=2.0, jitter=0.2)

    # rand() = 0.5 means no jitter
    assert policy.delay_for(0, rand=lambda: 0.5) == pytest.approx(1.0)
    assert policy.delay_for(1, rand=lambda: 0.5) == pytest.approx(2.0)
    assert policy.delay_for(2, rand=lambda: 0.5) == pytest.approx(4.0)
    assert policy.delay_for(10, rand=lambda: 0.5) == pytest.approx(30.0)

    # +/- 20% jitter bounds
    assert policy.delay_for(1, rand=lambda: 0.0) == pytest.approx(1.6)
    assert policy.delay_for(1, rand=lambda: 1.0) == pytest.approx(2.4)


def test_with_retry_recovers_from_transient_errors():
    calls = []
    sleeps = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise TransientError("503 Service Unavailable")
        return "ok"

    result = with_retry(flaky, RetryPolicy(max_retries=3), operation_name="flaky", sleep=sleeps.append)

    assert result == "ok"
    assert len(calls) == 3
    assert len(sleeps) == 2


def test_with_retry_gives_up_after_budget():
    calls = []

    def always_busy():
        calls.append(1)
        raise TransientError("overloaded")

    with pytest.raises(TransientError):
        with_retry(always_busy, RetryPolicy(max_retries=2), operation_name="busy", sleep=lambda _s: None)

    # First call + 2 retries
    assert len(calls) == 3


def test_with_retry_does_not_retry_permanent_errors():
    calls = []

    def broken():
        calls.append(1)
        raise PermanentError("unsupported format")

    with pytest.raises(PermanentError):
        with_retry(broken, RetryPolicy(max_retries=5), operation_name="broken", sleep=lambda _s: None)

    assert len(calls) == 1
