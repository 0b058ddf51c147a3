import pytest
from sqlalchemy.exc import OperationalError

from utils.retry import run_with_retry


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("server closed the connection"))


def test_returns_first_success():
    assert run_with_retry(lambda: 42, sleep=lambda s: None) == 42


def test_retries_transient_errors_with_backoff():
    calls = []
    sleeps = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _operational_error()
        return "rows"

    result = run_with_retry(flaky, attempts=3, base_sleep=0.5, sleep=sleeps.append)

    assert result == "rows"
    assert sleeps == [0.5, 1.0]


def test_gives_up_after_attempts():
    calls = []
    rollbacks = []

    def down():
        calls.append(1)
        raise _operational_error()

    with pytest.raises(OperationalError):
        run_with_retry(down, attempts=3, base_sleep=0, sleep=lambda s: None,
                       on_retry=lambda: rollbacks.append(1))

    assert len(calls) == 3
    assert len(rollbacks) == 2


def test_non_transient_errors_propagate_immediately():
    calls = []

    def bad():
        calls.append(1)
        raise ValueError("bad query")

    with pytest.raises(ValueError):
        run_with_retry(bad, attempts=5, sleep=lambda s: None)

    assert len(calls) == 1


def test_at_least_one_attempt():
    assert run_with_retry(lambda: "x", attempts=0, sleep=lambda s: None) == "x"
