import pytest

from trader.common.config import RetrySettings
from trader.common.errors import BrokerError
from trader.execution.retry import RetryPolicy, submit_with_retry


class _FlakySubmit:
    """Fails the first `failures` calls with `error`, then succeeds."""

    def __init__(self, failures: int, error: BrokerError | None = None):
        self.failures = failures
        self.error = error or BrokerError("service unavailable", status_code=503)
        self.calls = 0

    async def __call__(self, order):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return {"id": "order_1", "order": order}


class _RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay_s: float) -> None:
        self.delays.append(delay_s)


@pytest.mark.asyncio
@pytest.mark.parametrize("n", [1, 2, 3, 5])
async def test_succeeds_on_attempt_n_after_exactly_n_calls(n):
    submit = _FlakySubmit(failures=n - 1)
    sleep = _RecordingSleep()
    policy = RetryPolicy(max_attempts=5, initial_backoff_s=0.1, max_backoff_s=1.0)

    result = await submit_with_retry(submit, "req", policy=policy, sleep=sleep)

    assert result == {"id": "order_1", "order": "req"}
    assert submit.calls == n
    assert len(sleep.delays) == n - 1


@pytest.mark.asyncio
async def test_exhaustion_returns_last_failure_after_max_attempts_calls():
    errors = [BrokerError(f"boom {i}", status_code=500) for i in range(10)]

    class _AlwaysFails:
        calls = 0

        async def __call__(self, order):
            err = errors[self.calls]
            self.calls += 1
            raise err

    submit = _AlwaysFails()
    with pytest.raises(BrokerError) as exc:
        await submit_with_retry(submit, "req", policy=RetryPolicy(max_attempts=4), sleep=_RecordingSleep())
    assert submit.calls == 4
    assert exc.value is errors[3]


@pytest.mark.asyncio
async def test_terminal_error_is_not_retried():
    submit = _FlakySubmit(failures=10, error=BrokerError("insufficient buying power", status_code=403))
    with pytest.raises(BrokerError):
        await submit_with_retry(submit, "req", policy=RetryPolicy(max_attempts=5), sleep=_RecordingSleep())
    assert submit.calls == 1


@pytest.mark.asyncio
async def test_retry_terminal_errors_restores_uniform_policy():
    submit = _FlakySubmit(failures=2, error=BrokerError("unprocessable", status_code=422))
    policy = RetryPolicy(max_attempts=3, retry_terminal_errors=True)
    await submit_with_retry(submit, "req", policy=policy, sleep=_RecordingSleep())
    assert submit.calls == 3


@pytest.mark.asyncio
async def test_non_broker_errors_propagate_immediately():
    calls = 0

    async def _buggy(order):
        nonlocal calls
        calls += 1
        raise KeyError("bug")

    with pytest.raises(KeyError):
        await submit_with_retry(_buggy, "req", policy=RetryPolicy(max_attempts=3), sleep=_RecordingSleep())
    assert calls == 1


def test_backoff_is_monotonic_and_capped():
    policy = RetryPolicy(max_attempts=10, initial_backoff_s=0.5, max_backoff_s=3.0, multiplier=2.0)
    delays = [policy.delay_for(a) for a in range(1, 10)]
    assert delays[:3] == [0.5, 1.0, 2.0]
    assert all(b >= a for a, b in zip(delays, delays[1:]))
    assert max(delays) == 3.0


@pytest.mark.asyncio
async def test_sleeps_follow_policy_delays():
    submit = _FlakySubmit(failures=3)
    sleep = _RecordingSleep()
    policy = RetryPolicy(max_attempts=4, initial_backoff_s=0.25, max_backoff_s=0.75)
    await submit_with_retry(submit, "req", policy=policy, sleep=sleep)
    assert sleep.delays == [0.25, 0.5, 0.75]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"initial_backoff_s": -1},
        {"multiplier": 0.5},
    ],
)
def test_invalid_policy(kwargs):
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_policy_from_settings():
    policy = RetryPolicy.from_settings(
        RetrySettings(max_attempts=7, initial_backoff_s=0.1, max_backoff_s=2.0, retry_all_errors=True)
    )
    assert policy.max_attempts == 7
    assert policy.initial_backoff_s == 0.1
    assert policy.max_backoff_s == 2.0
    assert policy.retry_terminal_errors is True


@pytest.mark.parametrize(
    "status_code, retryable",
    [(None, True), (408, True), (429, True), (500, True), (503, True), (400, False), (403, False), (422, False)],
)
def test_broker_error_classification(status_code, retryable):
    assert BrokerError("x", status_code=status_code).retryable is retryable
