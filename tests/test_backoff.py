import random
import threading
import time

from job_harvester.backoff import BackoffPolicy
from job_harvester.cancel import CancellationToken


def test_delay_grows_exponentially_without_jitter():
    policy = BackoffPolicy(base_seconds=10, factor=2, max_seconds=120, jitter=0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [10, 20, 40, 80]


def test_delay_is_capped():
    policy = BackoffPolicy(base_seconds=10, factor=2, max_seconds=30, jitter=0)
    assert policy.delay_for(6) == 30


def test_jitter_stays_within_bounds():
    policy = BackoffPolicy(base_seconds=10, factor=2, max_seconds=120, jitter=0.2)
    rng = random.Random(7)
    for _ in range(50):
        delay = policy.delay_for(2, rng=rng)
        assert 16 <= delay <= 24


def test_zero_attempt_has_no_delay():
    assert BackoffPolicy().delay_for(0) == 0.0


def test_wait_returns_false_when_cancelled():
    token = CancellationToken()
    token.cancel("stop")
    policy = BackoffPolicy(base_seconds=5, jitter=0)
    assert policy.wait(1, token) is False


def test_token_sleep_wakes_early_on_cancel():
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel, args=("interrupted",))
    timer.start()
    started = time.monotonic()

    completed = token.sleep(5)

    assert completed is False
    assert time.monotonic() - started < 2
    assert token.reason == "interrupted"


def test_token_sleep_zero_returns_immediately():
    assert CancellationToken().sleep(0) is True
