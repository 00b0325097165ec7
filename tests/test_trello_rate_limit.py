import random

import pytest

from trello_rate_limit import MAX_REQUEST_DELAY, MIN_REQUEST_DELAY, RateLimitConfig, compute_backoff


class _FixedRandom(random.Random):
    def __init__(self, value: float):
        super().__init__()
        self._value = value

    def random(self) -> float:
        return self._value


def test_default_window_matches_trello_backoff():
    cfg = RateLimitConfig()
    assert (cfg.min_delay, cfg.max_delay) == (MIN_REQUEST_DELAY, MAX_REQUEST_DELAY) == (0.5, 7.0)
    assert cfg.max_retries == 3


@pytest.mark.parametrize("r, expected", [(0.0, 0.5), (0.5, 3.75), (0.999999, 6.9999935)])
def test_backoff_maps_unit_interval_onto_window(r, expected):
    assert compute_backoff(RateLimitConfig(), _FixedRandom(r)) == pytest.approx(expected)


def test_backoff_stays_inside_half_open_window():
    cfg = RateLimitConfig()
    rng = random.Random(1234)
    delays = [compute_backoff(cfg, rng) for _ in range(2000)]
    assert all(0.5 <= d < 7.0 for d in delays)


def test_allows_retry_bounded_and_unbounded():
    bounded = RateLimitConfig(max_retries=2)
    assert bounded.allows_retry(0)
    assert bounded.allows_retry(1)
    assert not bounded.allows_retry(2)

    unbounded = RateLimitConfig(max_retries=None)
    assert unbounded.unbounded
    assert unbounded.allows_retry(10_000)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"min_delay": -1},
        {"min_delay": 5, "max_delay": 1},
        {"max_retries": -1},
    ],
)
def test_invalid_config_rejected(kwargs):
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)
