# trello_rate_limit.py
from __future__ import annotations
import random
from dataclasses import dataclass
from typing import Optional

# Trello asks clients to slow down with a bare 429; we never read Retry-After
MIN_REQUEST_DELAY = 0.5
MAX_REQUEST_DELAY = 7.0
DEFAULT_MAX_RETRIES = 3

@dataclass(frozen=True)
class RateLimitConfig:
    # lower bound of the jitter window, seconds
    min_delay: float = MIN_REQUEST_DELAY
    # upper bound (exclusive), seconds
    max_delay: float = MAX_REQUEST_DELAY
    # retries after the first 429; None retries forever
    max_retries: Optional[int] = DEFAULT_MAX_RETRIES

    def __post_init__(self) -> None:
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError(f"Invalid backoff window [{self.min_delay}, {self.max_delay})")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries must be >= 0 or None")

    @property
    def unbounded(self) -> bool:
        return self.max_retries is None

    def allows_retry(self, retries_done: int) -> bool:
        return self.max_retries is None or retries_done < self.max_retries


def compute_backoff(cfg: RateLimitConfig, rng: random.Random | None = None) -> float:
    # uniform in [min_delay, max_delay); random() never returns 1.0
    r = (rng or random).random()
    return cfg.min_delay + r * (cfg.max_delay - cfg.min_delay)
