# trello_config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

@dataclass(frozen=True)
class TrelloConfig:
    api_key: str
    api_token: str
    api_base: str = "https://api.trello.com"
    timeout_seconds: Optional[float] = 30
    # backoff window on 429, seconds
    rate_limit_min_delay: float = 0.5
    rate_limit_max_delay: float = 7.0
    # None = retry forever
    rate_limit_max_retries: Optional[int] = 3


def _parse_retries(raw: str) -> Optional[int]:
    raw = raw.strip().lower()
    if raw in ("none", "unbounded", "inf"):
        return None
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"TRELLO_MAX_RATE_LIMIT_RETRIES must be an integer or 'none', got {raw!r}") from None
    if value < 0:
        raise RuntimeError("TRELLO_MAX_RATE_LIMIT_RETRIES must be >= 0 or 'none'")
    return value


def _parse_timeout(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"TRELLO_TIMEOUT_SECONDS must be a number, got {raw!r}") from None
    # 0 or less disables the timeout
    return value if value > 0 else None


def load_config() -> TrelloConfig:
    load_dotenv()

    trello_key = os.getenv("TRELLO_API_KEY", "").strip()
    trello_token = os.getenv("TRELLO_API_TOKEN", "").strip()
    if not trello_key or not trello_token:
        raise RuntimeError("Missing Trello credentials. Set TRELLO_API_KEY and TRELLO_API_TOKEN")

    api_base = os.getenv("TRELLO_API_BASE", "").strip() or TrelloConfig.api_base
    timeout = _parse_timeout(os.getenv("TRELLO_TIMEOUT_SECONDS", "30"))
    retries = _parse_retries(os.getenv("TRELLO_MAX_RATE_LIMIT_RETRIES", "3"))

    return TrelloConfig(
        api_key=trello_key,
        api_token=trello_token,
        api_base=api_base.rstrip("/"),
        timeout_seconds=timeout,
        rate_limit_max_retries=retries,
    )
