"""Shared fixtures: fake requests responses and a mock session transport."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests
from requests.structures import CaseInsensitiveDict


def make_response(
    status: int = 200,
    json_data: Any = None,
    text: str | None = None,
    reason: str = "OK",
    url: str = "https://api.trello.com/",
    headers: dict[str, str] | None = None,
) -> MagicMock:
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.reason = reason
    resp.url = url
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.text = text if text is not None else ("" if json_data is None else repr(json_data))
    if json_data is None:
        resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", resp.text, 0)
    else:
        resp.json.return_value = json_data
    return resp


def rate_limited() -> MagicMock:
    return make_response(429, text="Rate limit exceeded", reason="Too Many Requests")


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def no_sleep():
    """Backoff sleeps return immediately; the mock records requested delays."""
    with patch("trello_http.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


def sent_call(session: MagicMock, index: int = 0) -> tuple[str, str, dict[str, Any]]:
    args, kwargs = session.request.call_args_list[index]
    return args[0], args[1], kwargs
