# trello_errors.py
from __future__ import annotations

from typing import Optional

import requests
from requests.structures import CaseInsensitiveDict

# Transport failures (DNS, refused connection, timeout) surface unchanged.
NetworkError = requests.RequestException


class TrelloError(Exception):
    pass


class TrelloValidationError(TrelloError, ValueError):
    """Caller input rejected before any request is made."""


class UnsupportedMethodError(TrelloValidationError):
    def __init__(self, method: str):
        self.method = method
        super().__init__(
            f"Unsupported requestMethod: {method!r}. "
            "Expected one of GET, POST, PUT, DELETE, POST_JSON, PUT_JSON"
        )


class TrelloHttpError(TrelloError):
    """
    Non-2xx answer from Trello. str(err) is the raw response body,
    the response itself is kept for status-driven handling.
    """

    def __init__(self, message: str, response: Optional[requests.Response] = None):
        super().__init__(message)
        self.response = response
        self.body = message

    @property
    def status(self) -> Optional[int]:
        return getattr(self.response, "status_code", None)

    @property
    def status_text(self) -> str:
        return getattr(self.response, "reason", "") or ""

    @property
    def headers(self) -> CaseInsensitiveDict:
        headers = getattr(self.response, "headers", None)
        return headers if headers is not None else CaseInsensitiveDict()

    @property
    def url(self) -> str:
        return getattr(self.response, "url", "") or ""


class RateLimitExhausted(TrelloHttpError):
    def __init__(self, message: str, response: Optional[requests.Response] = None, attempts: int = 0):
        super().__init__(message, response)
        self.attempts = attempts


class TrelloDecodeError(TrelloError, ValueError):
    pass
