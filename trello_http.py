# trello_http.py
from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import requests

from trello_rate_limit import RateLimitConfig, compute_backoff
from trello_errors import (
    RateLimitExhausted,
    TrelloDecodeError,
    TrelloHttpError,
    TrelloValidationError,
    UnsupportedMethodError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_ORIGIN = "https://api.trello.com"
JSON_HEADERS = {"Content-Type": "application/json"}

# what JavaScript's String() yields for a plain object
OBJECT_PLACEHOLDER = "[object Object]"


class Verb(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    POST_JSON = "POST_JSON"
    PUT_JSON = "PUT_JSON"

    @property
    def http_method(self) -> str:
        return self.value.split("_", 1)[0]

    @property
    def is_json(self) -> bool:
        return self.value.endswith("_JSON")

    @classmethod
    def parse(cls, value: Any) -> "Verb":
        """
        Case-insensitive. Accepts "POST_JSON" as well as the short
        "postjson" spelling.
        """
        if isinstance(value, Verb):
            return value
        if not isinstance(value, str):
            raise TypeError("requestMethod should be a string")

        name = value.strip().upper()
        if name.endswith("JSON") and not name.endswith("_JSON"):
            name = f"{name[:-4]}_JSON"
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedMethodError(value) from None


@dataclass(frozen=True)
class RequestPayload:
    query: Mapping[str, Any] = field(default_factory=dict)
    # JSON mode only
    headers: Optional[Mapping[str, str]] = None
    data: Any = None

    @classmethod
    def coerce(cls, payload: Union["RequestPayload", Mapping[str, Any], None]) -> "RequestPayload":
        if payload is None:
            return cls()
        if isinstance(payload, RequestPayload):
            return payload
        if not isinstance(payload, Mapping):
            raise TypeError("payload should be a mapping with 'query' and optional 'headers'/'data'")

        unknown = set(payload) - {"query", "headers", "data"}
        if unknown:
            raise TrelloValidationError(f"Unknown payload keys: {sorted(unknown)}")

        query = payload.get("query") or {}
        if not isinstance(query, Mapping):
            raise TypeError("payload['query'] should be a mapping")
        return cls(query=query, headers=payload.get("headers"), data=payload.get("data"))


@dataclass(frozen=True)
class PreparedCall:
    method: str
    url: str
    headers: Optional[dict[str, str]] = None
    body: Optional[bytes] = None


def _format_float(value: float) -> str:
    """Shortest round-trip digits, laid out like JavaScript's Number#toString."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    text = repr(value)
    if 1e-6 <= abs(value) < 1e21:
        if value.is_integer():
            return str(int(value))
        # repr switches to exponent form below 1e-4, JS only below 1e-6
        return format(Decimal(text), "f") if "e" in text else text

    mantissa, _, exp = text.partition("e")
    exponent = int(exp)
    return f"{mantissa}e{'+' if exponent >= 0 else '-'}{abs(exponent)}"


def encode_query_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        # nulls inside arrays render as empty strings
        return ",".join("" if v is None else encode_query_value(v) for v in value)
    return OBJECT_PLACEHOLDER


def build_url(base_origin: str, path: str, query: Mapping[str, Any]) -> str:
    url = f"{base_origin}{path}"
    pairs = [(str(k), encode_query_value(v)) for k, v in query.items()]
    if not pairs:
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{urlencode(pairs)}"


def prepare_request(
    verb: Union[Verb, str],
    path: str,
    payload: Union[RequestPayload, Mapping[str, Any], None],
    base_origin: str = DEFAULT_BASE_ORIGIN,
) -> PreparedCall:
    verb = Verb.parse(verb)
    payload = RequestPayload.coerce(payload)
    url = build_url(base_origin, path, payload.query)

    if not verb.is_json:
        return PreparedCall(method=verb.http_method, url=url)

    headers = dict(payload.headers) if payload.headers else dict(JSON_HEADERS)
    body = None
    if payload.data is not None:
        body = encode_json_body(payload.data)
    return PreparedCall(method=verb.http_method, url=url, headers=headers, body=body)


def _finite_only(value: Any) -> Any:
    # NaN and +/-Infinity have no JSON form; they go out as null
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, Mapping):
        return {k: _finite_only(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_only(v) for v in value]
    return value


def encode_json_body(data: Any) -> bytes:
    return json.dumps(
        _finite_only(data), separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")


def _handle_response(response: requests.Response) -> Any:
    status = response.status_code
    if not 200 <= status < 300:
        raise TrelloHttpError(response.text, response)

    try:
        return response.json()
    except ValueError as e:
        raise TrelloDecodeError(f"Trello answered {status} with a body that is not JSON") from e


async def execute(
    verb: Union[Verb, str],
    path: str,
    payload: Union[RequestPayload, Mapping[str, Any], None] = None,
    base_origin: str = DEFAULT_BASE_ORIGIN,
    *,
    rate_limit: Optional[RateLimitConfig] = None,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Any:
    """
    Runs one Trello call to completion and returns the decoded JSON body.

    A 429 is retried with the identical request after a jittered delay
    from rate_limit (default: up to 3 retries, then RateLimitExhausted).
    Any other non-2xx raises TrelloHttpError carrying the response.
    requests exceptions propagate unchanged.
    """
    call = prepare_request(verb, path, payload, base_origin)
    rate_limit = rate_limit or RateLimitConfig()
    send = session.request if session is not None else requests.request

    retries = 0
    while True:
        response = await asyncio.to_thread(
            send,
            call.method,
            call.url,
            headers=call.headers,
            data=call.body,
            timeout=timeout,
        )
        if response.status_code != 429:
            return _handle_response(response)

        if not rate_limit.allows_retry(retries):
            raise RateLimitExhausted(
                response.text or "Rate limit exceeded",
                response,
                attempts=retries + 1,
            )

        delay = compute_backoff(rate_limit)
        retries += 1
        # path only, the full URL carries the token
        logger.debug(
            "Trello 429 on %s %s, retry %d/%s in %.2fs",
            call.method,
            path,
            retries,
            "inf" if rate_limit.unbounded else rate_limit.max_retries,
            delay,
        )
        await asyncio.sleep(delay)
