"""Transport core tests: execute() against a mocked requests session.

Invariants:
    - 2xx bodies come back exactly as decoded JSON
    - 429 is retried with the identical request after a delay in [0.5s, 7s)
    - retries stop at the configured ceiling unless it is None
    - other non-2xx raise TrelloHttpError with the body as message
    - transport exceptions propagate unchanged
"""

import asyncio
import json
import math
from unittest.mock import patch

import pytest
import requests

from conftest import make_response, rate_limited, sent_call
from trello_rate_limit import RateLimitConfig
from trello_errors import (
    NetworkError,
    RateLimitExhausted,
    TrelloDecodeError,
    TrelloHttpError,
    TrelloValidationError,
    UnsupportedMethodError,
)
from trello_http import (
    DEFAULT_BASE_ORIGIN,
    OBJECT_PLACEHOLDER,
    RequestPayload,
    Verb,
    build_url,
    encode_query_value,
    execute,
    prepare_request,
)

AUTH = {"key": "k", "token": "t"}


# -- Verb parsing ------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("GET", Verb.GET),
        ("get", Verb.GET),
        ("Delete", Verb.DELETE),
        ("POST_JSON", Verb.POST_JSON),
        ("postjson", Verb.POST_JSON),
        ("put_json", Verb.PUT_JSON),
    ],
)
def test_verb_parse(raw, expected):
    assert Verb.parse(raw) is expected


def test_verb_wire_method_strips_json_suffix():
    assert Verb.POST_JSON.http_method == "POST"
    assert Verb.PUT_JSON.http_method == "PUT"
    assert Verb.POST_JSON.is_json
    assert not Verb.POST.is_json


def test_verb_parse_rejects_unknown_and_non_string():
    with pytest.raises(UnsupportedMethodError, match="Unsupported requestMethod"):
        Verb.parse("patch")
    with pytest.raises(TypeError):
        Verb.parse(123)


# -- Query encoding ----------------------------------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Card Title", "Card Title"),
        (True, "true"),
        (False, "false"),
        (None, "null"),
        (42, "42"),
        (1.0, "1"),
        (1.5, "1.5"),
        (1e-7, "1e-7"),
        (2.5e-8, "2.5e-8"),
        (1e-6, "0.000001"),
        (1.5e-5, "0.000015"),
        (1e21, "1e+21"),
        (1e20, "100000000000000000000"),
        (-0.0, "0"),
        (float("nan"), "NaN"),
        (float("-inf"), "-Infinity"),
        (["a", "b", 3], "a,b,3"),
        (["a", None, "c"], "a,,c"),
        ({"nested": 1}, OBJECT_PLACEHOLDER),
        (Verb.GET, "GET"),
    ],
)
def test_encode_query_value(value, expected):
    assert encode_query_value(value) == expected


def test_query_is_form_encoded_in_insertion_order():
    url = build_url(DEFAULT_BASE_ORIGIN, "/1/cards", {"key": "k", "token": "t", "name": "Card Title"})
    assert url == "https://api.trello.com/1/cards?key=k&token=t&name=Card+Title"


def test_query_appends_to_existing_query_string():
    url = build_url("https://x.test", "/1/search?query=a", {"key": "k"})
    assert url == "https://x.test/1/search?query=a&key=k"


def test_empty_query_leaves_url_untouched():
    assert build_url("https://x.test", "/1/boards", {}) == "https://x.test/1/boards"


# -- Request preparation -----------------------------------------------------


def test_form_mode_has_no_body_or_headers():
    call = prepare_request("POST", "/1/boards/", {"query": {**AUTH, "name": "B"}})
    assert call.method == "POST"
    assert call.body is None
    assert call.headers is None


def test_json_mode_defaults_content_type():
    call = prepare_request(Verb.PUT_JSON, "/1/cards/c1", RequestPayload(query=AUTH, data={"pos": "top"}))
    assert call.method == "PUT"
    assert call.headers == {"Content-Type": "application/json"}
    assert json.loads(call.body) == {"pos": "top"}


def test_json_body_sends_non_finite_floats_as_null():
    data = {"pos": math.nan, "range": [1.5, math.inf, -math.inf], "nested": {"x": math.nan}}

    call = prepare_request("POST_JSON", "/1/x", {"query": AUTH, "data": data})

    assert call.body == b'{"pos":null,"range":[1.5,null,null],"nested":{"x":null}}'
    assert json.loads(call.body, parse_constant=pytest.fail) == {
        "pos": None,
        "range": [1.5, None, None],
        "nested": {"x": None},
    }
    # caller data is left alone
    assert math.isnan(data["pos"])


def test_json_mode_without_data_sends_no_body():
    call = prepare_request("POST_JSON", "/1/x", {"query": AUTH, "headers": {"Content-Type": "application/json"}})
    assert call.body is None
    assert call.headers == {"Content-Type": "application/json"}


def test_payload_rejects_unknown_keys():
    with pytest.raises(TrelloValidationError):
        prepare_request("GET", "/1/x", {"query": AUTH, "body": {}})


# -- Success passthrough -----------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        [],
        {"id": "board123", "name": "Test Board"},
        [{"id": "a"}, {"id": "b", "nested": {"x": [1, 2]}}],
    ],
)
async def test_success_returns_body_unchanged(session, body):
    session.request.return_value = make_response(200, body)

    result = await execute("GET", "/1/boards/b1", {"query": AUTH}, session=session)

    assert result == body
    assert session.request.call_count == 1


@pytest.mark.asyncio
async def test_post_board_end_to_end(session):
    session.request.return_value = make_response(200, {"id": "board123", "name": "Test Board"})

    result = await execute(
        "POST", "/1/boards/", {"query": {"key": "k", "token": "t", "name": "Test Board"}}, session=session
    )

    assert result == {"id": "board123", "name": "Test Board"}
    method, url, kwargs = sent_call(session)
    assert method == "POST"
    assert url == "https://api.trello.com/1/boards/?key=k&token=t&name=Test+Board"
    assert kwargs["data"] is None


@pytest.mark.asyncio
async def test_json_mode_sends_body_and_keeps_query(session):
    session.request.return_value = make_response(200, {"ok": True})

    await execute(
        "POST_JSON",
        "/1/labels",
        {"query": AUTH, "headers": {"Content-Type": "application/json"}, "data": {"a": 1}},
        session=session,
    )

    method, url, kwargs = sent_call(session)
    assert method == "POST"
    assert kwargs["data"] == b'{"a":1}'
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert url.endswith("/1/labels?key=k&token=t")


@pytest.mark.asyncio
async def test_base_origin_override(session):
    session.request.return_value = make_response(200, {"success": True})

    await execute("GET", "/test", {"query": AUTH}, "https://custom-api.example.com", session=session)

    _, url, _ = sent_call(session)
    assert url.startswith("https://custom-api.example.com/test?")


@pytest.mark.asyncio
async def test_timeout_is_forwarded(session):
    session.request.return_value = make_response(200, {})

    await execute("GET", "/1/x", {"query": AUTH}, session=session, timeout=12)

    assert sent_call(session)[2]["timeout"] == 12


@pytest.mark.asyncio
async def test_module_level_requests_used_without_session():
    with patch("trello_http.requests.request", return_value=make_response(200, {"id": "m"})) as req:
        result = await execute("GET", "/1/members/me", {"query": AUTH})

    assert result == {"id": "m"}
    assert req.call_args[0][0] == "GET"


# -- Rate limiting -----------------------------------------------------------


@pytest.mark.asyncio
async def test_retry_after_single_429(session, no_sleep):
    session.request.side_effect = [rate_limited(), make_response(200, {"success": True})]

    result = await execute("GET", "/1/boards/b1", {"query": AUTH}, session=session)

    assert result == {"success": True}
    assert session.request.call_count == 2
    no_sleep.assert_awaited_once()
    delay = no_sleep.await_args[0][0]
    assert 0.5 <= delay < 7.0


@pytest.mark.asyncio
async def test_retry_repeats_identical_request(session, no_sleep):
    session.request.side_effect = [rate_limited(), make_response(200, {})]

    await execute("PUT_JSON", "/1/cards/c1", {"query": AUTH, "data": {"pos": 1}}, session=session)

    assert session.request.call_args_list[0] == session.request.call_args_list[1]


@pytest.mark.asyncio
async def test_bounded_retry_raises_rate_limit_exhausted(session, no_sleep):
    session.request.return_value = rate_limited()

    with pytest.raises(RateLimitExhausted) as exc_info:
        await execute("GET", "/1/x", {"query": AUTH}, session=session, rate_limit=RateLimitConfig(max_retries=3))

    err = exc_info.value
    assert str(err) == "Rate limit exceeded"
    assert err.status == 429
    assert err.attempts == 4
    assert session.request.call_count == 4
    assert no_sleep.await_count == 3


@pytest.mark.asyncio
async def test_default_ceiling_is_three_retries(session, no_sleep):
    session.request.return_value = rate_limited()

    with pytest.raises(RateLimitExhausted):
        await execute("GET", "/1/x", {"query": AUTH}, session=session)

    assert session.request.call_count == 4


@pytest.mark.asyncio
async def test_zero_retries_fails_on_first_429(session, no_sleep):
    session.request.return_value = rate_limited()

    with pytest.raises(RateLimitExhausted):
        await execute("GET", "/1/x", {"query": AUTH}, session=session, rate_limit=RateLimitConfig(max_retries=0))

    assert session.request.call_count == 1
    no_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_unbounded_retry_keeps_going(session, no_sleep):
    session.request.side_effect = [rate_limited() for _ in range(25)] + [make_response(200, {"id": "late"})]

    result = await execute(
        "GET", "/1/x", {"query": AUTH}, session=session, rate_limit=RateLimitConfig(max_retries=None)
    )

    assert result == {"id": "late"}
    assert session.request.call_count == 26
    assert no_sleep.await_count == 25


@pytest.mark.asyncio
async def test_concurrent_calls_are_independent(session, no_sleep):
    seen: dict[str, int] = {}

    def respond(method, url, **kwargs):
        path = url.split("?")[0]
        seen[path] = seen.get(path, 0) + 1
        if path.endswith("/lists") and seen[path] == 1:
            return rate_limited()
        return make_response(200, [{"id": path.rsplit("/", 1)[-1]}])

    session.request.side_effect = respond

    boards, lists, cards = await asyncio.gather(
        execute("GET", "/1/members/me/boards", {"query": AUTH}, session=session),
        execute("GET", "/1/boards/b1/lists", {"query": AUTH}, session=session),
        execute("GET", "/1/lists/l1/cards", {"query": AUTH}, session=session),
    )

    assert boards == [{"id": "boards"}]
    assert lists == [{"id": "lists"}]
    assert cards == [{"id": "cards"}]
    assert session.request.call_count == 4
    no_sleep.assert_awaited_once()


# -- Errors ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_http_error_carries_body_and_response(session):
    session.request.return_value = make_response(
        404, text="Not Found", reason="Not Found", url="https://api.trello.com/1/cards/nope",
        headers={"Content-Type": "text/plain"},
    )

    with pytest.raises(TrelloHttpError) as exc_info:
        await execute("GET", "/1/cards/nope", {"query": AUTH}, session=session)

    err = exc_info.value
    assert str(err) == "Not Found"
    assert err.status == 404
    assert err.response.status_code == 404
    assert err.status_text == "Not Found"
    assert err.url == "https://api.trello.com/1/cards/nope"
    assert err.headers.get("content-type") == "text/plain"
    assert not isinstance(err, RateLimitExhausted)
    assert session.request.call_count == 1


@pytest.mark.asyncio
async def test_server_error_is_not_retried(session, no_sleep):
    session.request.return_value = make_response(500, text="boom", reason="Internal Server Error")

    with pytest.raises(TrelloHttpError, match="boom"):
        await execute("GET", "/1/x", {"query": AUTH}, session=session)

    assert session.request.call_count == 1
    no_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_json_on_success_is_decode_error(session):
    session.request.return_value = make_response(200, None, text="")

    with pytest.raises(TrelloDecodeError):
        await execute("DELETE", "/1/cards/c1", {"query": AUTH}, session=session)


@pytest.mark.asyncio
async def test_network_error_propagates_unchanged(session):
    boom = requests.exceptions.ConnectionError("connection refused")
    session.request.side_effect = boom

    with pytest.raises(NetworkError) as exc_info:
        await execute("GET", "/1/x", {"query": AUTH}, session=session)

    assert exc_info.value is boom


@pytest.mark.asyncio
async def test_unsupported_verb_never_reaches_transport(session):
    with pytest.raises(UnsupportedMethodError):
        await execute("PATCH", "/1/x", {"query": AUTH}, session=session)

    session.request.assert_not_called()
