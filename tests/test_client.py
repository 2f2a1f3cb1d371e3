import asyncio
import json

import httpx
import pytest

from services.shiprocket import ShiprocketClient
from services.shiprocket.errors import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    RateLimitError,
    TransientNetworkError,
    ValidationError,
)


async def test_token_is_cached_within_lifetime(client, api):
    assert await client.get_token() == "token-1"
    assert await client.get_token() == "token-1"
    assert len(api.login_calls) == 1


async def test_login_sends_credentials(client, api):
    await client.authenticate()
    body = json.loads(api.login_calls[0].content)
    assert body == {"email": "ops@example.com", "password": "s3cret"}


async def test_token_still_valid_just_before_nine_days(client, api, clock):
    await client.get_token()
    clock.advance(days=9, seconds=-1)
    await client.get_token()
    assert len(api.login_calls) == 1


async def test_token_refreshed_after_nine_days(client, api, clock):
    api.login_responses = [
        httpx.Response(200, json={"token": "token-1"}),
        httpx.Response(200, json={"token": "token-2"}),
    ]
    assert await client.get_token() == "token-1"
    clock.advance(days=9, seconds=1)
    assert await client.get_token() == "token-2"
    assert len(api.login_calls) == 2


async def test_concurrent_callers_share_one_login(client, api):
    tokens = await asyncio.gather(*(client.get_token() for _ in range(5)))
    assert tokens == ["token-1"] * 5
    assert len(api.login_calls) == 1


async def test_request_sends_bearer_token_and_returns_body(client, api):
    api.add("POST", "/orders/create/adhoc", httpx.Response(200, json={"order_id": 1}))

    data = await client.request("/orders/create/adhoc", {"order_id": "ORD-1"})

    assert data == {"order_id": 1}
    request = api.calls[0]
    assert request.headers["Authorization"] == "Bearer token-1"
    assert json.loads(request.content) == {"order_id": "ORD-1"}


async def test_get_request_has_no_body(client, api):
    api.add("GET", "/courier/serviceability/", httpx.Response(200, json={"data": {}}))

    await client.request("/courier/serviceability/", method="GET", params={"order_id": "42"})

    request = api.calls[0]
    assert request.content == b""
    assert request.url.params["order_id"] == "42"


async def test_empty_response_body_decodes_to_empty_dict(client, api):
    api.add("POST", "/orders/cancel", httpx.Response(200))
    assert await client.request("/orders/cancel", {"ids": ["1"]}) == {}


async def test_connection_errors_retried_with_backoff(client, api, sleeps):
    api.add("POST", "/orders/create/adhoc", httpx.ConnectError("Connection refused"))

    with pytest.raises(TransientNetworkError):
        await client.request("/orders/create/adhoc", {}, retries=3)

    assert len(api.calls) == 3
    assert sleeps == [1, 2]


async def test_timeout_then_success(client, api, sleeps):
    api.add(
        "POST",
        "/orders/create/adhoc",
        httpx.ReadTimeout("timed out"),
        httpx.Response(200, json={"order_id": 7}),
    )

    assert await client.request("/orders/create/adhoc", {}) == {"order_id": 7}
    assert len(api.calls) == 2
    assert sleeps == [1]


async def test_server_errors_are_retried(client, api, sleeps):
    api.add("POST", "/orders/create/adhoc", httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"ok": 1}))

    assert await client.request("/orders/create/adhoc", {}) == {"ok": 1}
    assert len(api.calls) == 3
    assert sleeps == [1, 2]


async def test_server_errors_exhaust_retries(client, api, sleeps):
    api.add("POST", "/orders/create/adhoc", httpx.Response(500, json={"message": "boom"}))

    with pytest.raises(ApiError) as exc_info:
        await client.request("/orders/create/adhoc", {}, retries=2)

    assert exc_info.value.status_code == 500
    assert exc_info.value.retryable
    assert len(api.calls) == 2
    assert sleeps == [1]


async def test_not_found_is_not_retried(client, api, sleeps):
    api.add("GET", "/courier/track/shipment/9", httpx.Response(404, json={"message": "missing"}))

    with pytest.raises(ApiError) as exc_info:
        await client.request("/courier/track/shipment/9", method="GET")

    assert exc_info.value.status_code == 404
    assert not exc_info.value.retryable
    assert len(api.calls) == 1
    assert sleeps == []


async def test_rate_limit_is_not_retried(client, api, sleeps):
    api.add("POST", "/orders/create/adhoc", httpx.Response(429, json={"message": "slow down"}))

    with pytest.raises(RateLimitError) as exc_info:
        await client.request("/orders/create/adhoc", {})

    assert exc_info.value.kind == ErrorKind.RATE_LIMIT
    assert len(api.calls) == 1
    assert sleeps == []


@pytest.mark.parametrize("status", [400, 422])
async def test_validation_errors_are_not_retried(client, api, sleeps, status):
    body = {"message": "Invalid data", "errors": {"billing_pincode": ["required"]}}
    api.add("POST", "/orders/create/adhoc", httpx.Response(status, json=body))

    with pytest.raises(ValidationError) as exc_info:
        await client.request("/orders/create/adhoc", {})

    assert exc_info.value.details == body
    assert len(api.calls) == 1
    assert sleeps == []


async def test_unauthorized_reauthenticates_once_and_replays(client, api, sleeps):
    api.login_responses = [
        httpx.Response(200, json={"token": "token-1"}),
        httpx.Response(200, json={"token": "token-2"}),
    ]
    api.add("POST", "/orders/cancel", httpx.Response(401), httpx.Response(200, json={"message": "done"}))

    data = await client.request("/orders/cancel", {"ids": ["1"]}, retries=1)

    assert data == {"message": "done"}
    assert len(api.login_calls) == 2
    assert [c.headers["Authorization"] for c in api.calls] == ["Bearer token-1", "Bearer token-2"]
    assert sleeps == []


async def test_second_unauthorized_fails_without_looping(client, api):
    api.add("POST", "/orders/cancel", httpx.Response(401))

    with pytest.raises(AuthenticationError):
        await client.request("/orders/cancel", {"ids": ["1"]}, retries=3)

    assert len(api.login_calls) == 2
    assert len(api.calls) == 2


async def test_failed_reauthentication_disables_client(client, api):
    api.login_responses = [
        httpx.Response(200, json={"token": "token-1"}),
        httpx.Response(403, json={"message": "invalid credentials"}),
    ]
    api.add("POST", "/orders/cancel", httpx.Response(401))

    with pytest.raises(AuthenticationError):
        await client.request("/orders/cancel", {"ids": ["1"]})

    assert client.enabled is False
    assert len(api.calls) == 1


async def test_failed_login_disables_client_for_good(client, api):
    api.login_responses = [httpx.Response(401, json={"message": "bad credentials"})]

    assert await client.authenticate() is None
    assert client.enabled is False

    with pytest.raises(ConfigurationError):
        await client.request("/orders/create/adhoc", {})
    assert await client.get_token() is None
    assert len(api.login_calls) == 1
    assert api.calls == []


async def test_login_without_token_disables_client(client, api):
    api.login_responses = [httpx.Response(200, json={"message": "ok"})]
    assert await client.authenticate() is None
    assert client.enabled is False


async def test_missing_credentials_make_no_network_calls(http_client, api):
    client = ShiprocketClient(None, None, client=http_client)

    assert client.enabled is False
    assert await client.authenticate() is None
    with pytest.raises(ConfigurationError):
        await client.request("/orders/create/adhoc", {})
    assert api.login_calls == []
    assert api.calls == []


async def test_switched_off_client_is_disabled(http_client):
    client = ShiprocketClient("ops@example.com", "s3cret", client=http_client, enabled=False)
    assert client.enabled is False
