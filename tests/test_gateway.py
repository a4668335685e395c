from __future__ import annotations

import asyncio

import aiohttp
import pytest

from oauth_session.auth_token.gateway import DeviceFlowGateway
from oauth_session.config.model import ProviderConfig
from oauth_session.errors import (
    ConfigurationError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitError,
)
from tests.fixtures.gateway_stubs import RecordingPresenter
from tests.fixtures.http_fakes import FakeResp, FakeSession
from tests.fixtures.token_fixtures import (
    MOCK_DEVICE_RESPONSE,
    MOCK_INVALID_GRANT,
    MOCK_REFRESH_RESPONSE,
    MOCK_TOKEN_RESPONSE,
    make_id_token,
    make_record,
)

PROVIDER = ProviderConfig(
    client_id="cid",
    client_secret="secret",
    device_authorization_url="https://id.example.com/oauth/device",
    token_url="https://id.example.com/oauth/token",
    introspection_url="https://id.example.com/oauth/introspect",
    revocation_url="https://id.example.com/oauth/revoke",
)


def _gateway(scripted, provider: ProviderConfig = PROVIDER):
    session = FakeSession(scripted)
    return DeviceFlowGateway(provider, session, poll_interval=0), session


@pytest.mark.asyncio
async def test_sign_in_builds_record_with_subject_from_id_token():
    gateway, _ = _gateway([(200, MOCK_DEVICE_RESPONSE), (200, MOCK_TOKEN_RESPONSE)])

    record = await gateway.sign_in(RecordingPresenter())

    assert record.access_token == "new_access_789"
    assert record.refresh_token == "new_refresh_012"
    assert record.subject_identifier == "subject-abc"
    assert record.scopes == ["openid", "offline_access"]
    assert record.is_valid


@pytest.mark.asyncio
async def test_sign_in_response_without_access_token_is_parsing_error():
    gateway, _ = _gateway([(200, MOCK_DEVICE_RESPONSE), (200, {"token_type": "bearer"})])

    with pytest.raises(ParsingError):
        await gateway.sign_in(RecordingPresenter())


@pytest.mark.asyncio
async def test_refresh_carries_over_refresh_token_and_subject():
    previous = make_record(valid=False, subject=None, id_token=make_id_token("sub-9"))
    gateway, session = _gateway([(200, MOCK_REFRESH_RESPONSE)])

    record = await gateway.refresh(previous)

    assert record.access_token == "refreshed_access_345"
    assert record.refresh_token == previous.refresh_token
    assert record.subject_identifier == "sub-9"
    assert record.id != previous.id
    sent = session.posts[0]["data"]
    assert sent["grant_type"] == "refresh_token"
    assert sent["refresh_token"] == previous.refresh_token
    assert sent["client_secret"] == "secret"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401])
async def test_refresh_rejected_is_oauth_error(status):
    gateway, session = _gateway([(status, MOCK_INVALID_GRANT)])

    with pytest.raises(OAuthError):
        await gateway.refresh(make_record(valid=False))
    assert len(session.posts) == 1


@pytest.mark.asyncio
async def test_refresh_rate_limited_carries_retry_after():
    gateway, _ = _gateway([FakeResp(429, {}, headers={"Retry-After": "7"})])

    with pytest.raises(RateLimitError) as exc_info:
        await gateway.refresh(make_record(valid=False))

    assert exc_info.value.data["rate_limit"].retry_after == 7.0


@pytest.mark.asyncio
async def test_refresh_retries_transient_failures():
    gateway, session = _gateway(
        [
            (502, {}),
            asyncio.TimeoutError(),
            (200, MOCK_REFRESH_RESPONSE),
        ]
    )

    record = await gateway.refresh(make_record(valid=False))

    assert record.access_token == "refreshed_access_345"
    assert len(session.posts) == 3


@pytest.mark.asyncio
async def test_refresh_gives_up_after_max_attempts():
    gateway, session = _gateway([aiohttp.ClientConnectionError("down")] * 3)

    with pytest.raises(NetworkError):
        await gateway.refresh(make_record(valid=False))
    assert len(session.posts) == 3


@pytest.mark.asyncio
async def test_refresh_without_refresh_token_is_oauth_error():
    gateway, session = _gateway([])

    with pytest.raises(OAuthError):
        await gateway.refresh(make_record(valid=False, refresh=False))
    assert session.posts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,expected", [({"active": True}, True), ({"active": False}, False), ({}, False)])
async def test_introspect_returns_active(payload, expected):
    record = make_record()
    gateway, session = _gateway([(200, payload)])

    assert await gateway.introspect(record) is expected
    assert session.posts[0]["url"] == PROVIDER.introspection_url
    assert session.posts[0]["data"]["token"] == record.access_token


@pytest.mark.asyncio
async def test_introspect_without_endpoint_is_configuration_error():
    provider = PROVIDER.model_copy(update={"introspection_url": None})
    gateway, _ = _gateway([], provider)

    with pytest.raises(ConfigurationError):
        await gateway.introspect(make_record())


@pytest.mark.asyncio
async def test_introspect_forbidden_is_oauth_error():
    gateway, _ = _gateway([(401, {})])

    with pytest.raises(OAuthError):
        await gateway.introspect(make_record())


@pytest.mark.asyncio
async def test_sign_out_revokes_refresh_and_access_tokens():
    record = make_record()
    gateway, session = _gateway([(200, {}), (200, {})])

    await gateway.sign_out(record, None)

    hints = [p["data"]["token_type_hint"] for p in session.posts]
    assert hints == ["refresh_token", "access_token"]
    assert session.posts[1]["data"]["token"] == record.access_token


@pytest.mark.asyncio
async def test_sign_out_without_revocation_endpoint_is_noop():
    provider = PROVIDER.model_copy(update={"revocation_url": None})
    gateway, session = _gateway([], provider)

    await gateway.sign_out(make_record(), None)

    assert session.posts == []


@pytest.mark.asyncio
async def test_sign_out_revocation_failure_raises_network_error():
    gateway, _ = _gateway([(503, {})])

    with pytest.raises(NetworkError):
        await gateway.sign_out(make_record(), None)


@pytest.mark.asyncio
async def test_refresh_non_object_body_is_parsing_error_without_retry():
    gateway, session = _gateway([(200, ["access_token"]), (200, MOCK_REFRESH_RESPONSE)])

    with pytest.raises(ParsingError):
        await gateway.refresh(make_record(valid=False))

    assert len(session.posts) == 1


@pytest.mark.asyncio
async def test_introspect_non_object_body_is_parsing_error():
    gateway, _ = _gateway([(200, "active")])

    with pytest.raises(ParsingError):
        await gateway.introspect(make_record())
