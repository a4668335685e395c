"""Identity-provider gateway interface and the aiohttp device-flow implementation."""

from __future__ import annotations

import logging
from typing import Protocol, cast

import aiohttp

from ..config.model import ProviderConfig
from ..constants import HTTP_REQUEST_TIMEOUT_SECONDS
from ..errors.internal import (
    ConfigurationError,
    NetworkError,
    OAuthError,
    ParsingError,
    RateLimitContext,
    RateLimitError,
)
from ..utils import format_duration
from ..utils.retry import retry_transient
from .device_flow import DeviceCodeFlow, read_json_object
from .models import TokenRecord
from .presentation import PresentationContext


class IdentityProviderGateway(Protocol):
    """Operations the coordinator delegates to the identity provider."""

    async def sign_in(self, presentation_context: PresentationContext) -> TokenRecord:
        """Run interactive sign-in and return the new record."""
        ...

    async def refresh(self, record: TokenRecord) -> TokenRecord:
        """Exchange the record's refresh token for a new record."""
        ...

    async def introspect(self, record: TokenRecord) -> bool:
        """Return whether the provider still reports the access token as active."""
        ...

    async def sign_out(
        self, record: TokenRecord | None, presentation_context: PresentationContext | None
    ) -> None:
        ...


def _retry_after(resp: aiohttp.ClientResponse) -> float | None:
    raw = resp.headers.get("Retry-After") if resp.headers else None
    try:
        return float(raw) if raw is not None else None
    except ValueError:
        return None


class DeviceFlowGateway:
    """Gateway backed by standard OAuth 2.0 endpoints.

    Sign-in uses the device authorization grant, refresh the refresh-token
    grant, validation RFC 7662 introspection and sign-out RFC 7009
    revocation.

    Args:
        provider: Endpoints and client registration.
        http_session: Shared aiohttp session.
        poll_interval: Optional fixed device-flow poll interval.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        http_session: aiohttp.ClientSession,
        poll_interval: float | None = None,
    ):
        self.provider = provider
        self.session = http_session
        self.poll_interval = poll_interval
        self._timeout = aiohttp.ClientTimeout(total=HTTP_REQUEST_TIMEOUT_SECONDS)

    def _client_auth(self) -> dict[str, str]:
        data = {"client_id": self.provider.client_id}
        if self.provider.client_secret:
            data["client_secret"] = self.provider.client_secret
        return data

    async def sign_in(self, presentation_context: PresentationContext) -> TokenRecord:
        flow = DeviceCodeFlow(self.session, self.provider, poll_interval=self.poll_interval)
        token_data = await flow.run(presentation_context)
        try:
            record = TokenRecord.from_token_response(token_data)
        except KeyError as e:
            raise ParsingError("Missing access_token in device token response") from e
        logging.info(
            f"🔓 Signed in subject={record.subject_identifier} refresh_token_present={record.refresh_token_present}"
        )
        return record

    async def refresh(self, record: TokenRecord) -> TokenRecord:
        """Refresh ``record``; transient failures are retried.

        Raises:
            OAuthError: The provider rejected the refresh token.
            RateLimitError: The provider rate limited the request.
            NetworkError: Transport failure after all retries.
            ParsingError: The response carried no access token.
        """
        if not record.refresh_token:
            raise OAuthError("Record has no refresh token")
        return await retry_transient(
            lambda: self._refresh_once(record), context="token refresh"
        )

    async def _refresh_once(self, record: TokenRecord) -> TokenRecord:
        data = {
            **self._client_auth(),
            "grant_type": "refresh_token",
            "refresh_token": cast(str, record.refresh_token),
        }
        try:
            async with self.session.post(
                self.provider.token_url, data=data, timeout=self._timeout
            ) as resp:
                if resp.status == 200:
                    js = await read_json_object(resp)
                    try:
                        new_record = TokenRecord.from_token_response(js, previous=record)
                    except KeyError as e:
                        raise ParsingError("Missing access_token in refresh response") from e
                    expires_in = js.get("expires_in")
                    logging.info(
                        f"🔄 Token refreshed (lifetime {format_duration(expires_in)}) subject={new_record.subject_identifier} expires_in={expires_in}"
                    )
                    return new_record
                if resp.status in (400, 401):
                    logging.warning(f"❌ Refresh token rejected (status={resp.status})")
                    raise OAuthError(
                        "Refresh token rejected", data={"status": resp.status}
                    )
                if resp.status == 429:
                    raise RateLimitError(
                        "Rate limited during refresh",
                        context=RateLimitContext(retry_after=_retry_after(resp)),
                    )
                raise NetworkError(f"HTTP {resp.status} during token refresh")
        except TimeoutError as e:
            raise NetworkError("Token refresh timeout") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during token refresh: {e}") from e

    async def introspect(self, record: TokenRecord) -> bool:
        """Ask the introspection endpoint whether the access token is active.

        Raises:
            ConfigurationError: No introspection endpoint is configured.
            OAuthError: The client was not allowed to introspect.
            NetworkError: Transport failure or unexpected status.
        """
        url = self.provider.introspection_url
        if not url:
            raise ConfigurationError("No introspection_url configured for online validation")
        data = {
            **self._client_auth(),
            "token": record.access_token,
            "token_type_hint": "access_token",
        }
        try:
            async with self.session.post(url, data=data, timeout=self._timeout) as resp:
                if resp.status == 200:
                    js = await read_json_object(resp)
                    active = js.get("active") is True
                    logging.debug(
                        f"🔍 Introspection result active={active} subject={record.subject_identifier}"
                    )
                    return active
                if resp.status in (401, 403):
                    raise OAuthError(
                        "Introspection not permitted for this client",
                        data={"status": resp.status},
                    )
                if resp.status == 429:
                    raise RateLimitError(
                        "Rate limited during introspection",
                        context=RateLimitContext(retry_after=_retry_after(resp)),
                    )
                raise NetworkError(f"HTTP {resp.status} during introspection")
        except TimeoutError as e:
            raise NetworkError("Introspection timeout") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during introspection: {e}") from e

    async def sign_out(
        self,
        record: TokenRecord | None,
        presentation_context: PresentationContext | None = None,
    ) -> None:
        """Revoke the record's tokens at the provider.

        Device flow sign-out needs no user interaction, so the presentation
        context is unused.
        """
        url = self.provider.revocation_url
        if not url:
            logging.info("🚪 No revocation_url configured; local sign-out only")
            return
        if record is None:
            logging.debug("🚪 Nothing to revoke")
            return
        if record.refresh_token:
            await self._revoke(url, record.refresh_token, "refresh_token")
        await self._revoke(url, record.access_token, "access_token")
        logging.info(f"🚪 Tokens revoked subject={record.subject_identifier}")

    async def _revoke(self, url: str, token: str, hint: str) -> None:
        data = {**self._client_auth(), "token": token, "token_type_hint": hint}
        try:
            async with self.session.post(url, data=data, timeout=self._timeout) as resp:
                # RFC 7009: 200 also for tokens that were already invalid
                if resp.status != 200:
                    raise NetworkError(
                        f"HTTP {resp.status} during {hint} revocation",
                        data={"status": resp.status},
                    )
        except TimeoutError as e:
            raise NetworkError("Token revocation timeout") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during token revocation: {e}") from e
