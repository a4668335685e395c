"""Device Authorization Grant (RFC 8628) used for interactive sign-in"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import aiohttp

from ..config.model import ProviderConfig
from ..constants import (
    DEVICE_FLOW_LOG_EVERY_POLLS,
    DEVICE_FLOW_MAX_POLL_INTERVAL_SECONDS,
    DEVICE_FLOW_POLL_INTERVAL_SECONDS,
    DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS,
    HTTP_REQUEST_TIMEOUT_SECONDS,
)
from ..errors.internal import NetworkError, OAuthError, ParsingError
from ..utils import format_duration
from .presentation import DevicePrompt

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"


async def read_json_object(response: aiohttp.ClientResponse) -> dict[str, Any]:
    """Decode a JSON object body.

    A non-object body is a ParsingError on success statuses; on error
    statuses it reads as empty so the status decides the outcome.
    """
    payload = await response.json()
    if isinstance(payload, dict):
        return payload
    if response.status == 200:
        raise ParsingError(f"Expected a JSON object, got {type(payload).__name__}")
    return {}


class DeviceCodeFlow:
    """Handles the device authorization flow against a single provider.

    Args:
        session: Shared aiohttp session.
        provider: Provider endpoints and client registration.
        poll_interval: Override for the provider supplied poll interval.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        provider: ProviderConfig,
        poll_interval: float | None = None,
    ):
        self.session = session
        self.provider = provider
        self._poll_interval_override = poll_interval
        self.poll_interval: float = (
            poll_interval if poll_interval is not None else DEVICE_FLOW_POLL_INTERVAL_SECONDS
        )
        self._timeout = aiohttp.ClientTimeout(total=HTTP_REQUEST_TIMEOUT_SECONDS)

    def _client_auth(self) -> dict[str, str]:
        data = {"client_id": self.provider.client_id}
        if self.provider.client_secret:
            data["client_secret"] = self.provider.client_secret
        return data

    async def request_device_code(self) -> dict[str, Any]:
        """Request a device code and user code from the provider.

        Returns:
            The device authorization response.

        Raises:
            OAuthError: The provider rejected the request.
            NetworkError: Transport failure or unexpected status.
            ParsingError: Required response members are missing.
        """
        data = {**self._client_auth(), "scope": " ".join(self.provider.scopes)}
        try:
            async with self.session.post(
                self.provider.device_authorization_url, data=data, timeout=self._timeout
            ) as response:
                result = await read_json_object(response)
                if response.status == 200:
                    missing = [
                        k for k in ("device_code", "user_code", "verification_uri")
                        if not result.get(k)
                    ]
                    if missing:
                        raise ParsingError(
                            f"Device authorization response missing {', '.join(missing)}"
                        )
                    logging.info(
                        f"🔑 Device code retrieved client_id={self.provider.client_id} expires_in={result.get('expires_in')}"
                    )
                    return result
                error = result.get("error", "unknown")
                logging.error(
                    f"💥 Failed to obtain device code (status={response.status}) error={error}"
                )
                if response.status in (400, 401):
                    raise OAuthError(
                        f"Device authorization rejected: {error}",
                        data={"status": response.status},
                    )
                raise NetworkError(f"HTTP {response.status} from device authorization endpoint")
        except TimeoutError as e:
            raise NetworkError("Device authorization timeout") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error during device authorization: {e}") from e

    async def poll_for_tokens(self, device_code: str, expires_in: int) -> dict[str, Any]:
        """Poll the token endpoint until the user finishes authorization.

        Args:
            device_code: Device code from the initial request.
            expires_in: Seconds before the device code expires.

        Returns:
            The token endpoint response.

        Raises:
            OAuthError: Access denied, device code expired, timeout or
                unknown provider error.
            NetworkError: Transport failure while polling.
        """
        data = {
            **self._client_auth(),
            "device_code": device_code,
            "grant_type": DEVICE_CODE_GRANT_TYPE,
        }

        start_time = time.monotonic()
        poll_count = 0

        while time.monotonic() - start_time < expires_in:
            poll_count += 1
            elapsed = int(time.monotonic() - start_time)
            try:
                async with self.session.post(
                    self.provider.token_url, data=data, timeout=self._timeout
                ) as response:
                    result = await read_json_object(response)
                    if response.status == 200:
                        logging.info(
                            f"✅ Authorized after {format_duration(elapsed)} (polls={poll_count})"
                        )
                        return result
                    if response.status in (400, 401):
                        self._handle_polling_error(result, elapsed, poll_count)
                    else:
                        raise NetworkError(
                            f"Unexpected device token response status={response.status}"
                        )
            except TimeoutError as e:
                raise NetworkError("Device token polling timeout") from e
            except aiohttp.ClientError as e:
                raise NetworkError(f"Network error polling for tokens: {e}") from e

            await asyncio.sleep(self.poll_interval)

        logging.error(f"⌛ Device authorization timed out after {format_duration(expires_in)}")
        raise OAuthError("Device authorization timed out")

    def _handle_polling_error(
        self, result: dict[str, Any], elapsed: int, poll_count: int
    ) -> None:
        """Handle a polling error response; returns to keep polling, raises to stop.

        Raises:
            OAuthError: For expired_token, access_denied and unknown errors.
        """
        error = result.get("error", "unknown")
        error_description = result.get("error_description", "")

        if error == "authorization_pending":
            if poll_count % DEVICE_FLOW_LOG_EVERY_POLLS == 0:
                logging.info(
                    f"⏳ Waiting for authorization {format_duration(elapsed)} elapsed polls={poll_count}"
                )
            return

        if error == "slow_down":
            if self._poll_interval_override is None:
                self.poll_interval = min(
                    self.poll_interval + DEVICE_FLOW_SLOW_DOWN_INCREMENT_SECONDS,
                    DEVICE_FLOW_MAX_POLL_INTERVAL_SECONDS,
                )
            logging.warning(
                f"🐢 Server requested slower polling interval={self.poll_interval}s polls={poll_count}"
            )
            return

        if error == "expired_token":
            logging.error(f"⌛ Device code expired after {format_duration(elapsed)} polls={poll_count}")
            raise OAuthError("Device code expired", data={"error": error})

        if error == "access_denied":
            logging.warning(f"🚫 User denied access elapsed={elapsed} polls={poll_count}")
            raise OAuthError("User denied access", data={"error": error})

        logging.error(f"💥 Device flow error: {error} {error_description}".rstrip())
        raise OAuthError(f"Device flow error: {error}", data={"error": error})

    async def run(self, presentation_context) -> dict[str, Any]:
        """Complete the full device flow and return the token response.

        Requests a device code, shows the prompt through the presentation
        context and polls until authorization completes. The context is
        always dismissed afterwards.
        """
        device_data = await self.request_device_code()
        expires_in = int(device_data.get("expires_in") or 600)
        if self._poll_interval_override is None and device_data.get("interval"):
            self.poll_interval = float(device_data["interval"])

        prompt = DevicePrompt(
            user_code=device_data["user_code"],
            verification_uri=device_data["verification_uri"],
            verification_uri_complete=device_data.get("verification_uri_complete"),
            expires_in=expires_in,
        )
        await presentation_context.present_verification(prompt)
        try:
            return await self.poll_for_tokens(device_data["device_code"], expires_in)
        finally:
            await presentation_context.dismiss()
