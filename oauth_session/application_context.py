"""Central application context for shared async resources."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from .auth_token.coordinator import SessionCoordinator
from .auth_token.gateway import DeviceFlowGateway
from .auth_token.markers import FileMarkerStore
from .auth_token.migration import LegacyFileImporter, NullImporter
from .auth_token.notifications import IdentityChangeNotifier
from .auth_token.presentation import ConsolePresenter, PresentationContext
from .auth_token.store import FileCredentialStore
from .config.model import AppConfig
from .logging_config import error_aggregator


class ApplicationContext:
    """Holds the HTTP session and the session coordinator wired from config."""

    session: aiohttp.ClientSession | None
    coordinator: SessionCoordinator | None
    _started: bool
    _lock: asyncio.Lock

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.session = None
        self.coordinator = None
        self.notifier = IdentityChangeNotifier()
        self._started = False
        self._lock = asyncio.Lock()

    # ------------------------- Construction ------------------------- #
    @classmethod
    async def create(
        cls,
        config: AppConfig,
        presentation_context: PresentationContext | None = None,
    ) -> ApplicationContext:
        """Create the HTTP session, stores, gateway and coordinator.

        Args:
            config: Validated application configuration.
            presentation_context: Context for interactive sign-in; the
                console presenter when omitted.
        """
        ctx = cls(config)
        logging.debug("🧪 Creating application context")
        ctx.session = aiohttp.ClientSession()
        logging.debug("🔗 HTTP session created")

        settings = config.session
        legacy_importer = (
            LegacyFileImporter(settings.legacy_credential_file, settings.legacy_username)
            if settings.legacy_credential_file
            else NullImporter()
        )
        ctx.coordinator = SessionCoordinator(
            FileCredentialStore(settings.credential_file),
            DeviceFlowGateway(config.provider, ctx.session),
            notifier=ctx.notifier,
            markers=FileMarkerStore(settings.markers_file),
            legacy_importer=legacy_importer,
            request_authorization_options=settings.request_options,
            presentation_context=presentation_context or ConsolePresenter(),
            header_name=settings.header_name,
            header_scheme=settings.header_scheme,
        )
        return ctx

    # --------------------------- Lifecycle -------------------------- #
    async def start(self) -> None:
        """Run the coordinator's startup reconciliation. Idempotent."""
        async with self._lock:
            if self._started:
                return
            if self.coordinator:
                await self.coordinator.start()
            self._started = True
            logging.debug("🚀 Application context started")

    async def shutdown(self) -> None:
        """Wait for identity listeners and close the HTTP session."""
        async with self._lock:
            logging.debug("🔻 Application context shutdown initiated")
            await self.notifier.drain()
            await self._close_http_session()
            self.coordinator = None
            self._started = False
            if error_aggregator.get_error_summary():
                error_aggregator.log_summary_report()
            logging.debug("✅ Application context shutdown complete")

    async def _close_http_session(self) -> None:
        if not self.session:
            return
        try:
            await self.session.close()
        except (aiohttp.ClientError, OSError, ValueError) as e:
            logging.error(f"💥 Error closing HTTP session: {str(e)}")
        finally:
            self.session = None
