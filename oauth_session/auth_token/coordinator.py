"""Session coordinator: owns the authentication status state machine.

All status updates run as a single in-flight asyncio task. Callers that
arrive while one is running wait for it and receive the same status or
the same exception; no second refresh or sign-in prompt is started.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from ..api.request import APIRequest
from ..errors.handling import log_error
from ..errors.session import BlockedError, ImplausibleStateError, InteractivePresentationError
from .gateway import IdentityProviderGateway
from .markers import MarkerStore
from .migration import LegacyCredentialImporter, NullImporter
from .models import TokenRecord
from .notifications import IdentityChangeNotifier
from .presentation import PresentationContext
from .store import CredentialStore
from .types import (
    DEFAULT_REQUEST_OPTIONS,
    MIGRATION_ATTEMPTED_MARKER,
    REINSTALL_CHECKED_MARKER,
    AuthenticationStatus,
    ClientOption,
)

_NEEDS_SIGN_IN = (
    AuthenticationStatus.SIGNED_OUT,
    AuthenticationStatus.CREDENTIALS_INVALID,
    AuthenticationStatus.EXPIRED,
)


def derive_status(record: TokenRecord | None, validated: bool) -> AuthenticationStatus:
    """Classify a stored record. Pure; never returns UNKNOWN."""
    if record is None:
        return AuthenticationStatus.SIGNED_OUT
    if record.is_valid:
        if validated:
            return AuthenticationStatus.CREDENTIALS_VALIDATED
        return AuthenticationStatus.PRIOR_CREDENTIALS_SAVED
    if record.refresh_token_present:
        return AuthenticationStatus.EXPIRED_REFRESH_AVAILABLE
    return AuthenticationStatus.EXPIRED


class SessionCoordinator:
    """Coordinates sign-in, refresh, online validation and sign-out.

    The coordinator is the only writer of the credential store's default
    record. Create it with ``await SessionCoordinator.create(...)`` to run
    startup reconciliation immediately; otherwise it runs before the first
    status update.

    Args:
        store: Credential persistence.
        gateway: Identity-provider operations.
        notifier: Receives identity-change events (sender is the coordinator).
        markers: Persisted startup markers, kept apart from the store. Without
            one, startup reconciliation is skipped.
        legacy_importer: Source of credentials saved by the previous scheme.
        request_authorization_options: Options used by ``authorize``.
        presentation_context: Default context for interactive sign-in.
        header_name: Header set by ``authorize``.
        header_scheme: Scheme prefix for the header value; defaults to the
            record's token type.
        logger: Logger for coordinator decisions.
    """

    def __init__(
        self,
        store: CredentialStore,
        gateway: IdentityProviderGateway,
        *,
        notifier: IdentityChangeNotifier | None = None,
        markers: MarkerStore | None = None,
        legacy_importer: LegacyCredentialImporter | None = None,
        request_authorization_options: Iterable[ClientOption] = DEFAULT_REQUEST_OPTIONS,
        presentation_context: PresentationContext | None = None,
        header_name: str = "Authorization",
        header_scheme: str | None = None,
        logger: logging.Logger | None = None,
    ):
        self._store = store
        self._gateway = gateway
        self.notifier = notifier or IdentityChangeNotifier()
        self._markers = markers
        self._legacy_importer = legacy_importer or NullImporter()
        self.request_authorization_options = frozenset(request_authorization_options)
        self.presentation_context = presentation_context
        self.header_name = header_name
        self.header_scheme = header_scheme
        self._logger = logger or logging.getLogger(__name__)

        self._update_task: asyncio.Task[AuthenticationStatus] | None = None
        self._update_options: frozenset[ClientOption] = frozenset()
        self._token_validated = False
        self._started = False
        self._start_lock = asyncio.Lock()
        # Held by every operation that writes the default record.
        self._operation_lock = asyncio.Lock()

    @classmethod
    async def create(cls, *args, **kwargs) -> SessionCoordinator:
        """Construct a coordinator and run startup reconciliation."""
        coordinator = cls(*args, **kwargs)
        await coordinator.start()
        return coordinator

    @property
    def token_validated_since_restoration(self) -> bool:
        """True once introspection confirmed the current record; never persisted."""
        return self._token_validated

    @property
    def update_in_progress(self) -> bool:
        return self._update_task is not None

    # ------------------------------------------------------------------ #
    # Startup reconciliation
    # ------------------------------------------------------------------ #
    async def start(self) -> None:
        """Run legacy migration and reinstall cleanup once per instance.

        Both steps are best effort: failures are logged and startup
        continues.
        """
        async with self._start_lock:
            if self._started:
                return
            if self._markers is None:
                self._logger.debug("🏷️ No marker store; startup reconciliation skipped")
            else:
                migrated = await self._migrate_legacy_credentials(self._markers)
                await self._cleanup_after_reinstall(self._markers, migrated)
            self._started = True
            self._logger.debug("🚀 Session coordinator started")

    async def _migrate_legacy_credentials(self, markers: MarkerStore) -> TokenRecord | None:
        migrated: TokenRecord | None = None
        try:
            if await markers.get(MIGRATION_ATTEMPTED_MARKER):
                return None
            if await self._store.current_record() is None:
                record = await self._legacy_importer.import_record()
                if record is not None:
                    await self._store.store(record)
                    await self._store.set_default(record.id)
                    migrated = record
                    self._logger.info(
                        f"📦 Legacy credential migrated subject={record.subject_identifier} id={record.id}"
                    )
            await markers.set(MIGRATION_ATTEMPTED_MARKER, True)
        except Exception as e:  # noqa: BLE001
            log_error(
                "Legacy credential migration failed",
                e,
                {"migrated": migrated is not None},
                level=logging.WARNING,
                logger=self._logger,
            )
        return migrated

    async def _cleanup_after_reinstall(
        self, markers: MarkerStore, migrated: TokenRecord | None
    ) -> None:
        try:
            if await markers.get(REINSTALL_CHECKED_MARKER):
                return
        except Exception as e:  # noqa: BLE001
            log_error("Reinstall marker unreadable", e, level=logging.WARNING, logger=self._logger)
            return

        removed = False
        try:
            record = await self._store.current_record()
            if record is not None and (migrated is None or record.id != migrated.id):
                await self._store.remove(record)
                await self._store.set_default(None)
                self._token_validated = False
                removed = True
                self._logger.info(
                    f"🧹 Removed credential left over from a previous install id={record.id}"
                )
        except Exception as e:  # noqa: BLE001
            log_error("Reinstall cleanup failed", e, level=logging.WARNING, logger=self._logger)

        if removed:
            self._publish_identity_change("reinstall cleanup")

        try:
            await markers.set(REINSTALL_CHECKED_MARKER, True)
        except Exception as e:  # noqa: BLE001
            log_error("Reinstall marker not written", e, level=logging.WARNING, logger=self._logger)

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #
    async def current_status(self) -> AuthenticationStatus:
        """Derive the status from the store without taking any action."""
        record = await self._store.current_record()
        return derive_status(record, self._token_validated)

    async def update_authentication_status(
        self,
        options: Iterable[ClientOption] = frozenset(),
        presentation_context: PresentationContext | None = None,
    ) -> AuthenticationStatus:
        """Resolve the status, taking only the actions ``options`` allow.

        If an update is already running, waits for it and returns its result
        (or raises its error); ``options`` of the later caller are ignored.
        A caller that is cancelled stops waiting while the update continues.

        Raises:
            BlockedError: A needed action is not permitted by ``options``.
            InteractivePresentationError: Sign-in needed but no context.
            ImplausibleStateError: Internal invariant violated.
        """
        requested = frozenset(options)
        task = self._update_task
        if task is None:
            self._update_options = requested
            task = asyncio.get_running_loop().create_task(
                self._run_update(requested, presentation_context)
            )
            task.add_done_callback(self._on_update_done)
            self._update_task = task
        elif requested != self._update_options:
            self._logger.debug(
                f"⏳ Joining in-flight status update requested={sorted(o.value for o in requested)} running={sorted(o.value for o in self._update_options)}"
            )
        return await asyncio.shield(task)

    async def _run_update(
        self,
        options: frozenset[ClientOption],
        presentation_context: PresentationContext | None,
    ) -> AuthenticationStatus:
        try:
            async with self._operation_lock:
                return await self._resolve(options, presentation_context)
        finally:
            self._update_task = None

    def _on_update_done(self, task: asyncio.Task[AuthenticationStatus]) -> None:
        if task.cancelled():
            return
        # Retrieve so an update nobody waited for does not warn at GC time.
        exc = task.exception()
        if exc is not None:
            self._logger.debug(
                f"⚠️ Status update failed type={type(exc).__name__} error={str(exc)}"
            )

    async def _resolve(
        self,
        options: frozenset[ClientOption],
        presentation_context: PresentationContext | None,
    ) -> AuthenticationStatus:
        if not self._started:
            await self.start()

        status = await self.current_status()
        self._logger.debug(
            f"🔍 Resolving status={status.value} options={sorted(o.value for o in options)}"
        )

        if status is AuthenticationStatus.UNKNOWN:
            self._logger.error("💥 Status resolution reached UNKNOWN")
            raise ImplausibleStateError("Authentication status is unknown")

        if status in _NEEDS_SIGN_IN:
            if ClientOption.REAUTHENTICATE_IF_NEEDED not in options:
                raise BlockedError(ClientOption.REAUTHENTICATE_IF_NEEDED)
            await self._interactive_sign_in(presentation_context)
            return await self.current_status()

        if status is AuthenticationStatus.EXPIRED_REFRESH_AVAILABLE:
            if ClientOption.REFRESH_IF_NEEDED not in options:
                raise BlockedError(ClientOption.REFRESH_IF_NEEDED)
            await self._refresh_access_token(options, presentation_context)
            return await self.current_status()

        if status is AuthenticationStatus.PRIOR_CREDENTIALS_SAVED:
            if ClientOption.REQUIRE_ONLINE_VALIDATION not in options:
                return status
            return await self._validate_online()

        return status

    async def _refresh_access_token(
        self,
        options: frozenset[ClientOption],
        presentation_context: PresentationContext | None,
    ) -> None:
        record = await self._store.current_record()
        if record is None:
            raise ImplausibleStateError("Refresh requested without a stored record")
        try:
            new_record = await self._gateway.refresh(record)
        except Exception as e:
            if ClientOption.REAUTHENTICATE_IF_NEEDED in options:
                log_error(
                    "Token refresh failed, falling back to sign-in",
                    e,
                    level=logging.WARNING,
                    logger=self._logger,
                )
                await self._interactive_sign_in(presentation_context)
                return
            log_error("Token refresh failed", e, level=logging.WARNING, logger=self._logger)
            raise BlockedError(ClientOption.REAUTHENTICATE_IF_NEEDED) from e
        await self._store_new_record(new_record, record)
        self._logger.info(f"🔄 Access token refreshed subject={new_record.subject_identifier}")

    async def _validate_online(self) -> AuthenticationStatus:
        record = await self._store.current_record()
        if record is None:
            raise ImplausibleStateError("Online validation requested without a stored record")
        active = await self._gateway.introspect(record)
        if active:
            self._token_validated = True
            self._logger.info(f"✅ Token validated online subject={record.subject_identifier}")
            return AuthenticationStatus.CREDENTIALS_VALIDATED
        self._logger.warning(
            f"⚠️ Token not active according to introspection subject={record.subject_identifier}"
        )
        return AuthenticationStatus.PRIOR_CREDENTIALS_SAVED

    # ------------------------------------------------------------------ #
    # Sign-in / sign-out
    # ------------------------------------------------------------------ #
    async def perform_interactive_authentication(
        self, presentation_context: PresentationContext | None = None
    ) -> TokenRecord:
        """Run interactive sign-in now, regardless of the current status.

        Runs after any status update, sign-in or sign-out in progress; a
        status update requested meanwhile waits for this sign-in.

        Raises:
            InteractivePresentationError: No presentation context given or attached.
        """
        async with self._operation_lock:
            if not self._started:
                await self.start()
            return await self._interactive_sign_in(presentation_context)

    async def _interactive_sign_in(
        self, presentation_context: PresentationContext | None
    ) -> TokenRecord:
        context = presentation_context or self.presentation_context
        if context is None:
            self._logger.error("🚫 Interactive sign-in needed but no presentation context is available")
            raise InteractivePresentationError()

        previous = await self._store.current_record()
        previous_subject = previous.subject_identifier if previous else None
        record = await self._gateway.sign_in(context)
        await self._store_new_record(record, previous)

        subject = record.subject_identifier
        if subject is None:
            self._logger.warning(f"⚠️ Signed-in record has no subject identifier id={record.id}")
        elif subject != previous_subject:
            self._publish_identity_change("sign-in")
        return record

    async def _store_new_record(self, record: TokenRecord, previous: TokenRecord | None) -> None:
        await self._store.store(record)
        await self._store.set_default(record.id)
        self._token_validated = False
        if previous is not None and previous.id != record.id:
            await self._store.remove(previous)

    async def sign_out(self, presentation_context: PresentationContext | None = None) -> None:
        """Sign out at the provider (best effort) and clear the local record.

        Never raises for gateway or store failures; they are logged. The
        identity-change notification is always published. Status updates
        requested meanwhile wait for the sign-out to finish.
        """
        async with self._operation_lock:
            await self._sign_out(presentation_context)

    async def _sign_out(self, presentation_context: PresentationContext | None) -> None:
        if not self._started:
            await self.start()

        record: TokenRecord | None = None
        try:
            record = await self._store.current_record()
        except Exception as e:  # noqa: BLE001
            log_error("Could not read credential before sign-out", e, logger=self._logger)

        context = presentation_context or self.presentation_context
        if context is None:
            self._logger.debug("🚪 Signing out without a presentation context")
        try:
            await self._gateway.sign_out(record, context)
        except Exception as e:  # noqa: BLE001
            log_error("Provider sign-out failed", e, level=logging.WARNING, logger=self._logger)

        try:
            if record is not None:
                await self._store.remove(record)
            await self._store.set_default(None)
        except Exception as e:  # noqa: BLE001
            log_error("Could not clear stored credential", e, logger=self._logger)

        self._token_validated = False
        self._logger.info("🚪 Signed out")
        self._publish_identity_change("sign-out")

    # ------------------------------------------------------------------ #
    # Request authorization
    # ------------------------------------------------------------------ #
    async def authorize(self, request: APIRequest) -> APIRequest:
        """Return ``request`` with the authorization header attached.

        Raises:
            BlockedError: Credentials unusable under the configured options.
            ImplausibleStateError: Resolution returned a non-usable status, or
                a usable status without a stored record.
        """
        status = await self.update_authentication_status(self.request_authorization_options)
        if not status.is_usable:
            self._logger.error(f"💥 authorize reached non-usable status={status.value}")
            raise ImplausibleStateError(f"Cannot authorize with status {status.value}")
        record = await self._store.current_record()
        if record is None:
            self._logger.error(f"💥 authorize found no stored record status={status.value}")
            raise ImplausibleStateError("Usable status without a stored credential")
        return request.with_header(self.header_name, record.authorization_value(self.header_scheme))

    async def subject_identifier(self) -> str | None:
        """Subject of the current record, regardless of expiry."""
        record = await self._store.current_record()
        return record.subject_identifier if record else None

    def _publish_identity_change(self, reason: str) -> None:
        self._logger.debug(f"🔔 Identity changed reason={reason}")
        self.notifier.publish(self)
