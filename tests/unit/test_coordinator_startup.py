"""
Startup reconciliation: legacy migration and reinstall cleanup.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from oauth_session.auth_token.coordinator import SessionCoordinator
from oauth_session.auth_token.markers import InMemoryMarkerStore
from oauth_session.auth_token.notifications import IdentityChangeNotifier
from oauth_session.auth_token.store import InMemoryCredentialStore
from oauth_session.auth_token.types import (
    MIGRATION_ATTEMPTED_MARKER,
    REINSTALL_CHECKED_MARKER,
    AuthenticationStatus,
    ClientOption,
)
from oauth_session.errors import BlockedError, ParsingError
from tests.fixtures.gateway_stubs import StubGateway
from tests.fixtures.token_fixtures import make_record, seed


class TestReinstallCleanup:
    def setup_method(self):
        self.store = InMemoryCredentialStore()
        self.markers = InMemoryMarkerStore()
        self.notifier = IdentityChangeNotifier()

    def _coordinator(self) -> SessionCoordinator:
        return SessionCoordinator(
            self.store, StubGateway(), notifier=self.notifier, markers=self.markers
        )

    @pytest.mark.asyncio
    async def test_leftover_record_removed_once(self):
        leftover = await seed(self.store, make_record(subject="old-install"))

        first = await SessionCoordinator.create(
            self.store, StubGateway(), notifier=self.notifier, markers=self.markers
        )

        assert await self.store.current_record() is None
        assert leftover.id not in self.store.records
        assert self.notifier.published_count == 1
        assert self.markers.values[REINSTALL_CHECKED_MARKER] is True
        assert await first.current_status() is AuthenticationStatus.SIGNED_OUT

        # A record saved after the check survives the next construction
        kept = await seed(self.store, make_record(subject="new-install"))
        await SessionCoordinator.create(
            self.store, StubGateway(), notifier=self.notifier, markers=self.markers
        )

        assert (await self.store.current_record()) is kept
        assert self.notifier.published_count == 1

    @pytest.mark.asyncio
    async def test_no_leftover_sets_marker_without_notifying(self):
        await self._coordinator().start()

        assert self.markers.values[REINSTALL_CHECKED_MARKER] is True
        assert self.notifier.published_count == 0

    @pytest.mark.asyncio
    async def test_start_runs_once_per_instance(self):
        coordinator = self._coordinator()
        await coordinator.start()
        await seed(self.store, make_record())
        self.markers.values.clear()

        await coordinator.start()

        assert await self.store.current_record() is not None

    @pytest.mark.asyncio
    async def test_cleanup_runs_lazily_before_first_update(self):
        await seed(self.store, make_record())
        coordinator = self._coordinator()

        with pytest.raises(BlockedError) as exc_info:
            await coordinator.update_authentication_status()

        assert exc_info.value.requiring is ClientOption.REAUTHENTICATE_IF_NEEDED
        assert await coordinator.current_status() is AuthenticationStatus.SIGNED_OUT
        assert self.notifier.published_count == 1
        assert self.markers.values[REINSTALL_CHECKED_MARKER] is True

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_and_marker_still_written(self, caplog):
        await seed(self.store, make_record())
        self.store.remove = AsyncMock(side_effect=OSError("read-only"))

        await self._coordinator().start()

        assert self.markers.values[REINSTALL_CHECKED_MARKER] is True
        assert self.notifier.published_count == 0
        assert "Reinstall cleanup failed" in caplog.text

    @pytest.mark.asyncio
    async def test_without_marker_store_reconciliation_is_skipped(self):
        record = await seed(self.store, make_record())
        coordinator = SessionCoordinator(self.store, StubGateway(), notifier=self.notifier)

        await coordinator.start()

        assert (await self.store.current_record()) is record
        assert self.notifier.published_count == 0


class TestLegacyMigration:
    def setup_method(self):
        self.store = InMemoryCredentialStore()
        self.markers = InMemoryMarkerStore({REINSTALL_CHECKED_MARKER: True})
        self.notifier = IdentityChangeNotifier()

    def _coordinator(self, importer) -> SessionCoordinator:
        return SessionCoordinator(
            self.store,
            StubGateway(),
            notifier=self.notifier,
            markers=self.markers,
            legacy_importer=importer,
        )

    @pytest.mark.asyncio
    async def test_imports_record_when_store_empty(self):
        legacy = make_record(subject="legacy-user")
        importer = AsyncMock()
        importer.import_record.return_value = legacy

        await self._coordinator(importer).start()

        assert (await self.store.current_record()) is legacy
        assert self.markers.values[MIGRATION_ATTEMPTED_MARKER] is True

    @pytest.mark.asyncio
    async def test_skips_import_when_current_record_exists(self):
        existing = await seed(self.store, make_record())
        importer = AsyncMock()

        await self._coordinator(importer).start()

        importer.import_record.assert_not_awaited()
        assert (await self.store.current_record()) is existing
        assert self.markers.values[MIGRATION_ATTEMPTED_MARKER] is True

    @pytest.mark.asyncio
    async def test_attempted_marker_prevents_second_import(self):
        self.markers.values[MIGRATION_ATTEMPTED_MARKER] = True
        importer = AsyncMock()

        await self._coordinator(importer).start()

        importer.import_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_to_import_still_sets_marker(self):
        importer = AsyncMock()
        importer.import_record.return_value = None

        await self._coordinator(importer).start()

        assert await self.store.current_record() is None
        assert self.markers.values[MIGRATION_ATTEMPTED_MARKER] is True

    @pytest.mark.asyncio
    async def test_import_failure_is_logged_and_retried_next_start(self, caplog):
        importer = AsyncMock()
        importer.import_record.side_effect = ParsingError("bad legacy file")

        coordinator = self._coordinator(importer)
        await coordinator.start()

        assert MIGRATION_ATTEMPTED_MARKER not in self.markers.values
        assert "Legacy credential migration failed" in caplog.text
        assert await coordinator.current_status() is AuthenticationStatus.SIGNED_OUT

    @pytest.mark.asyncio
    async def test_migrated_record_survives_first_reinstall_check(self):
        self.markers.values.clear()
        legacy = make_record(subject="legacy-user")
        importer = AsyncMock()
        importer.import_record.return_value = legacy

        await self._coordinator(importer).start()

        assert (await self.store.current_record()) is legacy
        assert self.markers.values[REINSTALL_CHECKED_MARKER] is True
        assert self.notifier.published_count == 0
