from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from oauth_session.auth_token.markers import FileMarkerStore, InMemoryMarkerStore
from oauth_session.auth_token.migration import LegacyFileImporter, NullImporter
from oauth_session.auth_token.types import REINSTALL_CHECKED_MARKER
from oauth_session.errors import ParsingError


@pytest.mark.asyncio
async def test_in_memory_markers():
    markers = InMemoryMarkerStore()

    assert await markers.get(REINSTALL_CHECKED_MARKER) is None
    await markers.set(REINSTALL_CHECKED_MARKER, True)
    assert await markers.get(REINSTALL_CHECKED_MARKER) is True


@pytest.mark.asyncio
async def test_file_markers_persist_across_instances(tmp_path):
    path = tmp_path / "session_markers.json"
    await FileMarkerStore(path).set(REINSTALL_CHECKED_MARKER, True)
    await FileMarkerStore(path).set("other", False)

    reopened = FileMarkerStore(path)
    assert await reopened.get(REINSTALL_CHECKED_MARKER) is True
    assert await reopened.get("other") is False
    assert await reopened.get("unset") is None


@pytest.mark.asyncio
async def test_file_markers_ignore_malformed_file(tmp_path):
    path = tmp_path / "session_markers.json"
    path.write_text("[1, 2, 3]")

    assert await FileMarkerStore(path).get(REINSTALL_CHECKED_MARKER) is None


@pytest.mark.asyncio
async def test_null_importer_returns_none():
    assert await NullImporter().import_record() is None


@pytest.mark.asyncio
async def test_legacy_importer_reads_users_list(tmp_path):
    path = tmp_path / "legacy.conf"
    path.write_text(
        json.dumps(
            {
                "users": [
                    {"username": "nobody"},
                    {
                        "username": "Alice",
                        "access_token": "legacy-access",
                        "refresh_token": "legacy-refresh",
                        "token_expiry": "2030-01-01T00:00:00",
                        "user_id": "42",
                    },
                ]
            }
        )
    )

    record = await LegacyFileImporter(path).import_record()

    assert record is not None
    assert record.access_token == "legacy-access"
    assert record.refresh_token == "legacy-refresh"
    assert record.expires_at == datetime(2030, 1, 1, tzinfo=UTC)
    assert record.subject_identifier == "42"


@pytest.mark.asyncio
async def test_legacy_importer_filters_by_username(tmp_path):
    path = tmp_path / "legacy.conf"
    path.write_text(
        json.dumps(
            [
                {"username": "alice", "access_token": "a"},
                {"username": "bob", "access_token": "b", "expires_at": 1893456000},
            ]
        )
    )

    record = await LegacyFileImporter(path, username="BOB").import_record()

    assert record is not None
    assert record.access_token == "b"
    assert record.expires_at == datetime.fromtimestamp(1893456000, UTC)


@pytest.mark.asyncio
async def test_legacy_importer_missing_file_returns_none(tmp_path):
    assert await LegacyFileImporter(tmp_path / "absent.conf").import_record() is None


@pytest.mark.asyncio
async def test_legacy_importer_entry_without_token_returns_none(tmp_path):
    path = tmp_path / "legacy.conf"
    path.write_text(json.dumps({"username": "alice"}))

    assert await LegacyFileImporter(path).import_record() is None


@pytest.mark.asyncio
async def test_legacy_importer_bad_expiry_raises(tmp_path):
    path = tmp_path / "legacy.conf"
    path.write_text(json.dumps({"access_token": "a", "expires_at": [2030]}))

    with pytest.raises(ParsingError):
        await LegacyFileImporter(path).import_record()
