import os

import pytest

# Keep retry backoff out of test runtime
os.environ.setdefault("RETRY_BACKOFF_MULTIPLIER", "0")
os.environ.setdefault("RETRY_MAX_BACKOFF_SECONDS", "0")

from oauth_session.auth_token.coordinator import SessionCoordinator  # noqa: E402
from oauth_session.auth_token.notifications import IdentityChangeNotifier  # noqa: E402
from oauth_session.auth_token.store import InMemoryCredentialStore  # noqa: E402
from tests.fixtures.gateway_stubs import RecordingPresenter, StubGateway  # noqa: E402


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def notifier() -> IdentityChangeNotifier:
    return IdentityChangeNotifier()


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def make_coordinator(store, notifier, presenter):
    """Factory building a coordinator around the shared store/notifier/presenter."""

    def _make(gateway: StubGateway, **kwargs) -> SessionCoordinator:
        kwargs.setdefault("notifier", notifier)
        kwargs.setdefault("presentation_context", presenter)
        return SessionCoordinator(store, gateway, **kwargs)

    return _make
