"""Shared test fixtures for the media credential test suite."""

import sys
import os
import threading
from datetime import datetime, timedelta, timezone

import pytest

# Ensure server/ is on sys.path so ``utils.*`` and ``routes.*`` imports resolve.
_server_dir = os.path.join(os.path.dirname(__file__), os.pardir)
if os.path.abspath(_server_dir) not in sys.path:
    sys.path.insert(0, os.path.abspath(_server_dir))

from utils.aws.credential_set import CredentialSet  # noqa: E402
from utils.aws.media_config import MediaCredentialConfig  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory doubles
# ---------------------------------------------------------------------------


class InMemorySettings:
    """Dict-backed stand-in for ``SettingsStore``."""

    def __init__(self):
        self.values = {}
        self.types = {}
        self.get_error = None

    def get(self, key):
        if self.get_error is not None:
            raise self.get_error
        return self.values.get(key)

    def set(self, key, value, value_type="string"):
        self.values[key] = value
        self.types[key] = value_type

    def delete(self, key):
        self.types.pop(key, None)
        return self.values.pop(key, None) is not None


class FixedClock:
    """Callable clock that tests move forward explicitly."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeExtractor:
    """Extractor returning a fixed set, raising, or blocking until released."""

    source = "fake"

    def __init__(self, credentials=None, error=None, block=False):
        self.credentials = credentials
        self.error = error
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()
        if not block:
            self.release.set()

    def extract(self):
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        if self.error is not None:
            raise self.error
        return self.credentials


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


NOON = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture()
def media_config():
    return MediaCredentialConfig(
        account_id="007041844937",
        role_name="BlogMediaLibraryAccess",
        region="eu-west-2",
        bucket_name="bedtimeblog-medialibrary",
    )


@pytest.fixture()
def settings():
    return InMemorySettings()


@pytest.fixture()
def clock():
    return FixedClock(NOON)


@pytest.fixture()
def make_credentials():
    """Factory for ``CredentialSet`` instances with sensible defaults."""

    def _make(expires_at=NOON + timedelta(hours=1), **overrides):
        fields = {
            "access_key": "ASIAEXAMPLEKEY",
            "secret_key": "secret-value",
            "session_token": "session-token",
            "expires_at": expires_at,
            "region": "eu-west-2",
            "bucket_name": "bedtimeblog-medialibrary",
        }
        fields.update(overrides)
        return CredentialSet(**fields)

    return _make
