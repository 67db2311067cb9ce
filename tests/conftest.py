"""Shared pytest fixtures and configuration."""

import os

import pytest
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("FIREBASE_API_KEY", "test-firebase-key")

from colocapp.models.user import UserProfile  # noqa: E402
from colocapp.services.auth_client import Session  # noqa: E402
from tests.utils.fakes import FakePlaces, FakeUploader, InMemoryRecordStore, MemoryStorage  # noqa: E402


@pytest.fixture
def user():
    return UserProfile(
        id="user-123",
        display_name="Camille Martin",
        email="camille@example.com",
        photo_url="https://cdn.test/avatar.jpg",
    )


@pytest.fixture
def session(user):
    """Signed-in session with a non-expiring token."""
    return Session(user=user, id_token="id-token-abc")


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def places():
    return FakePlaces()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def verified_store(store, user):
    """Store holding a verified profile for the session user."""
    store.seed("users", user.id, {"displayName": user.display_name, "email": user.email, "isVerified": True, "favorites": []})
    return store


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time
