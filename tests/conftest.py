"""Pytest configuration and fixtures."""
import pytest

from review_requests.application import ReviewRequestService
from review_requests.domain.models import BatchMetadata
from review_requests.infrastructure.config import (
    DispatchSettings,
    MailSettings,
    Settings,
    TrackingSettings,
)
from review_requests.infrastructure.persistence import Database
from tests.helpers import (
    LOCATION_ID,
    REVIEW_LINK,
    TRACKING_BASE_URL,
    USER_ID,
    RecordingSleep,
    RecordingTransport,
)


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database file per test."""
    database = Database(tmp_path / "test.db")
    database.init()
    return database


@pytest.fixture
def settings():
    return Settings(
        mail=MailSettings(host="smtp.example.test", port=587, username="", password="", from_name="Test"),
        tracking=TrackingSettings(base_url=TRACKING_BASE_URL, fallback_redirect_url="https://www.google.com"),
        dispatch=DispatchSettings(send_delay_ms=500),
    )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def sleeper():
    return RecordingSleep()


@pytest.fixture
def service(db, transport, settings, sleeper):
    return ReviewRequestService(db, transport, settings, sleep=sleeper)


@pytest.fixture
def meta():
    return BatchMetadata(
        user_id=USER_ID,
        location_id=LOCATION_ID,
        business_name="Bella Pizza",
        location_name="Bella Pizza Downtown",
        review_link=REVIEW_LINK,
        file_name="customers.csv",
        file_size=1024,
    )
