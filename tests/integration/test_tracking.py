"""Integration tests for open / click tracking."""
import dataclasses

import pytest

from review_requests.application import record_click, record_open
from tests.helpers import REVIEW_LINK, seed_customers


@pytest.fixture
def customer_id(db, meta):
    return seed_customers(db, meta, [("Jane Doe", "jane@example.com")])[0]


class TestOpenTracking:
    """Tests for the open pixel bookkeeping."""

    def test_first_open_wins(self, db, customer_id):
        assert record_open(db, customer_id) is True
        first_opened_at = db.get_customer(customer_id).email_opened_at

        assert record_open(db, customer_id) is False
        assert record_open(db, customer_id) is False

        assert first_opened_at is not None
        assert db.get_customer(customer_id).email_opened_at == first_opened_at

    def test_unknown_customer(self, db):
        assert record_open(db, "does-not-exist") is False


class TestClickTracking:
    """Tests for the click redirect bookkeeping."""

    def test_every_click_gets_the_review_link(self, db, customer_id):
        assert record_click(db, customer_id) == REVIEW_LINK
        first_clicked_at = db.get_customer(customer_id).email_clicked_at

        assert record_click(db, customer_id) == REVIEW_LINK

        assert first_clicked_at is not None
        assert db.get_customer(customer_id).email_clicked_at == first_clicked_at

    def test_click_does_not_touch_open(self, db, customer_id):
        record_click(db, customer_id)

        assert db.get_customer(customer_id).email_opened_at is None

    def test_unknown_customer(self, db):
        assert record_click(db, "does-not-exist") is None

    def test_customer_without_link(self, db, meta):
        customer_id = seed_customers(db, dataclasses.replace(meta, review_link=""), [("Bob", "bob@example.com")])[0]

        assert record_click(db, customer_id) is None
        assert db.get_customer(customer_id).email_clicked_at is not None
