"""
Tests for the subscription model and timestamp helpers.
"""

import pytest
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from busregistry.core.models import (
    Subscription,
    format_timestamp,
    parse_timestamp,
    to_utc,
)


class TestTimestamps:
    """Tests for stored timestamp representation."""

    def test_naive_datetime_taken_as_utc(self):
        """Naive datetimes should be interpreted as UTC."""
        naive = datetime(2026, 1, 1, 8, 30)
        assert to_utc(naive) == datetime(2026, 1, 1, 8, 30, tzinfo=timezone.utc)

    def test_offset_datetime_converted(self):
        """Aware datetimes should be converted to UTC."""
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2026, 1, 1, 10, 0, tzinfo=plus_two)
        assert to_utc(value) == datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)

    def test_format_is_fixed_width(self):
        """Formatted timestamps should always carry microseconds."""
        whole = format_timestamp(datetime(2026, 1, 1, tzinfo=timezone.utc))
        fractional = format_timestamp(datetime(2026, 1, 1, 0, 0, 0, 500, tzinfo=timezone.utc))

        assert whole == "2026-01-01T00:00:00.000000+00:00"
        assert len(whole) == len(fractional)
        assert whole < fractional

    def test_parse_inverts_format(self):
        """Parsing should restore the original instant."""
        value = datetime(2026, 5, 17, 3, 4, 5, 678, tzinfo=timezone.utc)
        assert parse_timestamp(format_timestamp(value)) == value
        assert parse_timestamp(None) is None


class TestSubscription:
    """Tests for the Subscription model."""

    def test_key(self):
        """Natural key should be publisher, subscriber and type."""
        sub = Subscription(
            publisher_endpoint="pub",
            subscriber_endpoint="sub",
            message_type="OrderPlaced",
        )
        key = sub.key
        assert (key.publisher_endpoint, key.subscriber_endpoint, key.message_type) == (
            "pub", "sub", "OrderPlaced"
        )

    def test_blank_fields_rejected(self):
        """Blank endpoints or message types should be rejected."""
        with pytest.raises(ValidationError):
            Subscription(publisher_endpoint="pub", subscriber_endpoint="  ", message_type="T")

    def test_never_expires_without_expiration(self):
        """A subscription without expires_at should never expire."""
        sub = Subscription(publisher_endpoint="p", subscriber_endpoint="s", message_type="T")
        assert not sub.is_expired(datetime(2999, 1, 1, tzinfo=timezone.utc))

    def test_expired_at_boundary(self):
        """A subscription should be expired once expires_at is reached."""
        at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        sub = Subscription(
            publisher_endpoint="p",
            subscriber_endpoint="s",
            message_type="T",
            expires_at=at,
        )
        assert not sub.is_expired(at - timedelta(seconds=1))
        assert sub.is_expired(at)
