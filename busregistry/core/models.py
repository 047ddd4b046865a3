"""
Core subscription model for busregistry.

A Subscription records that one subscriber endpoint wants to receive
one message type from a publisher endpoint. The registry only ever
manages rows for its own publisher endpoint.

Timestamps:
    All timestamps are UTC. They are persisted in a fixed-width
    ISO-8601 form (always with microseconds) so the store can compare
    them as plain strings.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime in the stored, lexically comparable form."""
    return to_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Inverse of format_timestamp; passes None through."""
    if text is None:
        return None
    return to_utc(datetime.fromisoformat(text))


class SubscriptionKey(BaseModel):
    """Natural key of a subscription row."""

    publisher_endpoint: str
    subscriber_endpoint: str
    message_type: str

    model_config = {"frozen": True}


class Subscription(BaseModel):
    """
    A persisted subscription.

    Examples:
        - Subscription(publisher_endpoint="sql://orders", subscriber_endpoint="sql://billing",
                       message_type="OrderPlaced")
        - Same, with expires_at set for a temporary subscriber

    A second subscribe for the same natural key only refreshes
    expires_at; created_at keeps the time of the first subscribe.
    """

    publisher_endpoint: str = Field(..., description="Endpoint that publishes the messages")
    subscriber_endpoint: str = Field(..., description="Endpoint that receives the messages")
    message_type: str = Field(..., description="Type/topic identifier being subscribed to")

    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the subscription was first recorded"
    )
    expires_at: Optional[datetime] = Field(
        default=None,
        description="When the subscription lapses (None = never)"
    )

    model_config = {"extra": "forbid"}

    @field_validator("publisher_endpoint", "subscriber_endpoint", "message_type")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Endpoints and message types cannot be blank."""
        if not v or not v.strip():
            raise ValueError("value cannot be empty")
        return v.strip()

    @field_validator("created_at", "expires_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None

    @property
    def key(self) -> SubscriptionKey:
        return SubscriptionKey(
            publisher_endpoint=self.publisher_endpoint,
            subscriber_endpoint=self.subscriber_endpoint,
            message_type=self.message_type,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once expires_at has been reached."""
        if self.expires_at is None:
            return False
        return self.expires_at <= to_utc(now or utc_now())
