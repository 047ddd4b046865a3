"""Core data model for busregistry."""

from busregistry.core.models import (
    Subscription,
    SubscriptionKey,
    format_timestamp,
    parse_timestamp,
    to_utc,
    utc_now,
)

__all__ = [
    "Subscription",
    "SubscriptionKey",
    "format_timestamp",
    "parse_timestamp",
    "to_utc",
    "utc_now",
]
