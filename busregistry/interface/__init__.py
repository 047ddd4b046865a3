"""Public interface of busregistry."""

from busregistry.interface.async_registry import AsyncSubscriptionRegistry
from busregistry.interface.registry import SubscriptionRegistry

__all__ = [
    "AsyncSubscriptionRegistry",
    "SubscriptionRegistry",
]
