"""
Async wrapper for SubscriptionRegistry.

Store round-trips are blocking; this wrapper runs every operation in a
thread pool so an asyncio host awaits them instead of stalling its loop.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from busregistry.storage.context import ConnectionContext

if TYPE_CHECKING:
    from .registry import SubscriptionRegistry


class AsyncSubscriptionRegistry:
    """
    Async wrapper for SubscriptionRegistry.

    Example:
        async with AsyncSubscriptionRegistry(registry) as subscriptions:
            await subscriptions.subscribe("sql://billing", "OrderPlaced")
            targets = await subscriptions.get_target_endpoints("OrderPlaced")
    """

    def __init__(
        self,
        registry: "SubscriptionRegistry",
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the async wrapper.

        Args:
            registry: SubscriptionRegistry instance
            executor: Optional ThreadPoolExecutor
        """
        self._registry = registry
        self._executor = executor or ThreadPoolExecutor(max_workers=4)

    @property
    def registry(self) -> "SubscriptionRegistry":
        return self._registry

    async def get_target_endpoints(
        self,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> frozenset[str]:
        """Get subscriber endpoints of a message type asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            lambda: self._registry.get_target_endpoints(message_type, context),
        )

    async def subscribe(
        self,
        subscriber_endpoint: str,
        message_type: str,
        expires_at: Optional[datetime] = None,
        context: Optional[ConnectionContext] = None,
    ) -> None:
        """Subscribe asynchronously."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            self._executor,
            lambda: self._registry.subscribe(
                subscriber_endpoint, message_type, expires_at, context
            ),
        )

    async def unsubscribe(
        self,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> None:
        """Unsubscribe asynchronously."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            self._executor,
            lambda: self._registry.unsubscribe(subscriber_endpoint, message_type, context),
        )

    async def handle_subscription_expiration_if_necessary(
        self,
        subscriber_endpoint: str,
        message_type: str,
        context: Optional[ConnectionContext] = None,
    ) -> bool:
        """Remove an expired subscription asynchronously."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor,
            lambda: self._registry.handle_subscription_expiration_if_necessary(
                subscriber_endpoint, message_type, context
            ),
        )

    def close(self) -> None:
        """Shutdown the executor."""
        self._executor.shutdown(wait=False)

    async def __aenter__(self) -> "AsyncSubscriptionRegistry":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        self.close()
