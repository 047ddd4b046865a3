"""
Tests for the async registry wrapper.
"""

import asyncio
from datetime import timedelta

from busregistry.core.models import utc_now
from busregistry.interface.async_registry import AsyncSubscriptionRegistry


class TestAsyncSubscriptionRegistry:
    """Tests for awaiting registry operations."""

    def test_subscribe_lookup_unsubscribe(self, registry):
        """Async operations should behave like the sync ones."""
        async def scenario():
            async with AsyncSubscriptionRegistry(registry) as subscriptions:
                await subscriptions.subscribe("sql://billing", "OrderPlaced")
                await subscriptions.subscribe(
                    "sql://audit", "OrderPlaced", utc_now() + timedelta(hours=1)
                )
                before = await subscriptions.get_target_endpoints("OrderPlaced")

                await subscriptions.unsubscribe("sql://billing", "OrderPlaced")
                after = await subscriptions.get_target_endpoints("OrderPlaced")
                return before, after

        before, after = asyncio.run(scenario())

        assert before == frozenset({"sql://billing", "sql://audit"})
        assert after == frozenset({"sql://audit"})

    def test_expiration_sweep(self, clocked_registry, wall_clock):
        """The expiry sweep should be awaitable and report removals."""
        clocked_registry.subscribe("sql://billing", "OrderPlaced", wall_clock() + timedelta(minutes=1))
        wall_clock.advance(timedelta(minutes=2))

        async def sweep():
            async with AsyncSubscriptionRegistry(clocked_registry) as subscriptions:
                first = await subscriptions.handle_subscription_expiration_if_necessary(
                    "sql://billing", "OrderPlaced"
                )
                second = await subscriptions.handle_subscription_expiration_if_necessary(
                    "sql://billing", "OrderPlaced"
                )
                return first, second

        assert asyncio.run(sweep()) == (True, False)

    def test_concurrent_lookups(self, registry):
        """Many awaited lookups should run without blocking each other."""
        registry.subscribe("sql://billing", "OrderPlaced")

        async def lookups():
            async with AsyncSubscriptionRegistry(registry) as subscriptions:
                return await asyncio.gather(*[
                    subscriptions.get_target_endpoints("OrderPlaced") for _ in range(10)
                ])

        results = asyncio.run(lookups())
        assert all(r == frozenset({"sql://billing"}) for r in results)
