"""
busregistry Quickstart Example

This example walks through the subscription registry of one publisher:

1. Subscribing endpoints to message types
2. Looking up targets at publish time (served from the cache)
3. Enlisting a subscribe in the handler's own transaction
4. Lazily removing an expired subscription
"""

import logging
import os
import tempfile
import time
from datetime import timedelta

from busregistry import ConnectionContext, RegistryConfig, SubscriptionRegistry, utc_now


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # ==========================================================================
    # Initialize the registry
    # ==========================================================================
    print("=" * 60)
    print("busregistry Quickstart")
    print("=" * 60)

    db_path = os.path.join(tempfile.mkdtemp(), "bus.db")
    registry = SubscriptionRegistry(RegistryConfig(
        connection_string=db_path,
        endpoint="sql://orders",
    ))
    registry.initialize()
    print(f"\nRegistry for {registry.endpoint} at {db_path}")

    # ==========================================================================
    # Subscribe
    # ==========================================================================
    print("\n" + "-" * 40)
    print("Step 1: Subscribing")
    print("-" * 40)

    registry.subscribe("sql://billing", "OrderPlaced")
    registry.subscribe("sql://audit", "OrderPlaced", expires_at=utc_now() + timedelta(seconds=1))
    registry.subscribe("sql://late", "OrderPlaced", expires_at=utc_now() - timedelta(seconds=1))

    targets = registry.get_target_endpoints("OrderPlaced")
    print(f"OrderPlaced -> {sorted(targets)}")

    # ==========================================================================
    # Transactional subscribe
    # ==========================================================================
    print("\n" + "-" * 40)
    print("Step 2: Subscribing inside a handler transaction")
    print("-" * 40)

    try:
        with ConnectionContext.open(db_path) as ctx:
            registry.subscribe("sql://shipping", "OrderPlaced", context=ctx)
            raise RuntimeError("handler failed")
    except RuntimeError as e:
        print(f"Handler error: {e}")

    targets = registry.get_target_endpoints("OrderPlaced")
    print(f"OrderPlaced -> {sorted(targets)} (shipping rolled back)")

    # ==========================================================================
    # Unsubscribe and expiry sweep
    # ==========================================================================
    print("\n" + "-" * 40)
    print("Step 3: Unsubscribing and sweeping")
    print("-" * 40)

    registry.unsubscribe("sql://billing", "OrderPlaced")

    time.sleep(1.5)
    removed = registry.handle_subscription_expiration_if_necessary("sql://audit", "OrderPlaced")
    print(f"Expired audit subscription removed: {removed}")
    print(f"OrderPlaced -> {sorted(registry.get_target_endpoints('OrderPlaced'))}")

    stats = registry.cache_stats
    print(f"\nCache: {stats.hits} hits, {stats.misses} misses, {stats.invalidations} invalidations")


if __name__ == "__main__":
    main()
