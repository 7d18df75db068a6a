"""
In-memory cache of processed webhook deliveries with TTL.

The gateway retries webhook deliveries until it receives a 2xx, so the same event
can arrive more than once. Handlers are idempotent on their own; this cache only
short-circuits redeliveries that arrive within the TTL.

For distributed deployments with multiple instances, consider migrating to Redis.
"""

from datetime import timedelta

from sojourn_booking.utils.datetime import utc_now


class DeliveryCache:
    """
    In-memory set of delivery ids with time-to-live (TTL) expiration.

    Attributes:
        ttl: Time-to-live for remembered deliveries
        _cache: Internal storage mapping delivery id to expiry time

    Example:
        >>> cache = DeliveryCache(ttl_seconds=300)
        >>> cache.remember("evt_123")
        >>> cache.seen("evt_123")
        True
    """

    def __init__(self, ttl_seconds: int = 300):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._cache: dict = {}

    def seen(self, delivery_id: str) -> bool:
        """
        Check whether a delivery was processed within the TTL.

        Args:
            delivery_id: Gateway event id

        Returns:
            True if the delivery is remembered and not expired
        """
        expires_at = self._cache.get(delivery_id)
        if expires_at is None:
            return False
        if utc_now() < expires_at:
            return True
        # Expired - remove from cache
        del self._cache[delivery_id]
        return False

    def remember(self, delivery_id: str) -> None:
        """Record a delivery as processed."""
        self._prune()
        self._cache[delivery_id] = utc_now() + self.ttl

    def _prune(self) -> None:
        now = utc_now()
        for key in [k for k, expires_at in self._cache.items() if expires_at <= now]:
            del self._cache[key]

    def clear(self) -> None:
        """
        Forget all deliveries.

        Useful for testing.
        """
        self._cache.clear()

    def size(self) -> int:
        return len(self._cache)
