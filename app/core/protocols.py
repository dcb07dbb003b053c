"""
Protocol definitions for generic infrastructure services.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy mocking in tests

Available Protocols:
    CacheBackend: Cache operations interface

Usage:
    from core.protocols import CacheBackend

    def cached_rates(cache: CacheBackend, key: str):
        value = cache.get(key)
        if value is None:
            value = fetch_rates()
            cache.set(key, value, timeout=300)
        return value

Note:
    For domain protocols (payout provider, notifications), see
    payouts.adapters.base and settlements.notifications.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for cache backends.

    Compatible with Django's cache interface, so ``django.core.cache.cache``
    satisfies it without any wrapper.
    """

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from cache, or default when missing."""
        ...

    def set(self, key: str, value: Any, timeout: int | None = None) -> None:
        """Set value in cache with an optional expiry in seconds."""
        ...

    def delete(self, key: str) -> bool:
        """Delete value from cache."""
        ...
