"""TTL cache namespaces shared by the bridge services."""
from .ttl import MISS, CacheEntry, CacheRegistry, TTLCache

__all__ = ["MISS", "CacheEntry", "CacheRegistry", "TTLCache"]
