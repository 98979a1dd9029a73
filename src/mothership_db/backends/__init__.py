"""
Storage backends implementing the StorageBackend contract.
"""

from mothership_db.backends.base import StorageBackend, item_bytes, normalize_keys
from mothership_db.backends.memory_backend import InMemoryBackend
from mothership_db.backends.redis_backend import RedisBackend

__all__ = [
    "StorageBackend",
    "InMemoryBackend",
    "RedisBackend",
    "item_bytes",
    "normalize_keys",
]
