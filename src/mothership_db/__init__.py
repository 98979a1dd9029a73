"""
mothership_db - Storage backend layer for the Mothership sync store.

Provides the key/value backend contract plus an in-memory quota simulator and
a Redis implementation.

License: MIT
"""

from mothership_db.backends import (
    InMemoryBackend,
    RedisBackend,
    StorageBackend,
    item_bytes,
)
from mothership_db.exceptions import (
    BackendConnectionError,
    BackendError,
    BackendQuotaError,
)

__all__ = [
    "StorageBackend",
    "InMemoryBackend",
    "RedisBackend",
    "item_bytes",
    "BackendError",
    "BackendConnectionError",
    "BackendQuotaError",
]
