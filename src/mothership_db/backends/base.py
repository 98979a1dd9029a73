"""
StorageBackend - contract for the key/value store holding the config document.

Every backend exposes three coroutines over JSON-serializable values. Keys are
short ASCII strings. Absent keys are simply missing from the mapping returned
by get().

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Union

KeySpec = Union[str, Iterable[str]]


def normalize_keys(keys: KeySpec) -> list[str]:
    """Accept a single key or an iterable of keys, preserving order, dropping duplicates."""
    if isinstance(keys, str):
        keys = [keys]

    seen: Dict[str, None] = {}
    for key in keys:
        if not key or not isinstance(key, str):
            raise ValueError("key must be non-empty string")
        seen[key] = None
    return list(seen)


def item_bytes(key: str, value: Any) -> int:
    """
    Byte cost of one stored item: UTF-8 length of the key plus its JSON value.

    This is the accounting the sync backend applies to every item, so both the
    quota estimator and the simulated backends share it.
    """
    encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return len(key.encode("utf-8")) + len(encoded.encode("utf-8"))


class StorageBackend(ABC):
    """
    Asynchronous key/value backend.

    Implementations:
        - InMemoryBackend: quota-enforcing simulator, used in tests and dry runs
        - RedisBackend: persistent backend on redis.asyncio
    """

    @abstractmethod
    async def get(self, keys: KeySpec) -> Dict[str, Any]:
        """Return a mapping of the requested keys that exist to their values."""

    @abstractmethod
    async def set(self, items: Dict[str, Any]) -> None:
        """
        Store all items.

        Raises:
            BackendQuotaError: If the write would exceed a backend quota
            BackendError: If the write fails for any other reason
        """

    @abstractmethod
    async def remove(self, keys: KeySpec) -> None:
        """Delete keys. Missing keys are ignored."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None
