"""
InMemoryBackend - quota-enforcing simulator of the sync storage area.

Values are stored JSON-encoded so that callers never share mutable state with
the store, and every write is checked against the same per-item, total and
item-count quotas the real sync area enforces. A write that would exceed any
quota is rejected as a whole.

Fault injection hooks let tests drop keys from reads (replication loss) and
fail writes, reads or removals for selected keys.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import json
from typing import Any, Dict, Optional, Set

import structlog

from mothership_db.backends.base import KeySpec, StorageBackend, item_bytes, normalize_keys
from mothership_db.exceptions import BackendError, BackendQuotaError

logger = structlog.get_logger(__name__)


class InMemoryBackend(StorageBackend):
    """
    Dictionary-backed StorageBackend with quota accounting.

    Attributes:
        max_item_bytes: Per-item ceiling (key + JSON value), None = unlimited
        max_total_bytes: Aggregate ceiling over all stored items, None = unlimited
        max_items: Maximum number of stored keys, None = unlimited
        hidden_keys: Keys that get() reports as absent even though they are stored
        failing_writes: Keys whose presence in a set() call makes it fail
        failing_removes: Keys whose presence in a remove() call makes it fail
        fail_reads: When True every get() fails

    Example:
        ```python
        backend = InMemoryBackend(max_item_bytes=8192, max_total_bytes=102400)
        await backend.set({"greeting": "hello"})
        assert await backend.get(["greeting"]) == {"greeting": "hello"}
        ```
    """

    def __init__(
        self,
        max_item_bytes: Optional[int] = None,
        max_total_bytes: Optional[int] = None,
        max_items: Optional[int] = None,
    ) -> None:
        for name, value in (
            ("max_item_bytes", max_item_bytes),
            ("max_total_bytes", max_total_bytes),
            ("max_items", max_items),
        ):
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        self.max_item_bytes = max_item_bytes
        self.max_total_bytes = max_total_bytes
        self.max_items = max_items

        self._data: Dict[str, str] = {}
        self._sizes: Dict[str, int] = {}

        self.hidden_keys: Set[str] = set()
        self.failing_writes: Set[str] = set()
        self.failing_removes: Set[str] = set()
        self.fail_reads = False

    @property
    def total_bytes(self) -> int:
        """Bytes currently in use across all stored items."""
        return sum(self._sizes.values())

    def keys(self) -> list[str]:
        """All stored keys, hidden ones included, in sorted order."""
        return sorted(self._data)

    async def get(self, keys: KeySpec) -> Dict[str, Any]:
        wanted = normalize_keys(keys)
        if self.fail_reads:
            logger.warning("simulated_read_failure", keys=len(wanted))
            raise BackendError("Simulated read failure")

        result: Dict[str, Any] = {}
        for key in wanted:
            if key in self._data and key not in self.hidden_keys:
                result[key] = json.loads(self._data[key])
        return result

    async def set(self, items: Dict[str, Any]) -> None:
        if not items:
            return

        failing = self.failing_writes.intersection(items)
        if failing:
            logger.warning("simulated_write_failure", keys=sorted(failing))
            raise BackendError(f"Simulated write failure for {sorted(failing)[0]}")

        encoded: Dict[str, str] = {}
        sizes: Dict[str, int] = {}
        for key, value in items.items():
            normalize_keys(key)
            try:
                encoded[key] = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            except (TypeError, ValueError) as e:
                raise BackendError(f"Value for {key} is not JSON-serializable: {e}")
            sizes[key] = item_bytes(key, value)

            if self.max_item_bytes is not None and sizes[key] > self.max_item_bytes:
                raise BackendQuotaError(
                    f"QUOTA_BYTES_PER_ITEM quota exceeded for {key} "
                    f"({sizes[key]} > {self.max_item_bytes})",
                    key=key,
                    limit="max_item_bytes",
                )

        new_sizes = {**self._sizes, **sizes}
        if self.max_total_bytes is not None:
            total = sum(new_sizes.values())
            if total > self.max_total_bytes:
                raise BackendQuotaError(
                    f"QUOTA_BYTES quota exceeded ({total} > {self.max_total_bytes})",
                    limit="max_total_bytes",
                )

        if self.max_items is not None and len(new_sizes) > self.max_items:
            raise BackendQuotaError(
                f"MAX_ITEMS quota exceeded ({len(new_sizes)} > {self.max_items})",
                limit="max_items",
            )

        self._data.update(encoded)
        self._sizes = new_sizes
        logger.debug("memory_backend_set", keys=len(items), total_bytes=self.total_bytes)

    async def remove(self, keys: KeySpec) -> None:
        targets = normalize_keys(keys)

        failing = self.failing_removes.intersection(targets)
        if failing:
            logger.warning("simulated_remove_failure", keys=sorted(failing))
            raise BackendError(f"Simulated remove failure for {sorted(failing)[0]}")

        for key in targets:
            self._data.pop(key, None)
            self._sizes.pop(key, None)
        logger.debug("memory_backend_remove", keys=len(targets), total_bytes=self.total_bytes)
