"""
RedisBackend - persistent StorageBackend on top of redis.asyncio.

Every logical key is stored as a Redis string under a namespace prefix, holding
the JSON encoding of the value. A stored value that is not valid JSON is
returned as its raw text, leaving corruption detection to the loader. Optionally the backend enforces the same
per-item, total and item-count quotas as the sync storage area, so a Redis
deployment behaves like the constrained store the config layer is written for.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import json
from typing import Any, Dict, Optional

import redis
import structlog
from redis.asyncio import ConnectionPool, Redis

from mothership_db.backends.base import KeySpec, StorageBackend, item_bytes, normalize_keys
from mothership_db.exceptions import BackendConnectionError, BackendError, BackendQuotaError

logger = structlog.get_logger(__name__)


class RedisBackend(StorageBackend):
    """
    StorageBackend storing JSON values in Redis.

    Attributes:
        host: Redis server host address
        port: Redis server port
        db: Redis database number (0-15)
        namespace: Prefix prepended to every logical key
        max_item_bytes: Per-item ceiling, None disables the check
        max_total_bytes: Aggregate ceiling over the namespace, None disables the check
        max_items: Item-count ceiling over the namespace, None disables the check
        client: redis.asyncio client instance

    Example:
        ```python
        backend = RedisBackend(host="localhost", port=6379, namespace="msom:")
        await backend.set({"msomSyncV2Meta": {"version": 2, "chunkCount": 1}})
        meta = await backend.get("msomSyncV2Meta")
        await backend.close()
        ```
    """

    CONNECTION_TIMEOUT: int = 5
    SCAN_COUNT: int = 100

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        namespace: str = "mothership:",
        max_item_bytes: Optional[int] = None,
        max_total_bytes: Optional[int] = None,
        max_items: Optional[int] = None,
        max_connections: int = 10,
        client: Optional[Redis] = None,
    ) -> None:
        if db < 0 or db > 15:
            raise ValueError(f"db must be in range 0-15, got {db}")

        if port <= 0 or port > 65535:
            raise ValueError(f"port must be in range 1-65535, got {port}")

        self.host = host
        self.port = port
        self.db = db
        self.namespace = namespace
        self.max_item_bytes = max_item_bytes
        self.max_total_bytes = max_total_bytes
        self.max_items = max_items

        self._pool: Optional[ConnectionPool] = None
        if client is None:
            self._pool = ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                max_connections=max_connections,
                socket_connect_timeout=self.CONNECTION_TIMEOUT,
                decode_responses=True,
            )
            client = Redis(connection_pool=self._pool)
        self.client = client
        self._closed = False
        self._logger = logger.bind(host=host, port=port, db=db, namespace=namespace)

    def _full_key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, keys: KeySpec) -> Dict[str, Any]:
        wanted = normalize_keys(keys)
        try:
            raw_values = await self.client.mget([self._full_key(k) for k in wanted])
        except redis.ConnectionError as e:
            self._logger.error("connection_error_get", keys=len(wanted), error=str(e))
            raise BackendConnectionError(f"Redis MGET failed: {e}")
        except redis.RedisError as e:
            self._logger.error("redis_error_get", keys=len(wanted), error=str(e))
            raise BackendError(f"Redis MGET failed: {e}")

        result: Dict[str, Any] = {}
        for key, raw in zip(wanted, raw_values):
            if raw is None:
                continue
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            try:
                result[key] = json.loads(raw)
            except ValueError as e:
                # Hand the raw text back; the loader's meta validation and
                # checksum turn it into a corrupt result.
                self._logger.warning("deserialization_failed", key=key, error=str(e))
                result[key] = raw

        self._logger.debug("redis_get", requested=len(wanted), found=len(result))
        return result

    async def set(self, items: Dict[str, Any]) -> None:
        if not items:
            return

        encoded: Dict[str, str] = {}
        sizes: Dict[str, int] = {}
        for key, value in items.items():
            normalize_keys(key)
            try:
                encoded[self._full_key(key)] = json.dumps(
                    value, separators=(",", ":"), ensure_ascii=False
                )
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

        if self.max_total_bytes is not None or self.max_items is not None:
            current = await self._namespace_sizes()
            current.update(sizes)
            total = sum(current.values())
            if self.max_total_bytes is not None and total > self.max_total_bytes:
                raise BackendQuotaError(
                    f"QUOTA_BYTES quota exceeded ({total} > {self.max_total_bytes})",
                    limit="max_total_bytes",
                )
            if self.max_items is not None and len(current) > self.max_items:
                raise BackendQuotaError(
                    f"MAX_ITEMS quota exceeded ({len(current)} > {self.max_items})",
                    limit="max_items",
                )

        try:
            await self.client.mset(encoded)
        except redis.ConnectionError as e:
            self._logger.error("connection_error_set", keys=len(items), error=str(e))
            raise BackendConnectionError(f"Redis MSET failed: {e}")
        except redis.RedisError as e:
            self._logger.error("redis_error_set", keys=len(items), error=str(e))
            raise BackendError(f"Redis MSET failed: {e}")

        self._logger.debug("redis_set", keys=len(items))

    async def remove(self, keys: KeySpec) -> None:
        targets = normalize_keys(keys)
        try:
            deleted = await self.client.delete(*[self._full_key(k) for k in targets])
        except redis.ConnectionError as e:
            self._logger.error("connection_error_remove", keys=len(targets), error=str(e))
            raise BackendConnectionError(f"Redis DEL failed: {e}")
        except redis.RedisError as e:
            self._logger.error("redis_error_remove", keys=len(targets), error=str(e))
            raise BackendError(f"Redis DEL failed: {e}")

        self._logger.debug("redis_remove", requested=len(targets), deleted=deleted)

    async def _namespace_sizes(self) -> Dict[str, int]:
        """Byte cost of every item currently stored under the namespace."""
        try:
            full_keys = [
                k if isinstance(k, str) else k.decode()
                async for k in self.client.scan_iter(
                    match=f"{self.namespace}*", count=self.SCAN_COUNT
                )
            ]
            if not full_keys:
                return {}
            raw_values = await self.client.mget(full_keys)
        except redis.RedisError as e:
            self._logger.error("redis_error_scan", error=str(e))
            raise BackendError(f"Redis SCAN failed: {e}")

        prefix_len = len(self.namespace)
        sizes: Dict[str, int] = {}
        for full_key, raw in zip(full_keys, raw_values):
            if raw is None:
                continue
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            key = full_key[prefix_len:]
            sizes[key] = len(key.encode("utf-8")) + len(raw.encode("utf-8"))
        return sizes

    async def close(self) -> None:
        """Close the client and its connection pool."""
        if self._closed:
            return

        try:
            await self.client.aclose()
            if self._pool is not None:
                await self._pool.disconnect()
            self._closed = True
            self._logger.info("connection_closed")
        except redis.RedisError as e:
            self._logger.error("redis_error_close", error=str(e))
            raise BackendError(f"Redis close operation failed: {e}")
