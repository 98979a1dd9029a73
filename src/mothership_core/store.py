"""
ConfigStore - the operations the application uses to persist its config.

Wires codec, quota estimator, loader, staged writer and legacy migrator onto a
single backend and key layout, and exposes load / write / estimate /
shrink_to_fit / migrate_if_needed / clear plus a diagnostic export.

The store keeps no module-level state: everything it knows lives on the
instance, and callers pass any caches they own explicitly.

License: MIT
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Union

import structlog

from mothership_core.codec import ChunkCodec
from mothership_core.config import MothershipSettings
from mothership_core.config import settings as default_settings
from mothership_core.loader import ConfigLoader
from mothership_core.migrator import LegacyMigrator
from mothership_core.models import (
    LoadResult,
    LoadStatus,
    MigrationResult,
    ShrinkResult,
    SizeEstimate,
    WriteResult,
)
from mothership_core.quota import QuotaEstimator, RemovalStep
from mothership_core.writer import StagedWriter
from mothership_db.backends import InMemoryBackend, RedisBackend, StorageBackend

logger = structlog.get_logger(__name__)


def create_backend(config: Optional[MothershipSettings] = None) -> StorageBackend:
    """
    Build the backend named by ``config.backend``.

    Quotas are enforced by the backend itself when
    ``config.enforce_backend_quota`` is set.
    """
    config = config or default_settings
    quota: Dict[str, Any] = {}
    if config.enforce_backend_quota:
        quota = {
            "max_item_bytes": config.max_item_bytes,
            "max_total_bytes": config.max_total_bytes,
            "max_items": config.max_items,
        }

    if config.backend == "memory":
        return InMemoryBackend(**quota)

    password = config.redis_password.get_secret_value() if config.redis_password else None
    return RedisBackend(
        host=config.redis_host,
        port=config.redis_port,
        db=config.redis_db,
        password=password,
        namespace=config.redis_namespace,
        **quota,
    )


class ConfigStore:
    """
    Facade over the chunked config storage.

    Attributes:
        backend: StorageBackend holding every key
        config: MothershipSettings with limits and key layout
        codec: ChunkCodec
        estimator: QuotaEstimator
        loader: ConfigLoader
        writer: StagedWriter
        migrator: LegacyMigrator

    Example:
        ```python
        store = ConfigStore(InMemoryBackend(max_item_bytes=8192, max_total_bytes=102400))
        result = await store.load_or_migrate()
        if result.status is LoadStatus.NOT_FOUND:
            document = default_config()
        write_result = await store.write(document)
        ```
    """

    def __init__(
        self,
        backend: StorageBackend,
        config: Optional[MothershipSettings] = None,
        defaults: Optional[Dict[str, Any]] = None,
        removal_priority: Optional[Sequence[Union[str, RemovalStep]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.backend = backend
        self.config = config or default_settings
        self.removal_priority = removal_priority

        primary = self.config.primary_namespace
        staging = self.config.staging_namespace
        self.codec = ChunkCodec(self.config.chunk_char_target)
        self.estimator = QuotaEstimator(
            self.codec, primary, self.config.limits, self.config.schema_version
        )
        self.loader = ConfigLoader(backend, self.codec, primary, self.config.schema_version)
        self.writer = StagedWriter(
            backend,
            self.codec,
            self.estimator,
            self.loader,
            primary,
            staging,
            schema_version=self.config.schema_version,
            clock=clock,
        )
        self.migrator = LegacyMigrator(
            backend, self.loader, self.writer, self.config.legacy_key, defaults=defaults
        )

    async def load(self) -> LoadResult:
        """Load the committed document. Never writes."""
        return await self.loader.load()

    async def load_or_migrate(self) -> LoadResult:
        """
        Load, running the legacy migration first when nothing is committed yet.

        A failed migration is logged and the load result (NOT_FOUND) returned,
        leaving the legacy key for a later attempt.
        """
        result = await self.loader.load()
        if result.status is not LoadStatus.NOT_FOUND:
            return result

        migration = await self.migrator.migrate_if_needed()
        logger.info(
            "load_migration_checked", status=migration.status.value, reason=migration.reason
        )
        return await self.loader.load()

    async def write(self, document: Any) -> WriteResult:
        """Commit ``document`` through the staged write protocol."""
        return await self.writer.write(document)

    def estimate(self, document: Any) -> SizeEstimate:
        """
        Exact byte cost of writing ``document``.

        Raises:
            SerializationError: If the document cannot be serialized
        """
        return self.estimator.estimate_write(document)

    def exceeds_limits(self, estimate: SizeEstimate) -> bool:
        return self.estimator.exceeds_limits(estimate)

    def shrink_to_fit(
        self,
        document: Any,
        priority: Optional[Sequence[Union[str, RemovalStep]]] = None,
    ) -> ShrinkResult:
        """
        Trim ``document`` until it fits the configured limits.

        Raises:
            SerializationError: If the document cannot be serialized
        """
        return self.estimator.shrink_to_fit(
            document, self.config.limits, priority or self.removal_priority
        )

    async def migrate_if_needed(self) -> MigrationResult:
        return await self.migrator.migrate_if_needed()

    def _all_keys(self) -> list[str]:
        """Every key this store may have written, orphans included."""
        key_span = self.config.primary_namespace.max_chunks
        if self.config.max_items:
            key_span = min(key_span, self.config.max_items)
        primary = self.config.primary_namespace
        staging = self.config.staging_namespace
        return [
            primary.meta_key,
            staging.meta_key,
            self.config.legacy_key,
            *primary.chunk_keys(key_span),
            *staging.chunk_keys(key_span),
        ]

    async def clear(self) -> None:
        """
        Remove all primary, staging and legacy keys (full reset).

        Raises:
            BackendError: If the backend rejects the removal
        """
        keys = self._all_keys()
        await self.backend.remove(keys)
        logger.info("storage_cleared", keys=len(keys))

    async def export_state(self) -> Dict[str, Any]:
        """
        Snapshot of everything stored, for diagnostics.

        Returns:
            Dict with ``meta``, ``stagingMeta``, ``legacy`` and ``chunks``
            (every chunk key present in either namespace, orphans included)

        Raises:
            BackendError: If the backend read fails
        """
        stored = await self.backend.get(self._all_keys())
        primary = self.config.primary_namespace
        staging = self.config.staging_namespace
        fixed = {primary.meta_key, staging.meta_key, self.config.legacy_key}

        return {
            "meta": stored.get(primary.meta_key),
            "stagingMeta": stored.get(staging.meta_key),
            "legacy": stored.get(self.config.legacy_key),
            "chunks": {key: value for key, value in sorted(stored.items()) if key not in fixed},
        }
