"""
LegacyMigrator - moves the old single-key config into the chunked layout.

Before chunking, the whole config lived as one JSON value under the legacy
key. The migration runs only when no committed meta record exists: it merges
the legacy value over the defaults, writes it through the StagedWriter and
deletes the legacy key once that write has been verified and committed.

This migration is IDEMPOTENT - safe to run multiple times. A failed write
leaves the legacy key in place so a later run can retry it.

License: MIT
"""

import json
from typing import Any, Dict, Optional

import structlog

from mothership_core.document import DEFAULT_CONFIG, merge_config
from mothership_core.loader import ConfigLoader
from mothership_core.models import MigrationResult, MigrationStatus
from mothership_core.writer import StagedWriter
from mothership_db.backends.base import StorageBackend
from mothership_db.exceptions import BackendError

logger = structlog.get_logger(__name__)


class LegacyMigrator:
    """
    One-shot migration from the legacy key.

    Attributes:
        backend: StorageBackend holding both layouts
        loader: ConfigLoader, used to check for a committed meta record
        writer: StagedWriter performing the migrated write
        legacy_key: Key of the unchunked legacy record
        defaults: Document the legacy value is merged over
    """

    def __init__(
        self,
        backend: StorageBackend,
        loader: ConfigLoader,
        writer: StagedWriter,
        legacy_key: str,
        defaults: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.backend = backend
        self.loader = loader
        self.writer = writer
        self.legacy_key = legacy_key
        self.defaults = defaults if defaults is not None else DEFAULT_CONFIG

    async def migrate_if_needed(self) -> MigrationResult:
        """
        Migrate the legacy record if there is one and nothing newer exists.

        Returns:
            MigrationResult: MIGRATED, NOT_NEEDED, or FAILED with a reason
        """
        log = logger.bind(migration="legacy_single_key", legacy_key=self.legacy_key)

        try:
            if await self.loader.read_meta() is not None:
                log.debug("migration_not_needed", reason="meta exists")
                return MigrationResult(status=MigrationStatus.NOT_NEEDED)

            stored = await self.backend.get([self.legacy_key])
        except BackendError as e:
            log.error("migration_read_failed", error=str(e))
            return MigrationResult(
                status=MigrationStatus.FAILED, reason=f"backend read failed: {e}"
            )

        if self.legacy_key not in stored or stored[self.legacy_key] is None:
            log.debug("migration_not_needed", reason="no legacy record")
            return MigrationResult(status=MigrationStatus.NOT_NEEDED)

        legacy = stored[self.legacy_key]
        if isinstance(legacy, str):
            try:
                legacy = json.loads(legacy)
            except ValueError:
                log.warning("legacy_record_unreadable")
                return MigrationResult(
                    status=MigrationStatus.FAILED, reason="legacy record unreadable"
                )

        if not isinstance(legacy, dict):
            log.warning("legacy_record_unreadable", value_type=type(legacy).__name__)
            return MigrationResult(
                status=MigrationStatus.FAILED, reason="legacy record unreadable"
            )

        log.info("starting_legacy_migration")
        document = merge_config(self.defaults, legacy)
        write_result = await self.writer.write(document)

        if not write_result.committed:
            reason = getattr(write_result.error, "message", str(write_result.error))
            log.error("migration_write_failed", reason=reason)
            return MigrationResult(
                status=MigrationStatus.FAILED, reason=reason, write_result=write_result
            )

        legacy_removed = True
        try:
            await self.backend.remove([self.legacy_key])
        except BackendError as e:
            # The next run sees the committed meta and reports NOT_NEEDED.
            legacy_removed = False
            log.warning("legacy_key_not_removed", error=str(e))

        log.info(
            "legacy_migration_completed",
            chunk_count=write_result.meta.chunk_count,
            legacy_removed=legacy_removed,
        )
        return MigrationResult(
            status=MigrationStatus.MIGRATED,
            write_result=write_result,
            legacy_removed=legacy_removed,
        )
