"""
StagedWriter - two-phase write of the config document across independent keys.

The backend has no transactions, so a write walks an explicit state machine:

    IDLE -> STAGING -> VERIFYING -> PROMOTING -> CLEANING_UP -> IDLE

1. Encode and size the document; refuse with QuotaExceeded before touching
   storage when it cannot fit.
2. STAGING: write every chunk, then the meta record, into the staging namespace.
3. VERIFYING: load the staging namespace back through the loader. Primary keys
   are untouched up to here, so any failure leaves the committed document intact.
4. PROMOTING: copy the chunks to the primary chunk keys, then publish the meta
   record to the primary meta key. The meta publish is the commit point.
5. CLEANING_UP: delete primary chunks beyond the new count and the whole
   staging namespace.

Every phase maps its failure to WriteFailed(phase=...). write() reports all
outcomes through WriteResult and performs no retries.

License: MIT
"""

import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional

import structlog

from mothership_core.codec import ChunkCodec
from mothership_core.exceptions import MothershipError, QuotaExceeded, WriteFailed
from mothership_core.loader import ConfigLoader
from mothership_core.models import MetaRecord, Namespace, WriteResult, WriterState
from mothership_core.quota import QuotaEstimator
from mothership_db.backends.base import StorageBackend
from mothership_db.exceptions import BackendError

logger = structlog.get_logger(__name__)

_TRANSITIONS = {
    WriterState.IDLE: {WriterState.STAGING},
    WriterState.STAGING: {WriterState.VERIFYING},
    WriterState.VERIFYING: {WriterState.PROMOTING},
    WriterState.PROMOTING: {WriterState.CLEANING_UP},
    WriterState.CLEANING_UP: set(),
}


def _stored_chunk_count(raw_meta: Any) -> int:
    """chunkCount of a stored meta value, 0 when absent or malformed."""
    if isinstance(raw_meta, dict):
        count = raw_meta.get("chunkCount")
        if isinstance(count, int) and not isinstance(count, bool) and count > 0:
            return count
    return 0


class StagedWriter:
    """
    Writes a document through staging, verification and promotion.

    Attributes:
        backend: StorageBackend to write to
        codec: ChunkCodec splitting the document
        estimator: QuotaEstimator sizing the write against the limits
        loader: ConfigLoader used for verification
        primary: Committed namespace
        staging: Staging namespace, never read by normal loads
        schema_version: Version stamped into new meta records
        state: Current WriterState

    Example:
        ```python
        writer = StagedWriter(backend, codec, estimator, loader, primary, staging)
        result = await writer.write(document)
        if not result.ok:
            print(result.error.to_dict())
        ```
    """

    def __init__(
        self,
        backend: StorageBackend,
        codec: ChunkCodec,
        estimator: QuotaEstimator,
        loader: ConfigLoader,
        primary: Namespace,
        staging: Namespace,
        schema_version: int = 2,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if primary.meta_key == staging.meta_key or primary.chunk_prefix == staging.chunk_prefix:
            raise ValueError("staging namespace must not overlap the primary namespace")

        self.backend = backend
        self.codec = codec
        self.estimator = estimator
        self.loader = loader
        self.primary = primary
        self.staging = staging
        self.schema_version = schema_version
        self._clock = clock
        self.state = WriterState.IDLE

    def _transition(self, new_state: WriterState, log: Any) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid writer transition {self.state.value} -> {new_state.value}")
        log.debug("writer_transition", source=self.state.value, target=new_state.value)
        self.state = new_state

    async def write(self, document: Any) -> WriteResult:
        """
        Commit ``document`` as the new current config.

        Returns:
            WriteResult; on failure ``error`` holds a SerializationError,
            QuotaExceeded or WriteFailed carrying the failing phase
        """
        if self.state is not WriterState.IDLE:
            raise RuntimeError(f"write already in progress ({self.state.value})")

        correlation_id = str(uuid.uuid4())
        log = logger.bind(correlation_id=correlation_id)
        result = WriteResult(ok=False)

        try:
            await self._run(document, result, log, correlation_id)
        except MothershipError as e:
            result.error = e
            log.warning("write_failed", **e.to_dict())
        finally:
            self.state = WriterState.IDLE

        return result

    async def _run(self, document: Any, result: WriteResult, log: Any, correlation_id: str) -> None:
        encoded = self.codec.encode(document)
        now = self._clock() if self._clock else None
        meta = MetaRecord.create(self.schema_version, encoded.chunk_count, encoded.checksum, now)
        estimate = self.estimator.estimate_encoded(encoded, meta)
        result.estimate = estimate
        result.meta = meta

        if self.estimator.exceeds_limits(estimate):
            raise QuotaExceeded(
                f"Config does not fit the storage quota: "
                f"{self.estimator.describe_violation(estimate)}",
                estimate=estimate,
                details=estimate.to_dict(),
                correlation_id=correlation_id,
            )

        # STAGING
        self._transition(WriterState.STAGING, log)
        stale_staging = 0
        try:
            stale_staging = _stored_chunk_count(await self.loader.read_meta(self.staging))
            await self.backend.set(
                dict(zip(self.staging.chunk_keys(encoded.chunk_count), encoded.chunks))
            )
            await self.backend.set({self.staging.meta_key: meta.to_storage()})
        except BackendError as e:
            raise WriteFailed(
                f"Staging write failed: {e}",
                phase=WriterState.STAGING,
                correlation_id=correlation_id,
                original_exception=e,
            )
        log.debug("staging_written", chunk_count=encoded.chunk_count)

        # VERIFYING
        self._transition(WriterState.VERIFYING, log)
        verified = await self.loader.load(self.staging)
        if not verified.ok or verified.meta.checksum != meta.checksum:
            reason = verified.reason or "staged meta was replaced"
            raise WriteFailed(
                f"Staged config failed verification: {reason}",
                phase=WriterState.VERIFYING,
                correlation_id=correlation_id,
                details={"status": verified.status.value, "reason": reason},
            )

        # PROMOTING
        self._transition(WriterState.PROMOTING, log)
        try:
            previous_count = _stored_chunk_count(await self.loader.read_meta(self.primary))
            await self.backend.set(
                dict(zip(self.primary.chunk_keys(encoded.chunk_count), encoded.chunks))
            )
            await self.backend.set({self.primary.meta_key: meta.to_storage()})
        except BackendError as e:
            raise WriteFailed(
                f"Promotion failed: {e}",
                phase=WriterState.PROMOTING,
                correlation_id=correlation_id,
                original_exception=e,
            )
        result.committed = True
        log.info(
            "config_committed",
            chunk_count=meta.chunk_count,
            checksum=meta.checksum,
            total_bytes=estimate.total_bytes,
        )

        # CLEANING_UP
        self._transition(WriterState.CLEANING_UP, log)
        orphans: List[str] = []
        if previous_count > encoded.chunk_count:
            orphans = self.primary.chunk_keys(previous_count, start=encoded.chunk_count)
        staging_keys = self.staging.chunk_keys(max(encoded.chunk_count, stale_staging))
        try:
            if orphans:
                await self.backend.remove(orphans)
            await self.backend.remove([self.staging.meta_key, *staging_keys])
        except BackendError as e:
            raise WriteFailed(
                f"Cleanup after commit failed: {e}",
                phase=WriterState.CLEANING_UP,
                committed=True,
                correlation_id=correlation_id,
                original_exception=e,
            )
        result.orphans_removed = len(orphans)
        result.ok = True
        log.debug("cleanup_complete", orphans_removed=len(orphans))
