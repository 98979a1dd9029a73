"""
ConfigLoader - reconstructs the document from a committed chunk set.

Reads the meta record of a namespace, fetches exactly the chunk keys it claims
by index-derived key, reassembles them in index order and checks the checksum.
The outcome is always a LoadResult; loading never writes to the backend.

A CORRUPT result is frequently transient: the backend replicates keys
independently, so another device may see a new meta record before its chunks.
Callers decide whether to retry after a delay.

License: MIT
"""

from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from mothership_core.codec import ChunkCodec, checksum, join_chunks
from mothership_core.exceptions import DecodeError
from mothership_core.models import LoadResult, MetaRecord, Namespace
from mothership_db.backends.base import StorageBackend
from mothership_db.exceptions import BackendError

logger = structlog.get_logger(__name__)


class ConfigLoader:
    """
    Loader/validator for one or more namespaces of the same backend.

    Attributes:
        backend: StorageBackend to read from
        codec: ChunkCodec used to parse the reassembled text
        namespace: Default namespace (the committed one)
        supported_version: Newest meta version this build understands
    """

    def __init__(
        self,
        backend: StorageBackend,
        codec: ChunkCodec,
        namespace: Namespace,
        supported_version: int = 2,
    ) -> None:
        self.backend = backend
        self.codec = codec
        self.namespace = namespace
        self.supported_version = supported_version

    async def read_meta(self, namespace: Optional[Namespace] = None) -> Any:
        """
        Raw stored meta value of ``namespace``, or None when absent.

        Raises:
            BackendError: If the backend read fails
        """
        namespace = namespace or self.namespace
        stored = await self.backend.get([namespace.meta_key])
        return stored.get(namespace.meta_key)

    async def load(self, namespace: Optional[Namespace] = None) -> LoadResult:
        """
        Load and verify the document stored in ``namespace``.

        Returns:
            LoadResult with status OK, CORRUPT, UNSUPPORTED, NOT_FOUND or
            UNAVAILABLE (backend read failed)
        """
        namespace = namespace or self.namespace
        log = logger.bind(meta_key=namespace.meta_key)

        try:
            raw_meta = await self.read_meta(namespace)
        except BackendError as e:
            log.error("meta_read_failed", error=str(e))
            return LoadResult.unavailable(f"backend read failed: {e}")

        if raw_meta is None:
            log.debug("meta_not_found")
            return LoadResult.not_found()

        version = raw_meta.get("version") if isinstance(raw_meta, dict) else None
        if isinstance(version, int) and version > self.supported_version:
            log.warning(
                "meta_version_unsupported", version=version, supported=self.supported_version
            )
            return LoadResult.unsupported(version)

        try:
            meta = MetaRecord.model_validate(raw_meta)
        except PydanticValidationError as e:
            log.warning("meta_invalid", error_count=e.error_count())
            return LoadResult.corrupt("invalid meta record")

        # Lax validation coerces "3" or 3.0, which skip the raw check above.
        if meta.version > self.supported_version:
            log.warning(
                "meta_version_unsupported", version=meta.version, supported=self.supported_version
            )
            return LoadResult.unsupported(meta.version)

        if meta.chunk_count > namespace.max_chunks:
            log.warning("meta_invalid", chunk_count=meta.chunk_count)
            return LoadResult.corrupt("invalid meta record", meta=meta)

        keys = namespace.chunk_keys(meta.chunk_count)
        try:
            stored: Dict[str, Any] = await self.backend.get(keys)
        except BackendError as e:
            log.error("chunk_read_failed", chunk_count=meta.chunk_count, error=str(e))
            return LoadResult.unavailable(f"backend read failed: {e}")

        chunks = []
        for index, key in enumerate(keys):
            if key not in stored:
                log.warning("chunk_missing", index=index, key=key, chunk_count=meta.chunk_count)
                return LoadResult.corrupt(f"missing chunk {index}", meta=meta)
            chunks.append(stored[key])

        try:
            text = join_chunks(chunks)
            document = self.codec.decode([text])
        except DecodeError as e:
            log.warning("decode_failed", error=e.message)
            return LoadResult.corrupt("decode failure", meta=meta)

        if checksum(text) != meta.checksum:
            log.warning("checksum_mismatch", expected=meta.checksum)
            return LoadResult.corrupt("checksum mismatch", meta=meta)

        log.debug("config_loaded", chunk_count=meta.chunk_count, checksum=meta.checksum)
        return LoadResult.loaded(document, meta)
