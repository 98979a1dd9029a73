"""
Data models for the Mothership sync store.

Pydantic models for the persisted meta record and the backend limits,
dataclasses for the values returned by the store operations.

License: MIT
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mothership_core.codec import chunk_key, chunk_keys


class StorageLimits(BaseModel):
    """Quotas imposed by the storage environment."""

    model_config = ConfigDict(frozen=True)

    max_item_bytes: int = Field(default=8192, ge=1)
    max_total_bytes: int = Field(default=102400, ge=1)
    max_items: Optional[int] = Field(default=512, ge=1)


@dataclass(frozen=True)
class Namespace:
    """
    Key layout of one chunk set: a meta key plus a chunk key prefix.

    The committed and the staging copies of the document are two Namespace
    values sharing every code path.
    """

    meta_key: str
    chunk_prefix: str
    index_width: int = 3

    def chunk_key(self, index: int) -> str:
        return chunk_key(self.chunk_prefix, index, self.index_width)

    def chunk_keys(self, count: int, start: int = 0) -> List[str]:
        return chunk_keys(self.chunk_prefix, count, self.index_width, start=start)

    @property
    def max_chunks(self) -> int:
        """Largest chunk count whose keys keep the fixed index width."""
        return 10**self.index_width


class MetaRecord(BaseModel):
    """
    Pointer to the committed chunk set.

    Stored as ``{"version", "chunkCount", "updatedAt", "checksum"}``. Instances
    are frozen; every write produces a fresh record.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    version: int = Field(..., ge=1)
    chunk_count: int = Field(..., ge=1, alias="chunkCount")
    updated_at: datetime = Field(..., alias="updatedAt")
    checksum: str = Field(..., min_length=1)

    @classmethod
    def create(
        cls, version: int, chunk_count: int, checksum: str, now: Optional[datetime] = None
    ) -> "MetaRecord":
        return cls(
            version=version,
            chunk_count=chunk_count,
            checksum=checksum,
            updated_at=now or datetime.now(timezone.utc),
        )

    def to_storage(self) -> Dict[str, Any]:
        """JSON shape written to the backend."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class ItemSize:
    """Byte cost of one item in a candidate write."""

    key: str
    bytes: int


@dataclass
class SizeEstimate:
    """Exact byte cost of writing a document as meta + chunks."""

    items: List[ItemSize]
    total_bytes: int
    chunk_count: int
    config_bytes: int

    @property
    def per_item_bytes(self) -> List[int]:
        return [item.bytes for item in self.items]

    @property
    def max_item_bytes(self) -> int:
        return max(self.per_item_bytes, default=0)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config_bytes": self.config_bytes,
            "chunk_count": self.chunk_count,
            "max_item_bytes": self.max_item_bytes,
            "total_bytes": self.total_bytes,
        }


class LoadStatus(str, Enum):
    OK = "ok"
    CORRUPT = "corrupt"
    UNSUPPORTED = "unsupported"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass
class LoadResult:
    """
    Outcome of reading one namespace.

    Only OK carries a document. CORRUPT carries a reason naming the missing or
    mismatched element; UNSUPPORTED carries the stored version; UNAVAILABLE
    means the backend read itself failed.
    """

    status: LoadStatus
    document: Any = None
    reason: Optional[str] = None
    version: Optional[int] = None
    meta: Optional[MetaRecord] = None

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK

    @classmethod
    def loaded(cls, document: Any, meta: MetaRecord) -> "LoadResult":
        return cls(status=LoadStatus.OK, document=document, meta=meta, version=meta.version)

    @classmethod
    def corrupt(cls, reason: str, meta: Optional[MetaRecord] = None) -> "LoadResult":
        return cls(status=LoadStatus.CORRUPT, reason=reason, meta=meta)

    @classmethod
    def unsupported(cls, version: int) -> "LoadResult":
        return cls(status=LoadStatus.UNSUPPORTED, version=version, reason=f"version {version}")

    @classmethod
    def not_found(cls) -> "LoadResult":
        return cls(status=LoadStatus.NOT_FOUND)

    @classmethod
    def unavailable(cls, reason: str) -> "LoadResult":
        return cls(status=LoadStatus.UNAVAILABLE, reason=reason)


class WriterState(str, Enum):
    """States of the staged write protocol."""

    IDLE = "idle"
    STAGING = "staging"
    VERIFYING = "verifying"
    PROMOTING = "promoting"
    CLEANING_UP = "cleaning_up"


@dataclass
class WriteResult:
    """
    Outcome of a staged write.

    ``committed`` is True once the new meta record has been published, even if
    the cleanup afterwards failed; ``ok`` additionally requires a clean finish.
    """

    ok: bool
    committed: bool = False
    meta: Optional[MetaRecord] = None
    estimate: Optional[SizeEstimate] = None
    error: Optional[Exception] = None
    orphans_removed: int = 0

    @property
    def phase(self) -> Optional[WriterState]:
        return getattr(self.error, "phase", None)


@dataclass
class ShrinkResult:
    """Document trimmed to fit the limits, its estimate and what was removed."""

    document: Any
    estimate: SizeEstimate
    removed: Dict[str, int] = field(default_factory=dict)
    fits: bool = True


class MigrationStatus(str, Enum):
    MIGRATED = "migrated"
    NOT_NEEDED = "not_needed"
    FAILED = "failed"


@dataclass
class MigrationResult:
    """Result of a legacy migration attempt."""

    status: MigrationStatus
    reason: Optional[str] = None
    write_result: Optional[WriteResult] = None
    legacy_removed: bool = False
