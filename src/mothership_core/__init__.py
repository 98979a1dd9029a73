"""
Mothership Core Layer.

Chunked, checksummed storage of the configuration document in a
quota-constrained key/value backend. Contains:
- Codec and quota estimator
- Staged writer, loader/validator and legacy migrator
- ConfigStore facade
- Exception hierarchy, configuration and logging service

License: MIT
"""

from .codec import ChunkCodec, EncodedDocument, checksum, chunk_key, chunk_keys
from .config import MothershipSettings, get_config_summary, settings
from .document import (
    DEFAULT_CONFIG,
    apply_local_assets,
    default_config,
    merge_config,
    split_config,
)
from .exceptions import (
    DecodeError,
    MothershipError,
    QuotaExceeded,
    SerializationError,
    ValidationError,
    WriteFailed,
)
from .loader import ConfigLoader
from .logging_service import LoggingConfig, LoggingService
from .migrator import LegacyMigrator
from .models import (
    LoadResult,
    LoadStatus,
    MetaRecord,
    MigrationResult,
    MigrationStatus,
    Namespace,
    ShrinkResult,
    SizeEstimate,
    StorageLimits,
    WriteResult,
    WriterState,
)
from .quota import DEFAULT_REMOVAL_PRIORITY, QuotaEstimator
from .store import ConfigStore, create_backend
from .writer import StagedWriter

__all__ = [
    # Exceptions
    "MothershipError",
    "ValidationError",
    "SerializationError",
    "DecodeError",
    "QuotaExceeded",
    "WriteFailed",
    # Configuration
    "MothershipSettings",
    "settings",
    "get_config_summary",
    # Logging
    "LoggingService",
    "LoggingConfig",
    # Models
    "MetaRecord",
    "Namespace",
    "StorageLimits",
    "SizeEstimate",
    "LoadResult",
    "LoadStatus",
    "WriteResult",
    "WriterState",
    "ShrinkResult",
    "MigrationResult",
    "MigrationStatus",
    # Components
    "ChunkCodec",
    "EncodedDocument",
    "checksum",
    "chunk_key",
    "chunk_keys",
    "QuotaEstimator",
    "DEFAULT_REMOVAL_PRIORITY",
    "ConfigLoader",
    "StagedWriter",
    "LegacyMigrator",
    "ConfigStore",
    "create_backend",
    # Documents
    "DEFAULT_CONFIG",
    "default_config",
    "merge_config",
    "split_config",
    "apply_local_assets",
]
