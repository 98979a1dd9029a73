"""
Configuration Management for the Mothership sync store.

Provides centralized, type-safe configuration loading using Pydantic Settings.
Supports environment variables (prefix MOTHERSHIP_), .env files, and defaults
matching the browser sync storage area for zero-config operation.

License: MIT
"""

from typing import Any, Dict, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings

from mothership_core.models import Namespace, StorageLimits

# Bytes one serialized character can cost once stored as a JSON string value
# (a \u00XX escape); chunk sizing is checked against this worst case.
MAX_BYTES_PER_CHAR = 6


class MothershipSettings(BaseSettings):
    """
    Centralized configuration for the sync store.

    Configuration is loaded with the following priority (highest to lowest):
    1. System environment variables (MOTHERSHIP_*)
    2. .env file in the working directory
    3. Hardcoded default values

    Example:
        ```python
        from mothership_core.config import settings

        print(settings.max_item_bytes)     # 8192
        print(settings.chunk_char_target)  # 1350

        limits = settings.limits
        primary = settings.primary_namespace
        ```
    """

    # ========================================
    # STORAGE QUOTAS
    # ========================================

    max_item_bytes: int = Field(
        default=8192, ge=64, description="Per-item ceiling: key length + JSON value length"
    )

    max_total_bytes: int = Field(
        default=102400, ge=1024, description="Aggregate ceiling over every stored item"
    )

    max_items: int = Field(default=512, ge=2, description="Maximum number of stored items")

    # ========================================
    # CHUNKING
    # ========================================

    chunk_char_target: int = Field(
        default=1350, ge=16, description="Characters of serialized config per chunk"
    )

    chunk_index_width: int = Field(
        default=3, ge=1, le=6, description="Zero-padded width of the chunk index in keys"
    )

    schema_version: int = Field(
        default=2, ge=1, description="Meta record version written and understood by this build"
    )

    # ========================================
    # KEY LAYOUT
    # ========================================

    meta_key: str = Field(default="msomSyncV2Meta", description="Committed meta record key")

    chunk_prefix: str = Field(default="msomSyncV2Chunk_", description="Committed chunk key prefix")

    staging_meta_key: str = Field(
        default="msomSyncV2TmpMeta", description="Staging meta record key"
    )

    staging_chunk_prefix: str = Field(
        default="msomSyncV2TmpChunk_", description="Staging chunk key prefix"
    )

    legacy_key: str = Field(
        default="mothershipSyncConfig", description="Single-key unchunked legacy record"
    )

    # ========================================
    # BACKEND
    # ========================================

    backend: str = Field(default="redis", description="Storage backend (memory, redis)")

    redis_host: str = Field(default="localhost", description="Redis server hostname")

    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")

    redis_db: int = Field(default=0, ge=0, le=15, description="Redis database number")

    redis_password: Optional[SecretStr] = Field(
        default=None, description="Redis authentication password (if required)"
    )

    redis_namespace: str = Field(
        default="mothership:", description="Prefix for every key stored in Redis"
    )

    enforce_backend_quota: bool = Field(
        default=True, description="Make the backend reject writes beyond the quotas"
    )

    # ========================================
    # LOGGING CONFIGURATION
    # ========================================

    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(default="json", description="Log format (json, console)")

    # ========================================
    # VALIDATORS
    # ========================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is one of allowed values.

        Returns:
            Uppercase log level string

        Raises:
            ValueError: If log level not in allowed values
        """
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got '{v}'")
        return v_lower

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ["memory", "redis"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"backend must be one of {allowed}, got '{v}'")
        return v_lower

    @field_validator(
        "meta_key", "chunk_prefix", "staging_meta_key", "staging_chunk_prefix", "legacy_key"
    )
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Keys must be short non-empty ASCII strings."""
        if not v or not v.isascii():
            raise ValueError(f"storage keys must be non-empty ASCII, got '{v}'")
        return v

    @model_validator(mode="after")
    def validate_layout(self) -> "MothershipSettings":
        """
        Cross-field checks on the key layout and chunk sizing.

        Raises:
            ValueError: If namespaces collide or a chunk cannot fit in one item
        """
        if self.meta_key == self.staging_meta_key:
            raise ValueError("meta_key and staging_meta_key must differ")
        if self.chunk_prefix == self.staging_chunk_prefix:
            raise ValueError("chunk_prefix and staging_chunk_prefix must differ")
        if self.worst_case_chunk_bytes > self.max_item_bytes:
            raise ValueError(
                f"chunk_char_target ({self.chunk_char_target}) allows chunk items of up to "
                f"{self.worst_case_chunk_bytes} bytes, over max_item_bytes "
                f"({self.max_item_bytes})"
            )
        if self.max_item_bytes > self.max_total_bytes:
            raise ValueError("max_item_bytes must not exceed max_total_bytes")
        return self

    # ========================================
    # COMPUTED PROPERTIES
    # ========================================

    @property
    def limits(self) -> StorageLimits:
        """Backend quotas as a StorageLimits value."""
        return StorageLimits(
            max_item_bytes=self.max_item_bytes,
            max_total_bytes=self.max_total_bytes,
            max_items=self.max_items,
        )

    @property
    def primary_namespace(self) -> Namespace:
        return Namespace(
            meta_key=self.meta_key,
            chunk_prefix=self.chunk_prefix,
            index_width=self.chunk_index_width,
        )

    @property
    def staging_namespace(self) -> Namespace:
        return Namespace(
            meta_key=self.staging_meta_key,
            chunk_prefix=self.staging_chunk_prefix,
            index_width=self.chunk_index_width,
        )

    @property
    def worst_case_chunk_bytes(self) -> int:
        """
        Largest item a full chunk can produce in either namespace.

        Every character costs at most MAX_BYTES_PER_CHAR bytes, plus the two
        quotes of the JSON string and the longest chunk key.
        """
        longest_prefix = max(len(self.chunk_prefix), len(self.staging_chunk_prefix))
        return (
            self.chunk_char_target * MAX_BYTES_PER_CHAR
            + 2
            + longest_prefix
            + self.chunk_index_width
        )

    # ========================================
    # PYDANTIC CONFIGURATION
    # ========================================

    model_config = {
        "env_prefix": "MOTHERSHIP_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "ignore",
    }


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def get_config_summary(settings: MothershipSettings) -> Dict[str, Any]:
    """
    Get configuration summary for logging/debugging with sensitive values masked.

    Args:
        settings: MothershipSettings instance

    Returns:
        Configuration summary grouped by category
    """
    return {
        "quota": {
            "max_item_bytes": settings.max_item_bytes,
            "max_total_bytes": settings.max_total_bytes,
            "max_items": settings.max_items,
        },
        "chunking": {
            "chunk_char_target": settings.chunk_char_target,
            "worst_case_chunk_bytes": settings.worst_case_chunk_bytes,
            "chunk_index_width": settings.chunk_index_width,
            "schema_version": settings.schema_version,
        },
        "keys": {
            "meta_key": settings.meta_key,
            "chunk_prefix": settings.chunk_prefix,
            "staging_meta_key": settings.staging_meta_key,
            "staging_chunk_prefix": settings.staging_chunk_prefix,
            "legacy_key": settings.legacy_key,
        },
        "backend": {
            "kind": settings.backend,
            "redis_host": settings.redis_host,
            "redis_port": settings.redis_port,
            "redis_db": settings.redis_db,
            "redis_password": "***" if settings.redis_password else None,
            "redis_namespace": settings.redis_namespace,
            "enforce_quota": settings.enforce_backend_quota,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }


# Singleton instance - instantiated once at module import
settings = MothershipSettings()
