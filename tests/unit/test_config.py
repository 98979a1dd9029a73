"""
Unit tests for MothershipSettings.

Tests configuration loading, validation, computed properties,
and environment variable handling.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import pytest
from pydantic import SecretStr, ValidationError

from mothership_core.config import MothershipSettings, get_config_summary
from mothership_core.models import Namespace, StorageLimits

# ============================================================
# CONFIGURATION LOADING TESTS
# ============================================================


def test_default_configuration():
    """Defaults mirror the browser sync storage area."""
    settings = MothershipSettings()

    assert settings.max_item_bytes == 8192
    assert settings.max_total_bytes == 102400
    assert settings.max_items == 512
    assert settings.chunk_char_target == 1350
    assert settings.chunk_index_width == 3
    assert settings.schema_version == 2

    assert settings.meta_key == "msomSyncV2Meta"
    assert settings.chunk_prefix == "msomSyncV2Chunk_"
    assert settings.staging_meta_key == "msomSyncV2TmpMeta"
    assert settings.staging_chunk_prefix == "msomSyncV2TmpChunk_"
    assert settings.legacy_key == "mothershipSyncConfig"

    assert settings.backend == "redis"
    assert settings.redis_port == 6379
    assert settings.redis_password is None
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("MOTHERSHIP_BACKEND", "memory")
    monkeypatch.setenv("MOTHERSHIP_CHUNK_CHAR_TARGET", "1000")
    monkeypatch.setenv("MOTHERSHIP_LOG_LEVEL", "debug")

    settings = MothershipSettings()

    assert settings.backend == "memory"
    assert settings.chunk_char_target == 1000
    assert settings.log_level == "DEBUG"


def test_env_file(tmp_path):
    (tmp_path / ".env").write_text("MOTHERSHIP_MAX_TOTAL_BYTES=204800\n")
    assert MothershipSettings().max_total_bytes == 204800


# ============================================================
# VALIDATION TESTS
# ============================================================


@pytest.mark.parametrize(
    "kwargs",
    [
        {"log_level": "VERBOSE"},
        {"log_format": "xml"},
        {"backend": "sqlite"},
        {"meta_key": ""},
        {"chunk_prefix": "chünk_"},
        {"redis_db": 16},
        {"chunk_char_target": 9000},
        {"chunk_char_target": 1400},
        {"max_item_bytes": 4096},
        {"max_item_bytes": 200_000},
        {"staging_meta_key": "msomSyncV2Meta"},
        {"staging_chunk_prefix": "msomSyncV2Chunk_"},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ValidationError):
        MothershipSettings(**kwargs)


def test_case_normalization():
    settings = MothershipSettings(backend="MEMORY", log_format="Console")
    assert settings.backend == "memory"
    assert settings.log_format == "console"


# ============================================================
# COMPUTED PROPERTIES
# ============================================================


def test_limits():
    settings = MothershipSettings(
        max_item_bytes=4096, max_total_bytes=50_000, chunk_char_target=600
    )
    assert settings.limits == StorageLimits(
        max_item_bytes=4096, max_total_bytes=50_000, max_items=512
    )


def test_namespaces():
    settings = MothershipSettings(chunk_index_width=4)

    assert settings.primary_namespace == Namespace("msomSyncV2Meta", "msomSyncV2Chunk_", 4)
    assert settings.staging_namespace.chunk_key(12) == "msomSyncV2TmpChunk_0012"


def test_worst_case_chunk_fits_item_limit():
    """A full chunk of six-byte escapes still fits under the default per-item limit."""
    settings = MothershipSettings()

    longest_key = len("msomSyncV2TmpChunk_") + 3
    assert settings.worst_case_chunk_bytes == 1350 * 6 + 2 + longest_key
    assert settings.worst_case_chunk_bytes <= settings.max_item_bytes


def test_chunk_target_scales_with_item_limit():
    settings = MothershipSettings(max_item_bytes=65536, chunk_char_target=8000)
    assert settings.worst_case_chunk_bytes <= 65536


def test_config_summary_masks_password():
    settings = MothershipSettings(redis_password=SecretStr("hunter2"))
    summary = get_config_summary(settings)

    assert summary["backend"]["redis_password"] == "***"
    assert summary["quota"]["max_item_bytes"] == 8192
    assert summary["keys"]["legacy_key"] == "mothershipSyncConfig"
    assert "hunter2" not in str(summary)
