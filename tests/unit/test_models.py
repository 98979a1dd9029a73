"""
Unit tests for the data models.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from mothership_core.exceptions import ValidationError as MothershipValidationError
from mothership_core.exceptions import WriteFailed
from mothership_core.models import (
    ItemSize,
    LoadResult,
    LoadStatus,
    MetaRecord,
    Namespace,
    SizeEstimate,
    WriteResult,
    WriterState,
)

NOW = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestMetaRecord:
    def test_storage_shape(self):
        meta = MetaRecord.create(2, 3, "abc", now=NOW)
        assert meta.to_storage() == {
            "version": 2,
            "chunkCount": 3,
            "updatedAt": "2026-01-02T03:04:05Z",
            "checksum": "abc",
        }

    def test_parse_storage(self):
        meta = MetaRecord.create(2, 3, "abc", now=NOW)
        assert MetaRecord.model_validate(meta.to_storage()) == meta

    def test_frozen(self):
        meta = MetaRecord.create(2, 3, "abc", now=NOW)
        with pytest.raises(ValidationError):
            meta.chunk_count = 4

    def test_create_defaults_to_now(self):
        meta = MetaRecord.create(2, 1, "abc")
        assert meta.updated_at.tzinfo is not None

    @pytest.mark.parametrize("field,value", [("chunkCount", 0), ("version", 0), ("checksum", "")])
    def test_rejects_invalid(self, field, value):
        raw = {"version": 2, "chunkCount": 1, "updatedAt": "2026-01-01T00:00:00Z", "checksum": "a"}
        raw[field] = value
        with pytest.raises(ValidationError):
            MetaRecord.model_validate(raw)


class TestNamespace:
    def test_keys(self):
        namespace = Namespace("meta", "chunk_", index_width=2)
        assert namespace.chunk_key(7) == "chunk_07"
        assert namespace.chunk_keys(3, start=1) == ["chunk_01", "chunk_02"]
        assert namespace.max_chunks == 100

    def test_overflow(self):
        with pytest.raises(MothershipValidationError):
            Namespace("meta", "chunk_", index_width=2).chunk_key(100)


class TestResults:
    def test_size_estimate(self):
        estimate = SizeEstimate(
            items=[ItemSize("m", 50), ItemSize("c0", 900), ItemSize("c1", 20)],
            total_bytes=970,
            chunk_count=2,
            config_bytes=880,
        )
        assert estimate.per_item_bytes == [50, 900, 20]
        assert estimate.max_item_bytes == 900
        assert estimate.item_count == 3

    def test_load_result_constructors(self):
        assert LoadResult.not_found().status is LoadStatus.NOT_FOUND
        assert LoadResult.unsupported(3).version == 3
        assert LoadResult.corrupt("missing chunk 2").reason == "missing chunk 2"
        assert not LoadResult.unavailable("down").ok

    def test_write_result_phase(self):
        assert WriteResult(ok=True).phase is None
        failed = WriteResult(ok=False, error=WriteFailed("x", phase=WriterState.VERIFYING))
        assert failed.phase is WriterState.VERIFYING
