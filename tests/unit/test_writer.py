"""
Unit tests for StagedWriter.

Faults are injected at every phase of the staged write through the
InMemoryBackend hooks; each must surface as WriteFailed with that phase and
leave the committed document in the state the protocol promises.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import pytest

from mothership_core.config import MothershipSettings
from mothership_core.exceptions import QuotaExceeded, SerializationError, WriteFailed
from mothership_core.models import LoadStatus, Namespace, WriterState
from mothership_core.store import ConfigStore
from mothership_core.writer import StagedWriter
from mothership_db.backends import InMemoryBackend


PRIMARY_META = "msomSyncV2Meta"
STAGING_META = "msomSyncV2TmpMeta"


@pytest.fixture
def small_chunks():
    return MothershipSettings(backend="memory", chunk_char_target=64)


@pytest.fixture
def mem():
    return InMemoryBackend(max_item_bytes=8192, max_total_bytes=102400, max_items=512)


@pytest.fixture
def cstore(mem, small_chunks, fixed_now):
    return ConfigStore(mem, small_chunks, clock=lambda: fixed_now)


def staging_keys(backend):
    return [key for key in backend.keys() if key.startswith("msomSyncV2Tmp")]


def primary_chunk_keys(backend):
    return [key for key in backend.keys() if key.startswith("msomSyncV2Chunk_")]


# ============================================================
# SUCCESSFUL WRITES
# ============================================================


class TestWriteSuccess:
    @pytest.mark.asyncio
    async def test_commits_and_cleans_staging(self, cstore, mem, sample_config, fixed_now):
        result = await cstore.write(sample_config)

        assert result.ok is True
        assert result.committed is True
        assert result.error is None
        assert result.meta.chunk_count > 1
        assert result.meta.updated_at == fixed_now
        assert staging_keys(mem) == []
        assert len(primary_chunk_keys(mem)) == result.meta.chunk_count

        loaded = await cstore.load()
        assert loaded.ok
        assert loaded.document == sample_config
        assert loaded.meta == result.meta

    @pytest.mark.asyncio
    async def test_stored_meta_shape(self, cstore, mem, sample_config):
        result = await cstore.write(sample_config)
        stored = (await mem.get(PRIMARY_META))[PRIMARY_META]

        assert set(stored) == {"version", "chunkCount", "updatedAt", "checksum"}
        assert stored["version"] == 2
        assert stored["chunkCount"] == result.meta.chunk_count
        assert stored["checksum"] == result.meta.checksum

    @pytest.mark.asyncio
    async def test_removes_orphans_from_larger_write(self, cstore, mem):
        first = await cstore.write({"quotes": ["x" * 1000]})
        second = await cstore.write({"quotes": []})

        assert first.meta.chunk_count > 1
        assert second.meta.chunk_count == 1
        assert second.orphans_removed == first.meta.chunk_count - 1
        assert primary_chunk_keys(mem) == ["msomSyncV2Chunk_000"]
        assert (await cstore.load()).document == {"quotes": []}

    @pytest.mark.asyncio
    async def test_state_returns_to_idle(self, cstore, sample_config):
        await cstore.write(sample_config)
        assert cstore.writer.state is WriterState.IDLE

    @pytest.mark.asyncio
    async def test_rejects_reentrant_write(self, cstore, sample_config):
        cstore.writer.state = WriterState.STAGING
        with pytest.raises(RuntimeError):
            await cstore.writer.write(sample_config)

    def test_overlapping_namespaces_rejected(self, cstore):
        primary = cstore.config.primary_namespace
        with pytest.raises(ValueError):
            StagedWriter(
                cstore.backend,
                cstore.codec,
                cstore.estimator,
                cstore.loader,
                primary,
                Namespace(meta_key="other", chunk_prefix=primary.chunk_prefix),
            )


# ============================================================
# REFUSED BEFORE TOUCHING STORAGE
# ============================================================


class TestWriteRefused:
    @pytest.mark.asyncio
    async def test_quota_exceeded(self, cstore, mem):
        result = await cstore.write({"quotes": ["x" * 200_000]})

        assert result.ok is False
        assert isinstance(result.error, QuotaExceeded)
        assert result.error.estimate.total_bytes > 102400
        assert result.phase is None
        assert mem.keys() == []

    @pytest.mark.asyncio
    async def test_serialization_error(self, cstore, mem):
        result = await cstore.write({"when": object()})

        assert result.ok is False
        assert isinstance(result.error, SerializationError)
        assert mem.keys() == []


# ============================================================
# FAULTS AT EACH PHASE
# ============================================================


class TestWriteFaults:
    @pytest.mark.parametrize("failing_key", ["msomSyncV2TmpChunk_000", STAGING_META])
    @pytest.mark.asyncio
    async def test_staging_failure_keeps_previous(self, cstore, mem, sample_config, failing_key):
        await cstore.write({"quotes": ["old"]})
        mem.failing_writes.add(failing_key)

        result = await cstore.write(sample_config)

        assert result.ok is False
        assert result.committed is False
        assert isinstance(result.error, WriteFailed)
        assert result.phase is WriterState.STAGING
        assert result.error.error_code == "WRITE_001"
        assert (await cstore.load()).document == {"quotes": ["old"]}
        assert cstore.writer.state is WriterState.IDLE

    @pytest.mark.asyncio
    async def test_verify_failure_keeps_previous(self, cstore, mem, sample_config):
        await cstore.write({"quotes": ["old"]})
        mem.hidden_keys.add("msomSyncV2TmpChunk_000")

        result = await cstore.write(sample_config)

        assert result.phase is WriterState.VERIFYING
        assert result.error.error_code == "WRITE_002"
        assert "missing chunk 0" in result.error.message
        loaded = await cstore.load()
        assert loaded.ok
        assert loaded.document == {"quotes": ["old"]}

    @pytest.mark.asyncio
    async def test_verify_failure_without_previous(self, cstore, mem, sample_config):
        mem.hidden_keys.add("msomSyncV2TmpChunk_001")

        result = await cstore.write(sample_config)

        assert result.phase is WriterState.VERIFYING
        assert (await cstore.load()).status is LoadStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_promote_chunk_failure_keeps_previous(self, cstore, mem, sample_config):
        await cstore.write({"quotes": ["old"]})
        mem.failing_writes.add("msomSyncV2Chunk_000")

        result = await cstore.write(sample_config)

        assert result.phase is WriterState.PROMOTING
        assert result.committed is False
        assert (await cstore.load()).document == {"quotes": ["old"]}

    @pytest.mark.asyncio
    async def test_promote_meta_failure_never_mixes(self, cstore, mem, sample_config):
        await cstore.write({"quotes": ["old"]})
        mem.failing_writes.add(PRIMARY_META)

        result = await cstore.write(sample_config)

        assert result.phase is WriterState.PROMOTING
        assert result.error.error_code == "WRITE_003"
        assert result.error.is_transient is True
        assert (await cstore.load()).status is LoadStatus.CORRUPT

        mem.failing_writes.clear()
        assert (await cstore.write(sample_config)).ok
        assert (await cstore.load()).document == sample_config

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_committed(self, cstore, mem, sample_config):
        mem.failing_removes.add(STAGING_META)

        result = await cstore.write(sample_config)

        assert result.ok is False
        assert result.committed is True
        assert result.phase is WriterState.CLEANING_UP
        assert result.error.committed is True
        assert result.error.to_dict()["phase"] == "cleaning_up"
        assert (await cstore.load()).document == sample_config

    @pytest.mark.asyncio
    async def test_stale_staging_removed_by_next_write(self, cstore, mem):
        mem.failing_removes.add(STAGING_META)
        await cstore.write({"quotes": ["x" * 1000]})
        assert len(staging_keys(mem)) > 2

        mem.failing_removes.clear()
        result = await cstore.write({"quotes": []})

        assert result.ok
        assert staging_keys(mem) == []
