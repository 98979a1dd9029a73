"""
Unit tests for ChunkCodec and the chunk key builder.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

import math
import zlib

import pytest

from mothership_core.codec import (
    ChunkCodec,
    checksum,
    chunk_key,
    chunk_keys,
    join_chunks,
    serialize,
    split_chunks,
    to_base36,
)
from mothership_core.exceptions import DecodeError, SerializationError, ValidationError

# ============================================================
# CHUNK KEYS
# ============================================================


class TestChunkKey:
    def test_zero_padded_index(self):
        assert chunk_key("msomSyncV2Chunk_", 0, 3) == "msomSyncV2Chunk_000"
        assert chunk_key("msomSyncV2Chunk_", 42, 3) == "msomSyncV2Chunk_042"
        assert chunk_key("msomSyncV2TmpChunk_", 999, 3) == "msomSyncV2TmpChunk_999"

    def test_negative_index_rejected(self):
        with pytest.raises(ValidationError):
            chunk_key("p_", -1, 3)

    def test_index_overflowing_width_rejected(self):
        with pytest.raises(ValidationError):
            chunk_key("p_", 1000, 3)

    def test_chunk_keys_range(self):
        assert chunk_keys("p_", 3, 2) == ["p_00", "p_01", "p_02"]
        assert chunk_keys("p_", 5, 2, start=3) == ["p_03", "p_04"]
        assert chunk_keys("p_", 0, 2) == []


# ============================================================
# CHECKSUM
# ============================================================


class TestChecksum:
    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"

    def test_base36_rejects_negative(self):
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_matches_crc32(self):
        text = '{"quotes":["héllo"]}'
        expected = int(checksum(text), 36)
        assert expected == zlib.crc32(text.encode("utf-8"))

    def test_deterministic_and_sensitive(self):
        assert checksum("abc") == checksum("abc")
        assert checksum("abc") != checksum("abd")


# ============================================================
# SERIALIZATION
# ============================================================


class TestSerialize:
    def test_compact_json(self):
        assert serialize({"a": [1, 2], "b": "x"}) == '{"a":[1,2],"b":"x"}'

    def test_non_ascii_kept(self):
        assert serialize({"q": "café"}) == '{"q":"café"}'

    def test_unsupported_type(self):
        with pytest.raises(SerializationError) as exc_info:
            serialize({"when": object()})
        assert exc_info.value.error_code == "SER_001"

    def test_circular_reference(self):
        document = {"links": []}
        document["links"].append(document)
        with pytest.raises(SerializationError) as exc_info:
            serialize(document)
        assert exc_info.value.error_code == "SER_002"

    def test_nan_rejected(self):
        with pytest.raises(SerializationError) as exc_info:
            serialize({"ratio": float("nan")})
        assert exc_info.value.error_code == "SER_003"


# ============================================================
# SPLIT / JOIN
# ============================================================


class TestSplit:
    @pytest.mark.parametrize("length,target", [(1, 10), (10, 10), (11, 10), (50_000, 8000)])
    def test_chunk_count(self, length, target):
        chunks = split_chunks("x" * length, target)
        assert len(chunks) == max(1, math.ceil(length / target))
        assert all(len(chunk) <= target for chunk in chunks)
        assert "".join(chunks) == "x" * length

    def test_empty_text_yields_one_chunk(self):
        assert split_chunks("", 10) == [""]

    def test_target_must_be_positive(self):
        with pytest.raises(ValidationError):
            split_chunks("abc", 0)

    def test_join_rejects_non_string(self):
        with pytest.raises(DecodeError) as exc_info:
            join_chunks(["ab", 5])
        assert exc_info.value.error_code == "DEC_002"


# ============================================================
# CODEC
# ============================================================


class TestChunkCodec:
    def test_round_trip(self, sample_config):
        codec = ChunkCodec(chunk_char_target=40)
        encoded = codec.encode(sample_config)

        assert encoded.chunk_count == math.ceil(len(encoded.serialized) / 40)
        assert encoded.checksum == checksum(encoded.serialized)
        assert codec.decode(encoded.chunks) == sample_config

    def test_order_matters(self):
        codec = ChunkCodec(chunk_char_target=4)
        encoded = codec.encode({"abc": "defghij"})
        with pytest.raises(DecodeError):
            codec.decode(list(reversed(encoded.chunks)))

    def test_empty_document(self):
        encoded = ChunkCodec().encode({})
        assert encoded.chunks == ["{}"]

    def test_invalid_target(self):
        with pytest.raises(ValidationError):
            ChunkCodec(chunk_char_target=0)

    def test_decode_invalid_json(self):
        with pytest.raises(DecodeError) as exc_info:
            ChunkCodec().decode(['{"links":', "["])
        assert exc_info.value.error_code == "DEC_001"
