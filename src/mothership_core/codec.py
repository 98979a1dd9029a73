"""
ChunkCodec - serializes the config document and splits it into chunks.

The document is serialized to compact JSON, cut into fixed-size character
chunks and fingerprinted with a 32-bit checksum (CRC-32, rendered in base 36).
The checksum only detects accidental corruption; it authenticates nothing.

Chunk keys come from a single pure builder, chunk_key(prefix, index, width),
shared by the committed and the staging namespaces.

License: MIT
"""

import json
import math
import zlib
from dataclasses import dataclass
from typing import Any, List, Sequence

import structlog

from mothership_core.exceptions import DecodeError, SerializationError, ValidationError

logger = structlog.get_logger(__name__)

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def chunk_key(prefix: str, index: int, width: int) -> str:
    """
    Build the storage key of chunk ``index``.

    Example:
        >>> chunk_key("msomSyncV2Chunk_", 7, 3)
        'msomSyncV2Chunk_007'
    """
    if index < 0:
        raise ValidationError(f"chunk index must be >= 0, got {index}")
    if index >= 10**width:
        raise ValidationError(f"chunk index {index} does not fit in {width} digits")
    return f"{prefix}{index:0{width}d}"


def chunk_keys(prefix: str, count: int, width: int, start: int = 0) -> List[str]:
    """Keys for chunk indices ``start .. count-1``."""
    return [chunk_key(prefix, i, width) for i in range(start, count)]


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def checksum(text: str) -> str:
    """CRC-32 of the UTF-8 text in base 36."""
    return to_base36(zlib.crc32(text.encode("utf-8")) & 0xFFFFFFFF)


def serialize(document: Any) -> str:
    """
    Canonical serialization: compact JSON, non-ASCII kept as is, no NaN/Infinity.

    Raises:
        SerializationError: If the document is cyclic or holds unsupported values
    """
    try:
        return json.dumps(document, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except TypeError as e:
        raise SerializationError(
            f"Document is not JSON-serializable: {e}", error_code="SER_001", original_exception=e
        )
    except ValueError as e:
        code = "SER_002" if "ircular" in str(e) else "SER_003"
        raise SerializationError(
            f"Document is not JSON-serializable: {e}", error_code=code, original_exception=e
        )
    except RecursionError as e:
        raise SerializationError(
            "Document nesting is too deep to serialize", error_code="SER_002", original_exception=e
        )


def split_chunks(text: str, target: int) -> List[str]:
    """
    Split text into ``ceil(len(text) / target)`` chunks, at least one.

    The empty string yields a single empty chunk so an empty-but-valid
    document still has a chunk set.
    """
    if target <= 0:
        raise ValidationError(f"chunk target must be positive, got {target}")
    count = max(1, math.ceil(len(text) / target))
    return [text[i * target : (i + 1) * target] for i in range(count)]


def join_chunks(chunks: Sequence[Any]) -> str:
    """
    Concatenate chunk values in the order given.

    Raises:
        DecodeError: If a chunk value is not a string
    """
    for index, value in enumerate(chunks):
        if not isinstance(value, str):
            raise DecodeError(
                f"chunk {index} holds {type(value).__name__}, expected str",
                error_code="DEC_002",
            )
    return "".join(chunks)


def parse(text: str) -> Any:
    """
    Parse serialized document text.

    Raises:
        DecodeError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except ValueError as e:
        raise DecodeError(f"Serialized document is not valid JSON: {e}", original_exception=e)


@dataclass
class EncodedDocument:
    """Chunks in index order, checksum of the full text, and the text itself."""

    chunks: List[str]
    checksum: str
    serialized: str

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)


class ChunkCodec:
    """
    Encode a document into ordered chunks and decode it back.

    Attributes:
        chunk_char_target: Characters per chunk (the last one may be shorter)

    Example:
        ```python
        codec = ChunkCodec(chunk_char_target=1350)
        encoded = codec.encode({"links": [], "quotes": ["hi"]})
        document = codec.decode(encoded.chunks)
        ```
    """

    def __init__(self, chunk_char_target: int = 1350) -> None:
        if chunk_char_target <= 0:
            raise ValidationError(
                f"chunk_char_target must be positive, got {chunk_char_target}"
            )
        self.chunk_char_target = chunk_char_target

    def encode(self, document: Any) -> EncodedDocument:
        """
        Serialize and split ``document``.

        Raises:
            SerializationError: If the document cannot be serialized
        """
        text = serialize(document)
        chunks = split_chunks(text, self.chunk_char_target)
        encoded = EncodedDocument(chunks=chunks, checksum=checksum(text), serialized=text)
        logger.debug(
            "document_encoded",
            config_chars=len(text),
            chunk_count=encoded.chunk_count,
            checksum=encoded.checksum,
        )
        return encoded

    def decode(self, chunks_in_order: Sequence[Any]) -> Any:
        """
        Reassemble chunks fetched by index and parse the result.

        Raises:
            DecodeError: If a chunk is not a string or the text is not valid JSON
        """
        return parse(join_chunks(chunks_in_order))
