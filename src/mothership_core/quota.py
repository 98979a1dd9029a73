"""
QuotaEstimator - exact byte cost of a candidate write against backend quotas.

The sync backend rejects a write outright when one item exceeds the per-item
ceiling or the stored total exceeds the aggregate ceiling, so the cost is
computed item by item exactly as the backend counts it: key bytes plus the
bytes of the JSON-encoded value, for the meta record and every chunk.

License: MIT
"""

import copy
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import structlog

from mothership_core.codec import ChunkCodec, EncodedDocument
from mothership_core.models import (
    ItemSize,
    MetaRecord,
    Namespace,
    ShrinkResult,
    SizeEstimate,
    StorageLimits,
)
from mothership_db.backends.base import item_bytes

logger = structlog.get_logger(__name__)

# Least essential first: background URLs, then quotes, then links.
DEFAULT_REMOVAL_PRIORITY = ("backgrounds", "quotes", "links")

RemovalStep = Callable[[Any], bool]


def pop_last(path: str) -> RemovalStep:
    """
    Removal step dropping the last element of the list at ``path``.

    ``path`` is a dotted path into nested dicts, e.g. ``"search.engines"``.
    The step returns True when it removed an element, False when nothing is left.
    """
    parts = path.split(".")

    def step(document: Any) -> bool:
        node = document
        for part in parts:
            if not isinstance(node, dict) or part not in node:
                return False
            node = node[part]
        if isinstance(node, list) and node:
            node.pop()
            return True
        return False

    step.__name__ = f"pop_last[{path}]"
    return step


class QuotaEstimator:
    """
    Sizes candidate writes and trims documents until they fit.

    Attributes:
        codec: ChunkCodec used to split the document
        namespace: Key layout the write will land in (key lengths count)
        limits: Backend quotas
        schema_version: Version stamped into the meta record

    Example:
        ```python
        estimator = QuotaEstimator(ChunkCodec(1350), settings.primary_namespace)
        estimate = estimator.estimate_write(document)
        if estimator.exceeds_limits(estimate):
            result = estimator.shrink_to_fit(document)
        ```
    """

    def __init__(
        self,
        codec: ChunkCodec,
        namespace: Namespace,
        limits: Optional[StorageLimits] = None,
        schema_version: int = 2,
    ) -> None:
        self.codec = codec
        self.namespace = namespace
        self.limits = limits or StorageLimits()
        self.schema_version = schema_version

    def estimate_write(self, document: Any) -> SizeEstimate:
        """
        Exact cost of writing ``document`` as one meta item plus N chunk items.

        Raises:
            SerializationError: If the document cannot be serialized
        """
        encoded = self.codec.encode(document)
        meta = MetaRecord.create(self.schema_version, encoded.chunk_count, encoded.checksum)
        return self.estimate_encoded(encoded, meta)

    def estimate_encoded(self, encoded: EncodedDocument, meta: MetaRecord) -> SizeEstimate:
        """Cost of an already encoded document with the meta record that will claim it."""
        meta_key = self.namespace.meta_key
        items = [ItemSize(meta_key, item_bytes(meta_key, meta.to_storage()))]
        for index, chunk in enumerate(encoded.chunks):
            if index < self.namespace.max_chunks:
                key = self.namespace.chunk_key(index)
            else:
                # No valid key exists past the index width; size it unpadded.
                key = f"{self.namespace.chunk_prefix}{index}"
            items.append(ItemSize(key, item_bytes(key, chunk)))

        return SizeEstimate(
            items=items,
            total_bytes=sum(item.bytes for item in items),
            chunk_count=encoded.chunk_count,
            config_bytes=len(encoded.serialized.encode("utf-8")),
        )

    def violating_items(
        self, estimate: SizeEstimate, limits: Optional[StorageLimits] = None
    ) -> List[ItemSize]:
        """Items whose own size is above the per-item ceiling."""
        limits = limits or self.limits
        return [item for item in estimate.items if item.bytes > limits.max_item_bytes]

    def exceeds_limits(
        self, estimate: SizeEstimate, limits: Optional[StorageLimits] = None
    ) -> bool:
        limits = limits or self.limits
        if estimate.total_bytes > limits.max_total_bytes:
            return True
        if limits.max_items is not None and estimate.item_count > limits.max_items:
            return True
        if estimate.chunk_count > self.namespace.max_chunks:
            return True
        return bool(self.violating_items(estimate, limits))

    def describe_violation(
        self, estimate: SizeEstimate, limits: Optional[StorageLimits] = None
    ) -> str:
        """Human-readable summary of the first limit the estimate breaks."""
        limits = limits or self.limits
        oversized = self.violating_items(estimate, limits)
        if oversized:
            worst = max(oversized, key=lambda item: item.bytes)
            return (
                f"item {worst.key} is {worst.bytes} bytes "
                f"(limit {limits.max_item_bytes})"
            )
        if estimate.total_bytes > limits.max_total_bytes:
            return f"total {estimate.total_bytes} bytes (limit {limits.max_total_bytes})"
        if estimate.chunk_count > self.namespace.max_chunks:
            return f"{estimate.chunk_count} chunks exceed the key index width"
        if limits.max_items is not None and estimate.item_count > limits.max_items:
            return f"{estimate.item_count} items (limit {limits.max_items})"
        return "within limits"

    def shrink_to_fit(
        self,
        document: Any,
        limits: Optional[StorageLimits] = None,
        priority: Optional[Sequence[Union[str, RemovalStep]]] = None,
    ) -> ShrinkResult:
        """
        Greedily remove elements until the write fits.

        Each round applies the first step in ``priority`` that still has
        something to remove (strings are dotted list paths, popped from the
        end), then re-estimates. When every step is exhausted and the document
        still does not fit, an empty document is returned instead.

        The input document is never modified.

        Raises:
            SerializationError: If the document cannot be serialized
        """
        limits = limits or self.limits
        names = []
        steps: List[RemovalStep] = []
        for entry in priority if priority is not None else DEFAULT_REMOVAL_PRIORITY:
            if isinstance(entry, str):
                names.append(entry)
                steps.append(pop_last(entry))
            else:
                names.append(getattr(entry, "__name__", repr(entry)))
                steps.append(entry)

        working = copy.deepcopy(document)
        removed: Dict[str, int] = {name: 0 for name in names}
        estimate = self.estimate_write(working)

        while self.exceeds_limits(estimate, limits):
            for name, step in zip(names, steps):
                if step(working):
                    removed[name] += 1
                    break
            else:
                logger.warning(
                    "shrink_exhausted",
                    total_bytes=estimate.total_bytes,
                    limit=limits.max_total_bytes,
                )
                working = {}
                estimate = self.estimate_write(working)
                break
            estimate = self.estimate_write(working)

        fits = not self.exceeds_limits(estimate, limits)
        logger.info(
            "shrink_complete",
            removed=removed,
            total_bytes=estimate.total_bytes,
            chunk_count=estimate.chunk_count,
            fits=fits,
        )
        return ShrinkResult(document=working, estimate=estimate, removed=removed, fits=fits)
