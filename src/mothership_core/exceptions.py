"""
Exception hierarchy for the Mothership sync store.

Defines all exception types with error codes, transient flags, and correlation IDs.
Load outcomes are reported as LoadResult values rather than exceptions; the
classes here describe why a write could not be committed.

License: MIT
"""

import uuid
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from mothership_core.models import SizeEstimate, WriterState


class MothershipError(Exception):
    """
    Base exception for all Mothership errors.

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code (e.g., "WRITE_001")
        details: Additional context (dict)
        correlation_id: UUID for tracing one operation through the logs
        original_exception: Wrapped exception (if any)
        is_transient: Whether retrying the same operation later may succeed

    Example:
        raise MothershipError(
            message="Operation failed",
            error_code="ERR_UNKNOWN",
            details={"key": "msomSyncV2Meta"},
        )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ERR_UNKNOWN",
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.original_exception = original_exception
        self.is_transient = False

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with all error information
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


class ValidationError(MothershipError):
    """
    Raised when an argument or setting is out of range.

    Error Codes:
        VAL_001: Invalid argument
        VAL_002: Invalid limits
    """

    def __init__(self, message: str, error_code: str = "VAL_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class SerializationError(MothershipError):
    """
    Raised when the document cannot be encoded as JSON.

    Error Codes:
        SER_001: Unsupported value type
        SER_002: Circular reference
        SER_003: Non-finite number

    Fatal to the requested write, never retried.
    """

    def __init__(self, message: str, error_code: str = "SER_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class DecodeError(MothershipError):
    """
    Raised when reassembled chunk text is not valid serialized JSON.

    Error Codes:
        DEC_001: Invalid JSON
        DEC_002: Chunk value is not a string
    """

    def __init__(self, message: str, error_code: str = "DEC_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)


class QuotaExceeded(MothershipError):
    """
    Raised when a candidate write exceeds the per-item, total or item-count limit.

    The caller is expected to shrink the document or ask the user to remove
    data; this layer never truncates silently.

    Error Codes:
        QUOTA_001: Estimate exceeds limits
    """

    def __init__(
        self,
        message: str,
        estimate: Optional["SizeEstimate"] = None,
        error_code: str = "QUOTA_001",
        **kwargs,
    ):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.estimate = estimate


class WriteFailed(MothershipError):
    """
    Raised when a backend call or verification fails during a staged write.

    Error Codes:
        WRITE_001: Staging failed (primary untouched)
        WRITE_002: Verification failed (primary untouched)
        WRITE_003: Promotion failed
        WRITE_004: Cleanup failed (document already committed)

    Transient: backend hiccups and replication lag are worth a later retry.
    """

    PHASE_CODES = {
        "staging": "WRITE_001",
        "verifying": "WRITE_002",
        "promoting": "WRITE_003",
        "cleaning_up": "WRITE_004",
    }

    def __init__(self, message: str, phase: "WriterState", committed: bool = False, **kwargs):
        error_code = kwargs.pop("error_code", None) or self.PHASE_CODES.get(
            getattr(phase, "value", str(phase)), "WRITE_000"
        )
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.phase = phase
        self.committed = committed
        self.is_transient = True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["phase"] = getattr(self.phase, "value", str(self.phase))
        data["committed"] = self.committed
        return data
