"""
Custom exceptions for mothership_db module.
"""


class BackendError(Exception):
    """Raised when a storage backend operation fails."""
    pass


class BackendConnectionError(BackendError):
    """Raised when the backend server cannot be reached."""
    pass


class BackendQuotaError(BackendError):
    """Raised when a write would exceed a per-item, total or item-count quota."""

    def __init__(self, message: str, key: str = None, limit: str = None):
        super().__init__(message)
        self.key = key
        self.limit = limit
