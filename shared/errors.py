"""
Shared error handling for the memo-cache layer.
"""

from typing import Dict, Any, Optional


class CacheLayerException(Exception):
    """Base exception for the cache layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a loggable payload."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(CacheLayerException):
    """Invalid arguments passed to a cache operation."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class CacheTypeMismatchError(CacheLayerException):
    """A populated key holds a value of a different type than the caller expects.

    Callers must use one logical value type per key; the cache does not
    attempt to recover from this.
    """

    def __init__(self, key: str, expected: type, actual: type):
        super().__init__(
            "TYPE_MISMATCH",
            f"Cached value for '{key}' is {actual.__name__}, expected {expected.__name__}",
            {"key": key, "expected": expected.__name__, "actual": actual.__name__}
        )
