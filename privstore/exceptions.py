"""
Custom Exceptions for privstore

Provides a unified exception hierarchy for consent gating, quota
enforcement and encryption. None of these escape the store's public
operations; they are raised and recovered locally, and carry enough
context for structured logs and API error bodies.
"""

from typing import Optional, Dict, Any

from .constants import ErrorCodes


class StoreError(Exception):
    """
    Base exception for all store errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        result: Dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# POLICY ERRORS
# =============================================================================

class PolicyDeniedError(StoreError):
    """Raised when a write is attempted without the required consent"""

    def __init__(self, category: str, key: Optional[str] = None):
        details: Dict[str, Any] = {"category": category}
        if key:
            details["key"] = key
        super().__init__(
            message=f"Consent not granted for category: {category}",
            error_code=ErrorCodes.POLICY_DENIED,
            details=details
        )


class QuotaExceededError(StoreError):
    """Raised when a value exceeds the per-entry ceiling"""

    def __init__(self, key: str, size_bytes: int, ceiling_bytes: int):
        super().__init__(
            message=f"Value for {key!r} exceeds {ceiling_bytes} byte limit",
            error_code=ErrorCodes.QUOTA_EXCEEDED,
            details={"key": key, "size_bytes": size_bytes, "ceiling_bytes": ceiling_bytes}
        )


# =============================================================================
# ENCRYPTION ERRORS
# =============================================================================

class EncryptionError(StoreError):
    """Base exception for encryption-related errors"""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCodes.ENCRYPTION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details)


class EncryptionFailedError(EncryptionError):
    """Raised when encryption operation fails"""

    def __init__(
        self,
        message: str = "Encryption operation failed",
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if reason:
            details["reason"] = reason
        super().__init__(message, ErrorCodes.ENCRYPTION_FAILED, details)


class DecryptionFailedError(EncryptionError):
    """Raised when decryption operation fails"""

    def __init__(
        self,
        message: str = "Decryption operation failed",
        reason: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if reason:
            details["reason"] = reason
        super().__init__(message, ErrorCodes.DECRYPTION_FAILED, details)


class KeyMaterialCorruptError(EncryptionError):
    """Raised when cached session key material cannot be parsed"""

    def __init__(self, reason: Optional[str] = None):
        details: Dict[str, Any] = {}
        if reason:
            details["reason"] = reason
        super().__init__(
            "Session key material is corrupt",
            ErrorCodes.KEY_MATERIAL_CORRUPT,
            details
        )
