"""
Storage Error Handling

Standardized error codes and exceptions shared by every storage backend.
Callers branch on the exception class or on ``code``; ``details`` carries
debugging context (bucket, key, provider status) without parsing messages.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the storage layer."""

    # Configuration errors (CONFIG_xxx)
    CONFIG_MISSING_VALUE = "CONFIG_001"
    CONFIG_INVALID_ENDPOINT = "CONFIG_002"
    CONFIG_UNKNOWN_SCHEME = "CONFIG_003"

    # Storage errors (STORAGE_xxx)
    STORAGE_WRITE_FAILED = "STORAGE_001"
    STORAGE_READ_FAILED = "STORAGE_002"
    STORAGE_DELETE_FAILED = "STORAGE_003"
    STORAGE_PROVIDER_ERROR = "STORAGE_004"
    STORAGE_NOT_FOUND = "STORAGE_005"
    STORAGE_NOT_SUPPORTED = "STORAGE_006"


class StorageError(Exception):
    """
    Base class for all storage errors.

    Attributes:
        code: Standardized error code
        message: Human-readable message
        details: Extra context (bucket, key, status codes, ...)
        fatal: True when the process cannot continue (configuration that
            can only be fixed by restarting with different input)
    """

    fatal: bool = False

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationError(StorageError):
    """A configuration value required by one operation is missing or wrong.

    Recoverable: other operations on the same backend may still succeed.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.CONFIG_MISSING_VALUE,
    ):
        super().__init__(code, message, details)


class InvalidEndpointError(StorageError):
    """Malformed backend endpoint. Initialization cannot proceed."""

    fatal = True

    def __init__(self, endpoint: str, reason: str):
        super().__init__(
            ErrorCode.CONFIG_INVALID_ENDPOINT,
            f"Invalid endpoint: {endpoint}, error: {reason}",
            {"endpoint": endpoint, "reason": reason},
        )
        self.endpoint = endpoint
        self.reason = reason


class DownloadError(StorageError):
    """Signed-URL download answered with a status other than 200/206."""

    def __init__(self, status_code: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            ErrorCode.STORAGE_READ_FAILED,
            f"Status code: {status_code}",
            {"status_code": status_code, **(details or {})},
        )
        self.status_code = status_code


class ProviderError(StorageError):
    """Failure reported by the proprietary Kodo protocol.

    The provider's status code, request id and error text are kept as-is.
    """

    def __init__(
        self,
        status_code: Optional[int],
        error: Optional[str],
        req_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.STORAGE_PROVIDER_ERROR,
    ):
        super().__init__(
            code,
            error or f"Provider request failed with status {status_code}",
            {"status_code": status_code, "req_id": req_id, **(details or {})},
        )
        self.status_code = status_code
        self.error = error
        self.req_id = req_id


class ObjectNotFoundError(ProviderError):
    """The object does not exist."""

    def __init__(
        self,
        status_code: Optional[int],
        error: Optional[str],
        req_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code,
            error,
            req_id=req_id,
            details=details,
            code=ErrorCode.STORAGE_NOT_FOUND,
        )


class NotSupportedError(StorageError):
    """Operation not supported by this backend."""

    def __init__(self, operation: str, backend: str):
        super().__init__(
            ErrorCode.STORAGE_NOT_SUPPORTED,
            f"{operation} is not supported by {backend}",
            {"operation": operation, "backend": backend},
        )
        self.operation = operation
