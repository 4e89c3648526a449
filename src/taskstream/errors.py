"""
taskstream error types.

Decode-level problems never surface as exceptions (see `Diagnostic`);
these classes cover REST, transport and lifecycle failures.
"""

from typing import Any, Optional


class TaskStreamError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class TransportError(TaskStreamError):
    """Connection-level failure or non-success status on a stream request."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: str = "transport_error"):
        super().__init__(code, message, {"status_code": status_code} if status_code is not None else None)
        self.status_code = status_code


class LifecycleError(TaskStreamError):
    def __init__(self, message: str, code: str = "lifecycle_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ConnectionError(TaskStreamError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)
