"""
bulk-sender error types.
"""

from typing import Any, Optional


class BulkSenderError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class SessionError(BulkSenderError):
    def __init__(self, message: str, code: str = "session_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ConnectionError(BulkSenderError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)


class UploadError(BulkSenderError):
    def __init__(self, message: str, code: str = "upload_error"):
        super().__init__(code, message)


class SendError(BulkSenderError):
    def __init__(self, message: str, code: str = "send_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)
