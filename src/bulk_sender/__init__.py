"""
bulk-sender — bulk messaging client for Python.

Authenticates a messaging session by polling its status, converts rich-text
messages into the platform's inline markup, and sends them to a contact list.
"""

from bulk_sender.client import BulkSender, AsyncBulkSender
from bulk_sender.monitor import SessionMonitor, MonitorHandle
from bulk_sender.markup import translate, FORMAT_CODES
from bulk_sender.editor import parse_html, translate_html
from bulk_sender.errors import BulkSenderError, SessionError, ConnectionError, UploadError, SendError
from bulk_sender.models.richtext import TextNode, ElementNode
from bulk_sender.models.session import SessionState, SessionStatus

__version__ = "0.1.0"
__all__ = [
    "BulkSender",
    "AsyncBulkSender",
    "SessionMonitor",
    "MonitorHandle",
    "translate",
    "FORMAT_CODES",
    "parse_html",
    "translate_html",
    "BulkSenderError",
    "SessionError",
    "ConnectionError",
    "UploadError",
    "SendError",
    "TextNode",
    "ElementNode",
    "SessionState",
    "SessionStatus",
]
