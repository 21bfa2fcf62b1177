"""
BulkSender / AsyncBulkSender — main clients.

Composes the session monitor (authentication) with the markup translator
and the send API. The monitor and translator never talk to each other; this
module is the caller that sequences them.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

import httpx

from bulk_sender.contacts import ContactsAPI
from bulk_sender.editor import translate_html
from bulk_sender.errors import BulkSenderError, SendError, SessionError
from bulk_sender.markup import translate
from bulk_sender.messages import MessagesAPI
from bulk_sender.models.message import SendResult
from bulk_sender.models.richtext import ElementNode, TextNode
from bulk_sender.models.session import SessionState
from bulk_sender.monitor import DEFAULT_POLL_INTERVAL_S, MonitorHandle, SessionMonitor
from bulk_sender.sessions import SessionsAPI
from bulk_sender.transport.http import DEFAULT_BASE_URL, HttpClient

USER_ID_FILE = Path.home() / ".bulk_sender" / "user_id"

logger = logging.getLogger(__name__)


def get_or_create_user_id(provided: Optional[str] = None, path: Optional[Path] = None) -> str:
    """Return the persisted session identity, creating `user_<millis>` on first use."""
    if provided:
        return provided
    path = path or USER_ID_FILE
    try:
        stored = path.read_text().strip()
        if stored:
            return stored
    except FileNotFoundError:
        pass
    user_id = f"user_{int(time.time() * 1000)}"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(user_id)
    except OSError as e:
        logger.warning(f"Could not persist user id to {path}: {e}")
    return user_id


class AsyncBulkSender:
    """Async bulk-sender client (primary)."""

    def __init__(
        self,
        user_id: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_authenticated: Optional[Callable[[MonitorHandle], None]] = None,
        on_qr: Optional[Callable[[MonitorHandle, str], None]] = None,
        on_error: Optional[Callable[[MonitorHandle, BulkSenderError], None]] = None,
    ):
        self.user_id = get_or_create_user_id(user_id)
        self.http = HttpClient(base_url=base_url, transport=transport)
        self.sessions = SessionsAPI(self.http)
        self.contacts = ContactsAPI(self.http)
        self.messages = MessagesAPI(self.http)
        self.monitor = SessionMonitor(
            self.sessions,
            interval=poll_interval,
            on_authenticated=on_authenticated,
            on_qr=on_qr,
            on_error=on_error,
        )
        self.contact_list: list[Any] = []
        self._handle: Optional[MonitorHandle] = None

    @property
    def state(self) -> SessionState:
        return self._handle.state if self._handle else SessionState.INITIALIZING

    @property
    def qr_payload(self) -> Optional[str]:
        return self._handle.qr_payload if self._handle else None

    @property
    def authenticated(self) -> bool:
        return self._handle is not None and self._handle.authenticated

    async def connect(self) -> MonitorHandle:
        """Register the session and start polling its authentication status."""
        self._handle = await self.monitor.start(self.user_id)
        return self._handle

    async def wait_authenticated(self, timeout: Optional[float] = None) -> None:
        if self._handle is None:
            raise SessionError("Session not started. Call connect() first.", code="not_started")
        await self._handle.wait_authenticated(timeout)

    async def upload_contacts(self, file_path: str) -> list[Any]:
        """Upload a contacts CSV; the parsed contacts become the default send list."""
        if not self.authenticated:
            raise SessionError("Session is not authenticated", code="not_authenticated")
        self.contact_list = await self.contacts.upload(self.user_id, file_path)
        logger.info(f"Uploaded {len(self.contact_list)} contacts")
        return self.contact_list

    async def send(
        self,
        message: Union[str, TextNode, ElementNode],
        contacts: Optional[list[Any]] = None,
    ) -> SendResult:
        """Translate `message` (editor HTML or a rich-text tree) and send it to every contact."""
        if not self.authenticated:
            raise SessionError("Session is not authenticated", code="not_authenticated")
        targets = self.contact_list if contacts is None else contacts
        if not targets:
            raise SendError("No contacts uploaded", code="no_contacts")
        text = translate_html(message) if isinstance(message, str) else translate(message)
        if not text:
            raise SendError("Message is empty", code="empty_message")
        result = await self.messages.send(self.user_id, targets, text)
        logger.info(f"Messages sent to {result.count} of {len(targets)} contacts")
        return result

    async def close(self) -> None:
        await self.monitor.close()
        await self.http.close()


class BulkSender:
    """Sync wrapper around AsyncBulkSender. Runs the event loop internally.

    Polling only advances while a call is running on the loop, so call
    wait_authenticated() after connect().
    """

    def __init__(self, **kwargs: Any):
        self._async = AsyncBulkSender(**kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def user_id(self) -> str:
        return self._async.user_id

    @property
    def state(self) -> SessionState:
        return self._async.state

    @property
    def qr_payload(self) -> Optional[str]:
        return self._async.qr_payload

    @property
    def authenticated(self) -> bool:
        return self._async.authenticated

    def connect(self) -> MonitorHandle:
        return self._run(self._async.connect())

    def wait_authenticated(self, timeout: Optional[float] = None) -> None:
        self._run(self._async.wait_authenticated(timeout))

    def upload_contacts(self, file_path: str) -> list[Any]:
        return self._run(self._async.upload_contacts(file_path))

    def send(self, message: Union[str, TextNode, ElementNode], contacts: Optional[list[Any]] = None) -> SendResult:
        return self._run(self._async.send(message, contacts))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
