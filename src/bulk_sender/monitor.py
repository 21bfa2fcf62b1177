"""
Session monitor — polling state machine for messaging-session authentication.

Lifecycle per identity:
- start(): one registration call, then a status query every `interval` seconds
- status "authenticated" -> AUTHENTICATED (terminal), timer stops
- status "not_authenticated" with a QR payload -> AWAITING_SCAN
- status "not_authenticated" without a payload -> no change

Every query is tagged with the handle's epoch at dispatch time. stop() bumps
the epoch, so a response that lands after stop() (or after a restart) is
dropped instead of applied. Failures never end polling; they are logged and
passed to `on_error`, and the next tick runs as scheduled.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

from bulk_sender.errors import BulkSenderError, SessionError
from bulk_sender.models.session import SessionState, SessionStatus

DEFAULT_POLL_INTERVAL_S = 1.0

logger = logging.getLogger(__name__)


class SessionService(Protocol):
    async def init_session(self, identity: str) -> Any: ...

    async def get_status(self, identity: str) -> SessionStatus: ...


class MonitorHandle:
    """Polling state for one identity. Returned by SessionMonitor.start()."""

    def __init__(self, identity: str, epoch: int = 0):
        self.identity = identity
        self.epoch = epoch
        self.state = SessionState.INITIALIZING
        self.qr_payload: Optional[str] = None
        self._stopped = False
        self._timer: Optional[asyncio.Task[None]] = None
        self._inflight: set[asyncio.Task[None]] = set()
        self._authenticated = asyncio.Event()

    @property
    def active(self) -> bool:
        return not self._stopped and self._timer is not None and not self._timer.done()

    @property
    def authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    async def wait_authenticated(self, timeout: Optional[float] = None) -> None:
        try:
            await asyncio.wait_for(self._authenticated.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timed out waiting for {self.identity!r} to authenticate after {timeout}s")

    def __repr__(self) -> str:
        return f"MonitorHandle(identity={self.identity!r}, state={self.state.value}, epoch={self.epoch})"


class SessionMonitor:
    def __init__(
        self,
        service: SessionService,
        interval: float = DEFAULT_POLL_INTERVAL_S,
        on_authenticated: Optional[Callable[[MonitorHandle], None]] = None,
        on_qr: Optional[Callable[[MonitorHandle, str], None]] = None,
        on_error: Optional[Callable[[MonitorHandle, BulkSenderError], None]] = None,
    ):
        self._service = service
        self._interval = interval
        self._on_authenticated = on_authenticated
        self._on_qr = on_qr
        self._on_error = on_error
        self._handles: dict[str, MonitorHandle] = {}

    def handle_for(self, identity: str) -> Optional[MonitorHandle]:
        return self._handles.get(identity)

    async def start(self, identity: str) -> MonitorHandle:
        """Register `identity` and begin polling. Restarts any existing poller for it."""
        previous = self._handles.get(identity)
        if previous is not None:
            self.stop(previous)
        handle = MonitorHandle(identity, epoch=previous.epoch if previous else 0)
        self._handles[identity] = handle
        epoch = handle.epoch

        try:
            await self._service.init_session(identity)
        except Exception as e:
            logger.warning(f"Session registration failed for {identity}: {e}")
            self._report(handle, e, "Failed to initialize session")

        if handle.epoch != epoch:
            # stopped while registering
            return handle
        handle._timer = asyncio.create_task(self._run(handle, epoch))
        logger.debug(f"Polling {identity} every {self._interval}s (epoch {epoch})")
        return handle

    def stop(self, handle: MonitorHandle) -> None:
        """Halt polling. Idempotent. In-flight queries keep running but their results are dropped."""
        if handle._stopped:
            return
        handle._stopped = True
        handle.epoch += 1
        if handle._timer is not None and not handle._timer.done():
            handle._timer.cancel()
        logger.debug(f"Stopped polling {handle.identity} (epoch now {handle.epoch})")

    def stop_all(self) -> None:
        for handle in list(self._handles.values()):
            self.stop(handle)

    async def close(self) -> None:
        """Stop every poller and cancel queries still in flight."""
        self.stop_all()
        pending: list[asyncio.Task[None]] = []
        for handle in self._handles.values():
            pending.extend(handle._inflight)
            if handle._timer is not None:
                pending.append(handle._timer)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _run(self, handle: MonitorHandle, epoch: int) -> None:
        while handle.epoch == epoch:
            await asyncio.sleep(self._interval)
            if handle.epoch != epoch:
                break
            task = asyncio.create_task(self._poll(handle, epoch))
            handle._inflight.add(task)
            task.add_done_callback(handle._inflight.discard)

    async def _poll(self, handle: MonitorHandle, epoch: int) -> None:
        try:
            status = await self._service.get_status(handle.identity)
        except Exception as e:
            if handle.epoch != epoch:
                return
            logger.warning(f"Status query failed for {handle.identity}: {e}")
            self._report(handle, e, "Error polling session status")
            return

        if handle.epoch != epoch:
            logger.debug(f"Discarding stale status for {handle.identity} (epoch {epoch} != {handle.epoch})")
            return
        self._apply(handle, status)

    def _apply(self, handle: MonitorHandle, status: SessionStatus) -> None:
        if status.authenticated:
            handle.state = SessionState.AUTHENTICATED
            handle.qr_payload = None
            self.stop(handle)
            handle._authenticated.set()
            logger.info(f"Session {handle.identity} authenticated")
            if self._on_authenticated:
                self._notify(self._on_authenticated, handle)
        elif status.qr:
            changed = status.qr != handle.qr_payload
            handle.state = SessionState.AWAITING_SCAN
            handle.qr_payload = status.qr
            if changed:
                logger.debug(f"New QR payload for {handle.identity}")
                if self._on_qr:
                    self._notify(self._on_qr, handle, status.qr)

    def _report(self, handle: MonitorHandle, error: Exception, message: str) -> None:
        if not self._on_error:
            return
        if isinstance(error, BulkSenderError):
            err = error
        else:
            err = SessionError(f"{message}: {error}")
        self._notify(self._on_error, handle, err)

    @staticmethod
    def _notify(callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Monitor callback {getattr(callback, '__name__', callback)!r} failed")
