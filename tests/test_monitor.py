"""Session monitor: polling state machine with epoch-guarded responses."""

import asyncio
from typing import Any, Callable

import pytest

from bulk_sender.errors import BulkSenderError, ConnectionError, SessionError
from bulk_sender.models.session import SessionState, SessionStatus
from bulk_sender.monitor import SessionMonitor

INTERVAL = 0.01

AUTHENTICATED = SessionStatus(status="authenticated")
NOT_AUTHENTICATED = SessionStatus(status="not_authenticated")


def with_qr(payload: str) -> SessionStatus:
    return SessionStatus(status="not_authenticated", qr=payload)


class ScriptedService:
    """Replays statuses in order, repeating the last. Exceptions are raised."""

    def __init__(self, *statuses: Any, init_error: Exception = None):
        self.statuses = list(statuses)
        self.init_error = init_error
        self.registered: list[str] = []
        self.status_calls = 0

    async def init_session(self, identity: str) -> None:
        self.registered.append(identity)
        if self.init_error:
            raise self.init_error

    async def get_status(self, identity: str) -> SessionStatus:
        self.status_calls += 1
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item


class GatedService:
    """Every status query blocks until the test resolves its future."""

    def __init__(self) -> None:
        self.pending: list[asyncio.Future] = []

    async def init_session(self, identity: str) -> None:
        return None

    async def get_status(self, identity: str) -> SessionStatus:
        fut = asyncio.get_running_loop().create_future()
        self.pending.append(fut)
        return await fut


class BlockingRegistration(ScriptedService):
    """Registration hangs until `release` is set."""

    def __init__(self, *statuses: Any):
        super().__init__(*statuses)
        self.release = asyncio.Event()

    async def init_session(self, identity: str) -> None:
        self.registered.append(identity)
        await self.release.wait()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.002)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_reaches_authenticated_and_stops_polling(self):
        service = ScriptedService(NOT_AUTHENTICATED, with_qr("X"), AUTHENTICATED)
        seen_qr: list[tuple[SessionState, str]] = []
        authenticated: list[str] = []
        monitor = SessionMonitor(
            service,
            interval=INTERVAL,
            on_qr=lambda h, qr: seen_qr.append((h.state, qr)),
            on_authenticated=lambda h: authenticated.append(h.identity),
        )

        handle = await monitor.start("user_1")
        assert service.registered == ["user_1"]
        await handle.wait_authenticated(timeout=2)

        assert handle.state == SessionState.AUTHENTICATED
        assert handle.qr_payload is None
        assert not handle.active
        assert seen_qr == [(SessionState.AWAITING_SCAN, "X")]
        assert authenticated == ["user_1"]

        calls = service.status_calls
        assert calls == 3
        await asyncio.sleep(INTERVAL * 5)
        assert service.status_calls == calls
        await monitor.close()

    @pytest.mark.asyncio
    async def test_not_authenticated_without_qr_stays_initializing(self):
        service = ScriptedService(NOT_AUTHENTICATED)
        monitor = SessionMonitor(service, interval=INTERVAL)
        handle = await monitor.start("user_1")
        await wait_until(lambda: service.status_calls >= 3)
        assert handle.state == SessionState.INITIALIZING
        assert handle.qr_payload is None
        assert handle.active
        await monitor.close()

    @pytest.mark.asyncio
    async def test_qr_callback_fires_only_on_change(self):
        service = ScriptedService(with_qr("A"), with_qr("A"), with_qr("B"), AUTHENTICATED)
        seen: list[str] = []
        monitor = SessionMonitor(service, interval=INTERVAL, on_qr=lambda h, qr: seen.append(qr))
        handle = await monitor.start("user_1")
        await handle.wait_authenticated(timeout=2)
        assert seen == ["A", "B"]
        await monitor.close()

    @pytest.mark.asyncio
    async def test_wait_authenticated_times_out(self):
        monitor = SessionMonitor(ScriptedService(with_qr("A")), interval=INTERVAL)
        handle = await monitor.start("user_1")
        with pytest.raises(TimeoutError):
            await handle.wait_authenticated(timeout=0.05)
        assert handle.state == SessionState.AWAITING_SCAN
        assert handle.qr_payload == "A"
        await monitor.close()


class TestFailures:
    @pytest.mark.asyncio
    async def test_registration_failure_is_not_fatal(self):
        service = ScriptedService(AUTHENTICATED, init_error=RuntimeError("refused"))
        errors: list[BulkSenderError] = []
        monitor = SessionMonitor(service, interval=INTERVAL, on_error=lambda h, e: errors.append(e))
        handle = await monitor.start("user_1")
        await handle.wait_authenticated(timeout=2)
        assert len(errors) == 1
        assert isinstance(errors[0], SessionError)
        assert "refused" in str(errors[0])
        await monitor.close()

    @pytest.mark.asyncio
    async def test_transport_failures_keep_polling(self):
        service = ScriptedService(
            ConnectionError("down"), ConnectionError("still down"), with_qr("Q"), AUTHENTICATED,
        )
        errors: list[BulkSenderError] = []
        monitor = SessionMonitor(service, interval=INTERVAL, on_error=lambda h, e: errors.append(e))
        handle = await monitor.start("user_1")
        await handle.wait_authenticated(timeout=2)
        assert [e.code for e in errors] == ["connection_error", "connection_error"]
        assert service.status_calls == 4
        await monitor.close()


    @pytest.mark.asyncio
    async def test_raising_callbacks_do_not_stop_polling(self):
        def explode(*_args):
            raise ValueError("callback bug")

        service = ScriptedService(with_qr("A"), AUTHENTICATED, init_error=RuntimeError("refused"))
        monitor = SessionMonitor(
            service, interval=INTERVAL, on_error=explode, on_qr=explode, on_authenticated=explode,
        )
        handle = await monitor.start("user_1")
        assert handle.active
        await handle.wait_authenticated(timeout=2)
        assert service.status_calls == 2
        assert handle.state == SessionState.AUTHENTICATED
        await monitor.close()


class TestEpochs:
    @pytest.mark.asyncio
    async def test_response_after_stop_is_discarded(self):
        service = GatedService()
        authenticated: list[str] = []
        monitor = SessionMonitor(service, interval=INTERVAL, on_authenticated=lambda h: authenticated.append(h.identity))
        handle = await monitor.start("user_1")
        await wait_until(lambda: len(service.pending) >= 1)

        monitor.stop(handle)
        dispatched = len(service.pending)
        for fut in service.pending:
            fut.set_result(AUTHENTICATED)
        await asyncio.sleep(INTERVAL * 5)

        assert handle.state == SessionState.INITIALIZING
        assert authenticated == []
        assert not handle.active
        assert len(service.pending) == dispatched
        await monitor.close()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        monitor = SessionMonitor(ScriptedService(NOT_AUTHENTICATED), interval=INTERVAL)
        handle = await monitor.start("user_1")
        monitor.stop(handle)
        monitor.stop(handle)
        assert handle.epoch == 1
        assert not handle.active
        await monitor.close()

    @pytest.mark.asyncio
    async def test_restart_replaces_poller_and_advances_epoch(self):
        service = GatedService()
        monitor = SessionMonitor(service, interval=INTERVAL)
        first = await monitor.start("user_1")
        await wait_until(lambda: len(service.pending) >= 1)
        stale = list(service.pending)

        second = await monitor.start("user_1")
        assert monitor.handle_for("user_1") is second
        assert not first.active
        assert second.active
        assert second.epoch == first.epoch == 1

        for fut in stale:
            fut.set_result(with_qr("old"))
        await asyncio.sleep(0)
        assert second.qr_payload is None
        assert first.qr_payload is None
        await monitor.close()

    @pytest.mark.asyncio
    async def test_same_epoch_responses_apply_in_arrival_order(self):
        service = GatedService()
        monitor = SessionMonitor(service, interval=INTERVAL)
        handle = await monitor.start("user_1")
        await wait_until(lambda: len(service.pending) >= 2)

        older, newer = service.pending[0], service.pending[1]
        newer.set_result(with_qr("newer"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert handle.qr_payload == "newer"
        older.set_result(with_qr("older"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert handle.qr_payload == "older"
        assert handle.state == SessionState.AWAITING_SCAN
        await monitor.close()

    @pytest.mark.asyncio
    async def test_stop_during_registration_never_starts_timer(self):
        service = BlockingRegistration(AUTHENTICATED)
        monitor = SessionMonitor(service, interval=INTERVAL)
        starting = asyncio.create_task(monitor.start("user_1"))
        await wait_until(lambda: service.registered == ["user_1"])

        handle = monitor.handle_for("user_1")
        monitor.stop(handle)
        service.release.set()

        assert await starting is handle
        assert handle._timer is None
        assert not handle.active
        await asyncio.sleep(INTERVAL * 5)
        assert service.status_calls == 0
        assert handle.state == SessionState.INITIALIZING
        await monitor.close()

    @pytest.mark.asyncio
    async def test_close_cancels_inflight_queries(self):
        service = GatedService()
        monitor = SessionMonitor(service, interval=INTERVAL)
        handle = await monitor.start("user_1")
        await wait_until(lambda: len(service.pending) >= 1)
        inflight = set(handle._inflight)
        assert inflight

        await monitor.close()

        assert all(task.cancelled() for task in inflight)
        assert all(fut.cancelled() for fut in service.pending)
        assert handle._timer.done()
        assert not handle.active
        assert handle.state == SessionState.INITIALIZING
