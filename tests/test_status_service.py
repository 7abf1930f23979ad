"""Tests for batched status polling and local transitions."""

from __future__ import annotations

import asyncio

from agentdeck.engine.errors import TransportError
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import SessionStatus, StatusInfo


class _FakeStatusApi:
    """Answers ``get_statuses`` from a dict; can hold requests open."""

    def __init__(self) -> None:
        self.statuses: dict[str, StatusInfo] = {}
        self.requests: list[list[str]] = []
        self.gate: asyncio.Event | None = None
        self.fail = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_statuses(self, session_ids):
        ids = sorted(session_ids)
        self.requests.append(ids)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        # Snapshot before waiting so the answer reflects request time
        answer = {sid: self.statuses[sid] for sid in ids if sid in self.statuses}
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.fail:
                raise TransportError("GET /sessions/status", "connection refused")
            return answer
        finally:
            self.in_flight -= 1


def _working() -> StatusInfo:
    return StatusInfo(running=True, status=SessionStatus.WORKING)


def test_single_request_covers_all_registered_sessions():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": _working(), "s2": StatusInfo(status=SessionStatus.NEEDS_APPROVAL)}
        svc = SessionStatusService(api, poll_interval=60)
        svc.register("s1")
        svc.register("s2")
        svc.register("s3")
        await asyncio.sleep(0.05)

        assert api.requests[-1] == ["s1", "s2", "s3"]
        assert svc.status("s1") is SessionStatus.WORKING
        assert svc.status("s2") is SessionStatus.NEEDS_APPROVAL
        assert svc.status("s3") is SessionStatus.IDLE
        svc.stop()

    asyncio.run(_run())


def test_at_most_one_request_in_flight_and_refreshes_coalesce():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.gate = asyncio.Event()
        svc = SessionStatusService(api, poll_interval=60)
        svc.register("s1")
        await asyncio.sleep(0.01)
        for _ in range(5):
            svc.refresh()
        await asyncio.sleep(0.01)
        assert len(api.requests) == 1

        api.gate.set()
        await asyncio.sleep(0.05)
        # The five refreshes collapse into one follow-up poll
        assert len(api.requests) == 2
        assert api.max_in_flight == 1
        svc.stop()

    asyncio.run(_run())


def test_local_transition_wins_over_poll_in_flight():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": StatusInfo(status=SessionStatus.NEEDS_APPROVAL)}
        api.gate = asyncio.Event()
        svc = SessionStatusService(api, poll_interval=60)
        svc.register("s1")
        await asyncio.sleep(0.01)

        # Poll started before the approval; its stale answer must not win
        svc.set_local("s1", SessionStatus.WORKING)
        api.gate.set()
        await asyncio.sleep(0.02)
        assert svc.status("s1") is SessionStatus.WORKING
        svc.stop()

    asyncio.run(_run())


def test_poll_started_after_local_transition_wins():
    async def _run() -> None:
        api = _FakeStatusApi()
        svc = SessionStatusService(api, poll_interval=60)
        svc.register("s1")
        await asyncio.sleep(0.02)

        svc.set_local("s1", SessionStatus.WORKING)
        api.statuses = {"s1": StatusInfo(status=SessionStatus.WAITING)}
        await svc.refresh()
        assert svc.status("s1") is SessionStatus.WAITING
        svc.stop()

    asyncio.run(_run())


def test_listeners_notified_only_on_change():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": _working()}
        svc = SessionStatusService(api, poll_interval=60)
        seen: list[tuple[str, SessionStatus]] = []
        svc.register("s1", lambda sid, status: seen.append((sid, status)))
        await asyncio.sleep(0.02)
        await svc.refresh()
        await svc.refresh()
        assert seen == [("s1", SessionStatus.WORKING)]

        api.statuses = {}
        await svc.refresh()
        assert seen[-1] == ("s1", SessionStatus.IDLE)
        assert len(seen) == 2
        svc.stop()

    asyncio.run(_run())


def test_failed_poll_keeps_last_known_status():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": _working()}
        svc = SessionStatusService(api, poll_interval=60)
        svc.register("s1")
        await asyncio.sleep(0.02)
        assert svc.status("s1") is SessionStatus.WORKING

        api.fail = True
        await svc.refresh()
        assert svc.status("s1") is SessionStatus.WORKING
        svc.stop()

    asyncio.run(_run())


def test_polling_starts_and_stops_with_registrations():
    async def _run() -> None:
        api = _FakeStatusApi()
        svc = SessionStatusService(api, poll_interval=60)
        assert not svc.running
        assert svc.refresh() is None

        unregister_a = svc.register("s1")
        unregister_b = svc.register("s2")
        assert svc.running
        assert svc.session_ids == ["s1", "s2"]

        unregister_a()
        assert svc.running
        unregister_b()
        assert not svc.running
        assert svc.session_ids == []

        # Unregistering twice is harmless
        unregister_b()
        assert not svc.running

    asyncio.run(_run())


def test_same_session_registered_twice_stays_until_both_leave():
    async def _run() -> None:
        api = _FakeStatusApi()
        svc = SessionStatusService(api, poll_interval=60)
        first = svc.register("s1")
        second = svc.register("s1")
        first()
        assert svc.session_ids == ["s1"]
        second()
        assert svc.session_ids == []

    asyncio.run(_run())


def test_poll_loop_repeats_on_interval():
    async def _run() -> None:
        api = _FakeStatusApi()
        svc = SessionStatusService(api, poll_interval=0.02)
        svc.register("s1")
        await asyncio.sleep(0.15)
        svc.stop()
        assert svc.polls >= 3

    asyncio.run(_run())


def test_listener_exception_does_not_break_polling():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": _working()}
        svc = SessionStatusService(api, poll_interval=60)
        seen: list[SessionStatus] = []

        def _boom(sid, status):
            raise RuntimeError("listener bug")

        svc.register("s1", _boom)
        svc.register("s1", lambda sid, status: seen.append(status))
        await asyncio.sleep(0.02)
        assert seen == [SessionStatus.WORKING]
        svc.stop()

    asyncio.run(_run())


def test_last_unregister_forgets_status():
    async def _run() -> None:
        api = _FakeStatusApi()
        api.statuses = {"s1": _working()}
        svc = SessionStatusService(api, poll_interval=60)
        unregister = svc.register("s1")
        await asyncio.sleep(0.02)
        assert svc.status("s1") is SessionStatus.WORKING

        unregister()
        assert svc.status("s1") is SessionStatus.IDLE

    asyncio.run(_run())
