"""Tests for the REST client against an in-process backend."""

from __future__ import annotations

import asyncio

from aiohttp.test_utils import AioHTTPTestCase

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.errors import ApiError, TransportError
from agentdeck.shared.models.session import SessionStatus

from fake_backend import FakeBackend, wire_message


class TestDeckApiClient(AioHTTPTestCase):
    async def get_application(self):
        self.backend = FakeBackend()
        self.backend.add_session(
            "s1",
            "/home/dev/proj",
            [wire_message("m1", "user", "hello"), wire_message("m2", "assistant", "hi")],
        )
        return self.backend.make_app()

    def _api(self) -> DeckApiClient:
        return DeckApiClient(str(self.server.make_url("/api")))

    async def test_list_sessions(self):
        async with self._api() as api:
            sessions = await api.list_sessions()
        assert [s.id for s in sessions] == ["s1"]
        assert sessions[0].project_name == "proj"

    async def test_session_detail_uses_encoded_folder(self):
        async with self._api() as api:
            detail = await api.get_session_detail("/home/dev/proj", "s1")
        assert [e.id for e in detail.entries] == ["m1", "m2"]
        assert self.backend.calls[-1] == ("detail", "s1", "-home-dev-proj")

    async def test_missing_session_raises_api_error(self):
        async with self._api() as api:
            with self.assertRaises(ApiError) as ctx:
                await api.get_session_detail("/home/dev/proj", "nope")
        assert ctx.exception.status == 404
        assert ctx.exception.message == "Session not found"

    async def test_batched_statuses(self):
        self.backend.statuses = {
            "s1": {"running": True, "status": "idle"},
            "s2": {"running": False, "status": "needs-approval"},
        }
        async with self._api() as api:
            infos = await api.get_statuses(["s2", "s1", "s3", "s1"])
        assert self.backend.status_requests == [["s1", "s2", "s3"]]
        assert infos["s1"].effective is SessionStatus.WORKING
        assert infos["s2"].effective is SessionStatus.NEEDS_APPROVAL
        assert "s3" not in infos

    async def test_send_message_body(self):
        async with self._api() as api:
            await api.send_message("s1", "/home/dev/proj", "run tests")
        assert self.backend.calls[-1] == (
            "send", "s1", {"projectPath": "/home/dev/proj", "message": "run tests"},
        )

    async def test_send_failure_maps_error_text(self):
        self.backend.fail["send"] = (500, "Failed to spawn process")
        async with self._api() as api:
            with self.assertRaises(ApiError) as ctx:
                await api.send_message("s1", "/home/dev/proj", "x")
        assert "Failed to spawn process" in str(ctx.exception)

    async def test_approve_once_omits_pattern(self):
        async with self._api() as api:
            added = await api.approve_session("s1", "/home/dev/proj")
        assert added is None
        assert self.backend.calls[-1] == ("approve", "s1", {"projectPath": "/home/dev/proj"})
        assert self.backend.allow_list == []

    async def test_always_allow_sends_pattern(self):
        async with self._api() as api:
            added = await api.approve_session(
                "s1", "/home/dev/proj", pattern="Bash(rm:*)", always_allow=True,
            )
        assert added == "Bash(rm:*)"
        assert self.backend.allow_list == ["Bash(rm:*)"]

    async def test_kill_rename_delete(self):
        async with self._api() as api:
            await api.kill_session("s1", "/home/dev/proj")
            name = await api.rename_session("s1", "  Build fix  ")
            await api.delete_session("/home/dev/proj", "s1")
        assert name == "Build fix"
        assert [c[0] for c in self.backend.calls] == ["kill", "rename", "delete"]
        assert self.backend.sessions == {}

    async def test_stream_url(self):
        api = DeckApiClient("http://localhost:3001/api/")
        assert api.stream_url("/home/dev/proj", "s1") == (
            "http://localhost:3001/api/projects/-home-dev-proj/sessions/s1/stream"
        )
        await api.close()


def test_unreachable_backend_raises_transport_error():
    async def _run() -> None:
        async with DeckApiClient("http://127.0.0.1:9/api", timeout_seconds=2) as api:
            try:
                await api.list_sessions()
            except TransportError as exc:
                assert exc.endpoint == "GET /sessions"
            else:
                raise AssertionError("expected TransportError")

    asyncio.run(_run())
