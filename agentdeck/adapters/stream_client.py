"""Live event subscription for one session.

The backend serves each session's events as Server-Sent Events. The
client keeps one subscription open at a time and re-subscribes after a
fixed delay whenever the connection drops, fails, or stalls. It never
replays history itself; the session view re-fetches the snapshot after
a reconnect and de-duplication absorbs the overlap.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import aiohttp

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.adapters.events import StreamEvent, dict_to_event

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOST = "lost"
    CLOSED = "closed"


class SSEDecoder:
    """Incremental decoder for ``text/event-stream`` lines.

    Feed one line at a time (without the trailing newline). A blank line
    dispatches the buffered event and returns its JSON payload.
    """

    def __init__(self) -> None:
        self._data: list[str] = []
        self._event: str | None = None

    def feed_line(self, line: str) -> dict[str, Any] | None:
        if line == "":
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        return None

    def _dispatch(self) -> dict[str, Any] | None:
        data, event = self._data, self._event
        self._data, self._event = [], None
        if not data:
            return None
        raw = "\n".join(data)
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.debug("SSE: dropping unparseable payload %r", raw[:200])
            return None
        if not isinstance(payload, dict):
            logger.debug("SSE: dropping non-object payload %r", raw[:200])
            return None
        if "type" not in payload and event:
            payload["type"] = event
        return payload


class SessionStreamClient:
    """Retrying SSE subscription that hands typed events to a callback."""

    def __init__(
        self,
        api: DeckApiClient,
        project_path: str,
        session_id: str,
        on_event: Callable[[StreamEvent], None],
        *,
        reconnect_delay: float = 3.0,
        read_timeout: float = 90.0,
        on_state: Callable[[ConnectionState], None] | None = None,
    ) -> None:
        self._api = api
        self._project_path = project_path
        self._session_id = session_id
        self._on_event = on_event
        self._on_state = on_state
        self._reconnect_delay = reconnect_delay
        self._read_timeout = read_timeout
        self._state = ConnectionState.CLOSED
        self._task: asyncio.Task | None = None
        self._stopped = False
        self.subscriptions = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Diagnostic only; nothing should gate on this."""
        return self._state is ConnectionState.CONNECTED

    @property
    def url(self) -> str:
        return self._api.stream_url(self._project_path, self._session_id)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopped = False
        self._task = asyncio.create_task(
            self._run(), name=f"stream-{self._session_id[:8]}",
        )

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(ConnectionState.CLOSED)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        logger.debug(
            "Stream %s: %s -> %s", self._session_id[:8], self._state.value, state.value,
        )
        self._state = state
        if self._on_state is not None:
            try:
                self._on_state(state)
            except Exception:
                logger.exception("Stream state callback failed")

    async def _run(self) -> None:
        while not self._stopped:
            self._set_state(ConnectionState.CONNECTING)
            try:
                await self._subscribe()
                logger.info("Stream %s: server closed the subscription", self._session_id[:8])
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                logger.info(
                    "Stream %s: subscription lost (%s)",
                    self._session_id[:8], str(exc) or type(exc).__name__,
                )
            except Exception:
                logger.exception("Stream %s: subscription failed", self._session_id[:8])
            if self._stopped:
                break
            self._set_state(ConnectionState.LOST)
            await asyncio.sleep(self._reconnect_delay)

    async def _subscribe(self) -> None:
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self._read_timeout)
        self.subscriptions += 1
        async with self._api.http.get(
            self.url, timeout=timeout, headers={"Accept": "text/event-stream"},
        ) as resp:
            if resp.status != 200:
                logger.warning(
                    "Stream %s: subscription refused with HTTP %s",
                    self._session_id[:8], resp.status,
                )
                return
            self._set_state(ConnectionState.CONNECTED)
            decoder = SSEDecoder()
            async for raw_line in resp.content:
                line = raw_line.decode("utf-8", errors="replace").rstrip("\r\n")
                payload = decoder.feed_line(line)
                if payload is not None:
                    self._dispatch(payload)

    def _dispatch(self, payload: dict[str, Any]) -> None:
        if self._stopped:
            return
        try:
            event = dict_to_event(payload)
        except Exception:
            logger.exception("Stream %s: dropping undecodable payload", self._session_id[:8])
            return
        if event is None:
            return
        if event.session_id is None:
            event.session_id = self._session_id
        try:
            self._on_event(event)
        except Exception:
            logger.exception("Stream event callback failed for %s", event.event_type)
