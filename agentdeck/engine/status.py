"""Batched session status polling.

One ``SessionStatusService`` is shared by every open session view. It
polls the batched status endpoint for all registered sessions with at
most one request in flight, and lets callers record optimistic local
transitions (e.g. "working" right after an approval) that win over
any poll already in flight when they were made.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from agentdeck.engine.errors import DeckError
from agentdeck.shared.models.session import SessionStatus

if TYPE_CHECKING:
    from agentdeck.adapters.api_client import DeckApiClient

logger = logging.getLogger(__name__)

StatusListener = Callable[[str, SessionStatus], None]


class SessionStatusService:
    """Polls and caches the coarse status of registered sessions."""

    def __init__(self, api: DeckApiClient, *, poll_interval: float = 5.0) -> None:
        self._api = api
        self._poll_interval = poll_interval
        self._statuses: dict[str, SessionStatus] = {}
        # session_id -> {token: listener}
        self._registrations: dict[str, dict[int, StatusListener | None]] = {}
        # session_id -> (status, stamp) of the last local transition
        self._local: dict[str, tuple[SessionStatus, int]] = {}
        self._clock = itertools.count(1)
        self._tokens = itertools.count(1)
        self._loop_task: asyncio.Task | None = None
        self._inflight: asyncio.Task | None = None
        self._refresh_pending = False
        self.polls = 0

    @property
    def session_ids(self) -> list[str]:
        return sorted(self._registrations)

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def status(self, session_id: str) -> SessionStatus:
        return self._statuses.get(session_id, SessionStatus.IDLE)

    # ── Registration ──

    def register(
        self, session_id: str, listener: StatusListener | None = None,
    ) -> Callable[[], None]:
        """Register interest in a session. Returns the matching unregister."""
        token = next(self._tokens)
        first = not self._registrations
        self._registrations.setdefault(session_id, {})[token] = listener
        logger.debug("Status: registered %s (token=%d)", session_id[:8], token)
        if first:
            self.start()
        else:
            self.refresh()

        def unregister() -> None:
            self._unregister(session_id, token)

        return unregister

    def _unregister(self, session_id: str, token: int) -> None:
        listeners = self._registrations.get(session_id)
        if listeners is None or token not in listeners:
            return
        del listeners[token]
        if not listeners:
            del self._registrations[session_id]
            self._local.pop(session_id, None)
            self._statuses.pop(session_id, None)
        logger.debug("Status: unregistered %s (token=%d)", session_id[:8], token)
        if not self._registrations:
            self.stop()

    # ── Local transitions ──

    def set_local(self, session_id: str, status: SessionStatus) -> None:
        """Record an optimistic transition observed by this client."""
        self._local[session_id] = (status, next(self._clock))
        self._apply(session_id, status)

    # ── Polling ──

    def start(self) -> None:
        if self.running:
            return
        self._loop_task = asyncio.create_task(self._poll_loop(), name="status-poll")

    def stop(self) -> None:
        for task in (self._loop_task, self._inflight):
            if task is not None and not task.done():
                task.cancel()
        self._loop_task = None
        self._inflight = None
        self._refresh_pending = False

    def refresh(self) -> asyncio.Task | None:
        """Poll now, or once more after the poll already in flight."""
        if not self._registrations:
            return None
        if self._inflight is not None and not self._inflight.done():
            self._refresh_pending = True
            return self._inflight
        self._inflight = asyncio.create_task(self._drain(), name="status-refresh")
        return self._inflight

    async def _poll_loop(self) -> None:
        while True:
            task = self.refresh()
            if task is not None:
                await task
            await asyncio.sleep(self._poll_interval)

    async def _drain(self) -> None:
        while True:
            self._refresh_pending = False
            await self._poll_once()
            if not self._refresh_pending:
                break

    async def _poll_once(self) -> None:
        ids = self.session_ids
        if not ids:
            return
        started = next(self._clock)
        self.polls += 1
        try:
            infos = await self._api.get_statuses(ids)
        except DeckError as exc:
            logger.warning("Status poll failed for %d session(s): %s", len(ids), exc)
            return

        for session_id in ids:
            if session_id not in self._registrations:
                continue
            local = self._local.get(session_id)
            if local is not None:
                if local[1] > started:
                    continue
                del self._local[session_id]
            info = infos.get(session_id)
            self._apply(
                session_id, info.effective if info is not None else SessionStatus.IDLE,
            )

    def _apply(self, session_id: str, status: SessionStatus) -> None:
        previous = self._statuses.get(session_id, SessionStatus.IDLE)
        self._statuses[session_id] = status
        if previous is status:
            return
        logger.info("Session %s: %s -> %s", session_id[:8], previous.value, status.value)
        for listener in list(self._registrations.get(session_id, {}).values()):
            if listener is None:
                continue
            try:
                listener(session_id, status)
            except Exception:
                logger.exception("Status listener failed for %s", session_id[:8])
