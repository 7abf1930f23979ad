"""One open session: transcript, live stream, status, approval and send.

``SessionView`` wires the per-session components together and is what
the terminal UI and the headless watcher talk to. It owns everything
except the status service, which is shared between views.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.adapters.events import Connected, MessageReceived, StatusChanged, StreamEvent
from agentdeck.adapters.stream_client import ConnectionState, SessionStreamClient
from agentdeck.engine.approval import ApprovalRequest, ApprovalState, ApprovalWorkflow
from agentdeck.engine.config import DeckConfig
from agentdeck.engine.errors import DeckError, SessionActionError
from agentdeck.engine.sender import OptimisticSender
from agentdeck.engine.status import SessionStatusService
from agentdeck.engine.transcript import TranscriptReconciler
from agentdeck.engine.viewport import ViewportController
from agentdeck.shared.models.message import Entry
from agentdeck.shared.models.session import Session, SessionStatus

logger = logging.getLogger(__name__)


class SessionView:
    """Reconciled, live view of a single session."""

    def __init__(
        self,
        session: Session,
        api: DeckApiClient,
        status_service: SessionStatusService,
        config: DeckConfig | None = None,
    ) -> None:
        self.session = session
        self.config = config or DeckConfig()
        self._api = api
        self._status_service = status_service
        self._listeners: list[Callable[[], None]] = []
        self._unregister_status: Callable[[], None] | None = None
        self._stream: SessionStreamClient | None = None
        self._backfill_task: asyncio.Task | None = None
        self._lost = False
        self._closed = False
        self.error: DeckError | None = None

        self.transcript = TranscriptReconciler(self.config.max_result_chars)
        self.viewport = ViewportController(
            self.config.page_size,
            load_threshold=self.config.load_threshold_px,
            bottom_threshold=self.config.bottom_threshold_px,
        )
        self.approval = ApprovalWorkflow(api, status_service, on_change=self._notify)
        self.sender = OptimisticSender(
            session.id,
            session.project_path,
            api,
            self.transcript,
            status_service,
            refresh_delay=self.config.status_refresh_delay_seconds,
            on_change=self._notify,
        )

    @property
    def session_id(self) -> str:
        return self.session.id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def status(self) -> SessionStatus:
        return self._status_service.status(self.session.id)

    @property
    def connected(self) -> bool:
        return self._stream is not None and self._stream.connected

    @property
    def entries(self) -> list[Entry]:
        return self.transcript.materialize()

    @property
    def approval_visible(self) -> bool:
        if self.approval.request is None:
            return False
        if self.approval.state in (ApprovalState.APPROVING, ApprovalState.RESOLVED):
            return True
        return self.status is SessionStatus.NEEDS_APPROVAL

    def add_listener(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call *listener* after every change. Returns the remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ── Lifecycle ──

    async def open(self) -> None:
        """Load history, start status tracking and the live stream."""
        self.viewport.set_session(self.session.id)
        await self._load_history(replace=True)
        self._unregister_status = self._status_service.register(
            self.session.id, self._on_status,
        )
        self._stream = SessionStreamClient(
            self._api,
            self.session.project_path,
            self.session.id,
            self._on_stream_event,
            reconnect_delay=self.config.reconnect_delay_seconds,
            read_timeout=self.config.stream_read_timeout_seconds,
            on_state=self._on_connection_state,
        )
        self._stream.start()
        self._notify()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._backfill_task is not None and not self._backfill_task.done():
            self._backfill_task.cancel()
        if self._unregister_status is not None:
            self._unregister_status()
            self._unregister_status = None
        self.sender.close()
        if self._stream is not None:
            await self._stream.stop()
        self._listeners.clear()
        logger.info("Closed session view %s", self.session.id[:8])

    async def _load_history(self, *, replace: bool) -> None:
        try:
            detail = await self._api.get_session_detail(
                self.session.project_path, self.session.id,
            )
        except DeckError as exc:
            logger.warning("Failed to load history for %s: %s", self.session.id[:8], exc)
            self.error = exc
            return
        if self._closed:
            return
        if detail.session.id:
            detail.session.project_path = detail.session.project_path or self.session.project_path
            self.session = detail.session
        if replace:
            self.transcript.seed(detail.entries)
        else:
            self.transcript.ingest_many(detail.entries)
        logger.debug(
            "Loaded %d history entries for %s (%d after reconciliation)",
            len(detail.entries), self.session.id[:8], len(self.transcript),
        )
        self._refresh_approval()

    # ── Stream handling ──

    def _on_connection_state(self, state: ConnectionState) -> None:
        if state is ConnectionState.LOST:
            self._lost = True
        self._notify()

    def _on_stream_event(self, event: StreamEvent) -> None:
        if self._closed:
            return
        if isinstance(event, Connected):
            if self._lost:
                self._lost = False
                self._backfill_task = asyncio.create_task(self._backfill())
            return
        if isinstance(event, StatusChanged):
            self._status_service.refresh()
            return
        if not isinstance(event, MessageReceived) or event.message is None:
            return
        if self.transcript.ingest(event):
            self.sender.observe(event.message)
            self._refresh_approval()
            self._notify()

    async def _backfill(self) -> None:
        """Pick up entries written while the stream was disconnected."""
        logger.info("Stream for %s reconnected, re-fetching history", self.session.id[:8])
        await self._load_history(replace=False)
        self._notify()

    # ── Status ──

    def _on_status(self, session_id: str, status: SessionStatus) -> None:
        self._notify()

    def _refresh_approval(self) -> None:
        last = self.transcript.last_entry()
        request = None
        if last is not None:
            request = ApprovalRequest.from_entry(
                last, self.session.id, self.session.project_path,
            )
        self.approval.present(request)

    # ── Actions ──

    async def send(self, text: str) -> Entry:
        return await self.sender.send(text)

    async def approve_once(self) -> bool:
        return await self.approval.approve_once()

    async def always_allow(self) -> bool:
        return await self.approval.always_allow()

    async def kill(self) -> None:
        """Stop the session's agent process."""
        try:
            await self._api.kill_session(self.session.id, self.session.project_path)
        except DeckError as exc:
            raise self._action_failed("stop", exc) from exc
        self._status_service.set_local(self.session.id, SessionStatus.IDLE)
        self._status_service.refresh()
        self._notify()

    async def rename(self, name: str) -> str:
        cleaned = name.strip()
        try:
            new_name = await self._api.rename_session(self.session.id, cleaned)
        except DeckError as exc:
            raise self._action_failed("rename", exc) from exc
        self.session.name = new_name if new_name is not None else (cleaned or None)
        self._notify()
        return self.session.display_name

    async def delete(self) -> None:
        try:
            await self._api.delete_session(self.session.project_path, self.session.id)
        except DeckError as exc:
            raise self._action_failed("delete", exc) from exc
        logger.info("Deleted session %s", self.session.id[:8])
        await self.close()

    def _action_failed(self, action: str, exc: DeckError) -> SessionActionError:
        logger.warning("Failed to %s session %s: %s", action, self.session.id[:8], exc)
        error = SessionActionError(self.session.id, action, str(exc))
        if not self._closed:
            self.error = error
            self._notify()
        return error

    def _notify(self) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Session view listener failed")
