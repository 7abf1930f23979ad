"""Optimistic message sending.

The user's message is shown immediately as a provisional entry. If the
backend rejects it, the entry is rolled back and the error surfaced;
there is no automatic retry. On success the entry stays in place and
the backend's echo of it arrives later as a separate entry.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from agentdeck.engine.errors import DeckError, SendError
from agentdeck.engine.transcript import TranscriptReconciler
from agentdeck.shared.models.message import Entry, EntryRole, gen_temp_id
from agentdeck.shared.models.session import SessionStatus

if TYPE_CHECKING:
    from agentdeck.adapters.api_client import DeckApiClient
    from agentdeck.engine.status import SessionStatusService

logger = logging.getLogger(__name__)


class OptimisticSender:
    """Sends user messages to one session."""

    def __init__(
        self,
        session_id: str,
        project_path: str,
        api: DeckApiClient,
        transcript: TranscriptReconciler,
        status_service: SessionStatusService | None = None,
        *,
        refresh_delay: float = 0.5,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.session_id = session_id
        self.project_path = project_path
        self._api = api
        self._transcript = transcript
        self._status_service = status_service
        self._refresh_delay = refresh_delay
        self._on_change = on_change
        self._refresh_handle: asyncio.TimerHandle | None = None
        self._sent_at: datetime | None = None
        self.sending = False
        self.awaiting_response = False
        self.error: SendError | None = None

    @property
    def working(self) -> bool:
        if self._status_service is None:
            return False
        return self._status_service.status(self.session_id) is SessionStatus.WORKING

    @property
    def can_send(self) -> bool:
        return not self.sending and not self.working

    async def send(self, text: str) -> Entry:
        """Send *text*; returns the provisional entry that was shown."""
        message = text.strip()
        if not message:
            raise SendError(self.session_id, "Message is empty")
        if self.sending:
            raise SendError(self.session_id, "A message is already being sent")
        if self.working:
            raise SendError(self.session_id, "Session is working")

        entry = Entry(
            id=gen_temp_id(),
            role=EntryRole.USER,
            timestamp=datetime.now(timezone.utc),
            content=message,
            provisional=True,
        )
        self._transcript.append_local(entry)
        self.sending = True
        self.awaiting_response = True
        self._sent_at = entry.timestamp
        self.error = None
        self._changed()

        try:
            await self._api.send_message(self.session_id, self.project_path, message)
        except DeckError as exc:
            logger.warning("Send to session %s failed: %s", self.session_id[:8], exc)
            self._transcript.remove(entry.id)
            self.awaiting_response = False
            self.error = SendError(self.session_id, f"Failed to send message: {exc}")
            raise self.error from exc
        finally:
            self.sending = False
            self._changed()

        logger.info("Sent message to session %s (%d chars)", self.session_id[:8], len(message))
        self._schedule_refresh()
        return entry

    def observe(self, entry: Entry) -> None:
        """Clear the waiting flag once the agent answers after a send."""
        if not self.awaiting_response or self._sent_at is None:
            return
        if entry.role is EntryRole.ASSISTANT and entry.timestamp > self._sent_at:
            self.awaiting_response = False
            self._changed()

    def close(self) -> None:
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
            self._refresh_handle = None

    def _schedule_refresh(self) -> None:
        if self._status_service is None:
            return
        if self._refresh_handle is not None:
            self._refresh_handle.cancel()
        loop = asyncio.get_running_loop()
        self._refresh_handle = loop.call_later(self._refresh_delay, self._status_service.refresh)

    def _changed(self) -> None:
        if self._on_change is not None:
            try:
                self._on_change()
            except Exception:
                logger.exception("Sender change callback failed")
