"""Session panel - one live session: conversation, approval, input and status.

The panel owns its ``SessionView`` and closes it when unmounted. The
full-screen session view holds one panel; the split view holds several
side by side, all sharing the app's status service.
"""

from __future__ import annotations

import logging

from rich.markup import escape
from textual import work
from textual.app import ComposeResult
from textual.widget import Widget

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.config import DeckConfig
from agentdeck.engine.errors import ApprovalError, SendError
from agentdeck.engine.session_view import SessionView
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import Session, SessionStatus
from agentdeck.tui.widgets.approval_card import ApprovalCard
from agentdeck.tui.widgets.conversation import ConversationView
from agentdeck.tui.widgets.input_bar import InputBar
from agentdeck.tui.widgets.status_bar import StatusBar

logger = logging.getLogger(__name__)


class SessionPanel(Widget):
    """Live view of one session."""

    DEFAULT_CSS = """
    SessionPanel {
        width: 1fr;
        height: 1fr;
    }
    SessionPanel.compact {
        border: round $surface-lighten-2;
    }
    SessionPanel.compact:focus-within {
        border: round $accent;
    }
    """

    def __init__(
        self,
        session: Session,
        api: DeckApiClient,
        status_service: SessionStatusService,
        config: DeckConfig,
        *,
        compact: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.session_view = SessionView(session, api, status_service, config)
        self._remove_listener = None
        self._sync_pending = False
        if compact:
            self.add_class("compact")

    def compose(self) -> ComposeResult:
        yield ConversationView(viewport=self.session_view.viewport, id="conversation")
        yield ApprovalCard(id="approval-card")
        yield InputBar(id="input-bar")
        yield StatusBar(id="status-bar")

    def on_mount(self) -> None:
        self._remove_listener = self.session_view.add_listener(self._schedule_sync)
        self._open_view()

    async def on_unmount(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        await self.session_view.close()

    @work(exclusive=True, name="open-session")
    async def _open_view(self) -> None:
        view = self.session_view
        await view.open()
        if view.error is not None:
            self.app.notify(f"Failed to load history: {escape(str(view.error))}", severity="error")
        self._schedule_sync()

    # ── Rendering ──

    def _schedule_sync(self) -> None:
        """Coalesce view changes into one UI refresh."""
        if self._sync_pending:
            return
        self._sync_pending = True
        self.call_later(self._sync)

    async def _sync(self) -> None:
        self._sync_pending = False
        if not self.is_mounted:
            return
        view = self.session_view
        entries = view.entries
        self.border_title = view.session.display_name

        sb = self.query_one("#status-bar", StatusBar)
        sb.session_name = view.session.display_name
        sb.project_name = view.session.project_name
        sb.status = view.status.value
        sb.connected = view.connected
        sb.awaiting_response = view.sender.awaiting_response
        sb.message_count = len(entries)

        await self.query_one("#conversation", ConversationView).show_entries(entries)
        self.query_one("#approval-card", ApprovalCard).update_from(
            view.approval, view.approval_visible,
        )

        input_bar = self.query_one(InputBar)
        if view.sender.sending:
            input_bar.set_enabled(False, "Sending...")
        elif view.status is SessionStatus.WORKING:
            input_bar.set_enabled(False, "Session is working...")
        else:
            input_bar.set_enabled(True)

    def load_older(self) -> None:
        self.query_one("#conversation", ConversationView).load_older()

    def focus_input(self) -> None:
        self.query_one(InputBar).focus_input()

    # ── Send ──

    def on_input_bar_submitted(self, event: InputBar.Submitted) -> None:
        event.stop()
        self._send(event.text)

    @work(name="send")
    async def _send(self, text: str) -> None:
        try:
            await self.session_view.send(text)
        except SendError as exc:
            self.app.notify(escape(exc.reason), severity="error")

    # ── Approval ──

    def on_approval_card_decision(self, event: ApprovalCard.Decision) -> None:
        event.stop()
        self.approve(event.persist)

    @work(name="approve")
    async def approve(self, persist: bool) -> None:
        view = self.session_view
        try:
            if persist:
                await view.always_allow()
            else:
                await view.approve_once()
        except ApprovalError as exc:
            self.app.notify(escape(exc.reason), severity="error")
