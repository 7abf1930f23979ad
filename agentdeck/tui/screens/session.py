"""Session screen - one session's live transcript with its actions."""

from __future__ import annotations

import logging

from rich.markup import escape
from textual import work
from textual.app import ComposeResult
from textual.screen import Screen
from textual.widgets import Footer, Header

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.config import DeckConfig
from agentdeck.engine.errors import SessionActionError
from agentdeck.engine.session_view import SessionView
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import Session
from agentdeck.tui.screens.confirm import ConfirmScreen
from agentdeck.tui.screens.rename import RenameScreen
from agentdeck.tui.widgets.session_panel import SessionPanel

logger = logging.getLogger(__name__)


class SessionScreen(Screen):
    """Full-screen view of one session."""

    BINDINGS = [
        ("escape", "back", "Sessions"),
        ("ctrl+l", "load_older", "Older"),
        ("ctrl+a", "approve", "Approve"),
        ("ctrl+k", "stop_session", "Stop"),
        ("f2", "rename", "Rename"),
        ("ctrl+d", "delete", "Delete"),
        ("ctrl+e", "focus_input", "Input"),
    ]

    def __init__(
        self,
        session: Session,
        api: DeckApiClient,
        status_service: SessionStatusService,
        config: DeckConfig,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.panel = SessionPanel(session, api, status_service, config, id="session-panel")

    @property
    def session_view(self) -> SessionView:
        return self.panel.session_view

    @property
    def views(self) -> list[SessionView]:
        return [self.panel.session_view]

    def compose(self) -> ComposeResult:
        yield Header()
        yield self.panel
        yield Footer()

    def on_mount(self) -> None:
        self.session_view.add_listener(self._update_title)
        self._update_title()
        self.call_after_refresh(self.panel.focus_input)

    def _update_title(self) -> None:
        self.sub_title = self.session_view.session.display_name

    # ── Session actions ──

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_approve(self) -> None:
        if self.session_view.approval_visible:
            self.panel.approve(False)

    def action_load_older(self) -> None:
        self.panel.load_older()

    def action_focus_input(self) -> None:
        self.panel.focus_input()

    def action_stop_session(self) -> None:
        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._kill()

        self.app.push_screen(
            ConfirmScreen(
                "Stop this session?",
                "The agent process is terminated. The transcript is kept.",
                confirm_label="Stop",
            ),
            callback=_on_confirm,
        )

    @work(name="kill-session")
    async def _kill(self) -> None:
        try:
            await self.session_view.kill()
        except SessionActionError as exc:
            self.notify(escape(str(exc)), severity="error")
            return
        self.notify("Session stopped")

    def action_rename(self) -> None:
        def _on_name(name: str | None) -> None:
            if name is not None:
                self._rename(name)

        self.app.push_screen(
            RenameScreen(self.session_view.session.name or ""), callback=_on_name,
        )

    @work(name="rename-session")
    async def _rename(self, name: str) -> None:
        try:
            display = await self.session_view.rename(name)
        except SessionActionError as exc:
            self.notify(escape(str(exc)), severity="error")
            return
        self.notify(f"Renamed to {escape(display)}")

    def action_delete(self) -> None:
        def _on_confirm(confirmed: bool | None) -> None:
            if confirmed:
                self._delete()

        self.app.push_screen(
            ConfirmScreen(
                "Delete this session?",
                "The session's transcript is removed from disk.",
                confirm_label="Delete",
            ),
            callback=_on_confirm,
        )

    @work(name="delete-session")
    async def _delete(self) -> None:
        try:
            await self.session_view.delete()
        except SessionActionError as exc:
            self.notify(escape(str(exc)), severity="error")
            return
        self.app.notify("Session deleted")
        self.app.pop_screen()
