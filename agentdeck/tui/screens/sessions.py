"""Sessions screen - every session the backend knows, with live status badges.

Select a row to open the session. Mark rows with "+" and press ``s`` to
watch the marked sessions side by side.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from rich.markup import escape
from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.containers import Horizontal, VerticalScroll
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Input, Static

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.errors import DeckError
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import Session, SessionStatus

logger = logging.getLogger(__name__)

MAX_SPLIT = 4

_BADGE_STYLES = {
    SessionStatus.WORKING: "bold yellow",
    SessionStatus.WAITING: "green",
    SessionStatus.NEEDS_APPROVAL: "bold magenta",
    SessionStatus.IDLE: "dim",
}


def session_label(session: Session, status: SessionStatus) -> Text:
    label = Text()
    badge = "Approval" if status is SessionStatus.NEEDS_APPROVAL else status.label
    label.append(f"● {badge:<8} ", style=_BADGE_STYLES[status])
    label.append(session.display_name, style="bold")
    label.append(
        f"  {session.project_name} · {session.message_count} msgs · {session.id[:8]}",
        style="dim",
    )
    return label


class SessionsScreen(Screen):
    """Session picker."""

    DEFAULT_CSS = """
    SessionsScreen #session-filter {
        margin: 0 1;
    }
    SessionsScreen #session-list {
        height: 1fr;
    }
    SessionsScreen .session-row {
        height: 3;
    }
    SessionsScreen .session-open {
        width: 1fr;
    }
    SessionsScreen .session-mark {
        min-width: 5;
        width: 5;
    }
    SessionsScreen .session-mark.marked {
        background: $accent;
    }
    """

    BINDINGS = [
        ("r", "reload", "Reload"),
        ("s", "split", "Split view"),
        ("c", "clear_marks", "Clear marks"),
    ]

    def __init__(
        self,
        api: DeckApiClient,
        status_service: SessionStatusService,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._api = api
        self._status_service = status_service
        self.sessions: list[Session] = []
        self._filtered: list[Session] = []
        self.marked: list[str] = []
        self._unregister: dict[str, Callable[[], None]] = {}
        self._rows: dict[str, Button] = {}

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="Filter by name, project or id...", id="session-filter")
        yield VerticalScroll(id="session-list")
        yield Footer()

    def on_screen_resume(self) -> None:
        self.sub_title = "Sessions"
        self._load()

    def on_unmount(self) -> None:
        for unregister in self._unregister.values():
            unregister()
        self._unregister.clear()

    # ── Loading ──

    def action_reload(self) -> None:
        self._load()

    @work(exclusive=True, name="list-sessions")
    async def _load(self) -> None:
        try:
            sessions = await self._api.list_sessions()
        except DeckError as exc:
            logger.warning("Failed to list sessions: %s", exc)
            self.app.notify(f"Failed to list sessions: {escape(str(exc))}", severity="error")
            return
        self.sessions = [s for s in sessions if s.id]
        self._track_statuses()
        self._rerender()

    def _track_statuses(self) -> None:
        ids = {s.id for s in self.sessions}
        for session_id in list(self._unregister):
            if session_id not in ids:
                self._unregister.pop(session_id)()
        for session_id in ids:
            if session_id not in self._unregister:
                self._unregister[session_id] = self._status_service.register(
                    session_id, self._on_status,
                )
        self.marked = [sid for sid in self.marked if sid in ids]

    def _on_status(self, session_id: str, status: SessionStatus) -> None:
        button = self._rows.get(session_id)
        session = self._find(session_id)
        if button is not None and session is not None:
            button.label = session_label(session, status)

    def _find(self, session_id: str) -> Session | None:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    # ── Rendering ──

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "session-filter":
            return
        self._rerender()

    def _rerender(self) -> None:
        self.run_worker(self._render_rows(), exclusive=True, group="render-sessions")

    async def _render_rows(self) -> None:
        query = self.query_one("#session-filter", Input).value.strip().lower()
        if query:
            self._filtered = [
                s for s in self.sessions
                if query in " ".join([s.display_name, s.project_path, s.id]).lower()
            ]
        else:
            self._filtered = list(self.sessions)

        container = self.query_one("#session-list", VerticalScroll)
        await container.remove_children()
        self._rows.clear()
        if not self._filtered:
            empty = "No matching sessions" if query else "No sessions"
            await container.mount(Static(f"[dim]{empty}[/dim]", markup=True))
            return

        rows = []
        for idx, session in enumerate(self._filtered):
            status = self._status_service.status(session.id)
            open_button = Button(
                session_label(session, status),
                id=f"session-open-{idx}",
                classes="session-open",
            )
            mark_button = Button(
                "✓" if session.id in self.marked else "+",
                id=f"session-mark-{idx}",
                classes="session-mark marked" if session.id in self.marked else "session-mark",
            )
            mark_button.tooltip = "Mark for split view"
            self._rows[session.id] = open_button
            rows.append(Horizontal(open_button, mark_button, classes="session-row"))
        await container.mount_all(rows)

    # ── Selection ──

    def on_button_pressed(self, event: Button.Pressed) -> None:
        btn_id = event.button.id or ""
        prefix, _, raw_idx = btn_id.rpartition("-")
        try:
            idx = int(raw_idx)
        except ValueError:
            return
        if not 0 <= idx < len(self._filtered):
            return
        session = self._filtered[idx]
        if prefix == "session-open":
            self.app.open_session(session)
        elif prefix == "session-mark":
            self._toggle_mark(session, event.button)

    def _toggle_mark(self, session: Session, button: Button) -> None:
        if session.id in self.marked:
            self.marked.remove(session.id)
        elif len(self.marked) >= MAX_SPLIT:
            self.app.notify(f"At most {MAX_SPLIT} sessions fit in the split view", severity="warning")
            return
        else:
            self.marked.append(session.id)
        marked = session.id in self.marked
        button.label = "✓" if marked else "+"
        button.set_class(marked, "marked")

    def action_clear_marks(self) -> None:
        self.marked.clear()
        for button in self.query(".session-mark").results(Button):
            button.label = "+"
            button.remove_class("marked")

    def action_split(self) -> None:
        sessions = [s for s in (self._find(sid) for sid in self.marked) if s is not None]
        if len(sessions) < 2:
            self.app.notify("Mark two or more sessions with + first", severity="warning")
            return
        self.app.open_split(sessions)
