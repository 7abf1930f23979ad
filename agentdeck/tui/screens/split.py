"""Split screen - several live sessions side by side."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Grid
from textual.screen import Screen
from textual.widgets import Footer, Header

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.config import DeckConfig
from agentdeck.engine.session_view import SessionView
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import Session
from agentdeck.tui.widgets.session_panel import SessionPanel


class SplitScreen(Screen):
    """Grid of session panels sharing one status poll."""

    DEFAULT_CSS = """
    SplitScreen #split-grid {
        grid-size: 2;
        grid-gutter: 0 1;
    }
    """

    BINDINGS = [
        ("escape", "back", "Sessions"),
        ("ctrl+a", "approve", "Approve"),
        ("ctrl+o", "open_focused", "Full screen"),
    ]

    def __init__(
        self,
        sessions: list[Session],
        api: DeckApiClient,
        status_service: SessionStatusService,
        config: DeckConfig,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.panels = [
            SessionPanel(session, api, status_service, config, compact=True, id=f"panel-{idx}")
            for idx, session in enumerate(sessions)
        ]

    @property
    def views(self) -> list[SessionView]:
        return [panel.session_view for panel in self.panels]

    def compose(self) -> ComposeResult:
        yield Header()
        with Grid(id="split-grid"):
            yield from self.panels
        yield Footer()

    def on_mount(self) -> None:
        self.sub_title = f"{len(self.panels)} sessions"
        if self.panels:
            self.call_after_refresh(self.panels[0].focus_input)

    def _focused_panel(self) -> SessionPanel | None:
        node = self.focused
        while node is not None:
            if isinstance(node, SessionPanel):
                return node
            node = node.parent
        return None

    def action_back(self) -> None:
        self.app.pop_screen()

    def action_approve(self) -> None:
        panel = self._focused_panel()
        if panel is not None and panel.session_view.approval_visible:
            panel.approve(False)

    def action_open_focused(self) -> None:
        panel = self._focused_panel()
        if panel is not None:
            self.app.open_session(panel.session_view.session)
