"""AgentDeck TUI - Textual application class."""

from __future__ import annotations

import logging

from textual.app import App

from agentdeck.adapters.api_client import DeckApiClient
from agentdeck.engine.config import DeckConfig
from agentdeck.engine.session_view import SessionView
from agentdeck.engine.status import SessionStatusService
from agentdeck.shared.models.session import Session
from agentdeck.tui.screens.session import SessionScreen
from agentdeck.tui.screens.sessions import SessionsScreen
from agentdeck.tui.screens.split import SplitScreen

logger = logging.getLogger(__name__)


class DeckApp(App):
    """Terminal control panel for agent sessions."""

    TITLE = "AgentDeck"
    SUB_TITLE = "Sessions"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        config: DeckConfig,
        session_id: str | None = None,
        project_path: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config
        self.api = DeckApiClient(config.base_url, timeout_seconds=config.request_timeout_seconds)
        self.status_service = SessionStatusService(
            self.api, poll_interval=config.poll_interval_seconds,
        )
        self._initial: Session | None = None
        if session_id and project_path:
            self._initial = Session(id=session_id, project_path=project_path)
        self._views: list[SessionView] = []

    def on_mount(self) -> None:
        logger.info("Connecting to backend %s", self.config.base_url)
        self.push_screen(SessionsScreen(self.api, self.status_service))
        if self._initial is not None:
            self.open_session(self._initial)

    def open_session(self, session: Session) -> SessionScreen:
        logger.info("Opening session %s in %s", session.id, session.project_path)
        screen = SessionScreen(session, self.api, self.status_service, self.config)
        self._track(screen.views)
        self.push_screen(screen)
        return screen

    def open_split(self, sessions: list[Session]) -> SplitScreen:
        logger.info("Opening split view of %s", ", ".join(s.id[:8] for s in sessions))
        screen = SplitScreen(sessions, self.api, self.status_service, self.config)
        self._track(screen.views)
        self.push_screen(screen)
        return screen

    def _track(self, views: list[SessionView]) -> None:
        self._views = [view for view in self._views if not view.closed]
        self._views.extend(views)

    async def on_unmount(self) -> None:
        # Streams must stop before their HTTP session closes
        for view in self._views:
            await view.close()
        self.status_service.stop()
        await self.api.close()
