"""Status bar - session name, status badge and stream connection."""

from __future__ import annotations

from rich.text import Text
from textual.reactive import reactive
from textual.widget import Widget

from agentdeck.shared.models.session import SessionStatus

_STATUS_STYLES = {
    SessionStatus.WORKING.value: "bold yellow",
    SessionStatus.WAITING.value: "green",
    SessionStatus.NEEDS_APPROVAL.value: "bold magenta",
    SessionStatus.IDLE.value: "dim",
}


class StatusBar(Widget):
    """Single-line status bar for the open session."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface-darken-1;
    }
    """

    session_name: reactive[str] = reactive("No session")
    project_name: reactive[str] = reactive("")
    status: reactive[str] = reactive(SessionStatus.IDLE.value)
    connected: reactive[bool] = reactive(False)
    awaiting_response: reactive[bool] = reactive(False)
    message_count: reactive[int] = reactive(0)

    def render(self) -> Text:
        bar = Text()
        bar.append(f" {self.session_name} ", style="bold")
        if self.project_name:
            bar.append(" │ ", style="dim")
            bar.append(self.project_name, style="cyan")
        bar.append(" │ ", style="dim")

        status = SessionStatus.parse(self.status)
        bar.append(f"● {status.label}", style=_STATUS_STYLES.get(status.value, "white"))
        if status is SessionStatus.NEEDS_APPROVAL:
            bar.append(" (approval needed)", style="magenta")
        if self.awaiting_response:
            bar.append("  waiting for reply…", style="dim italic")

        bar.append(" │ ", style="dim")
        bar.append(f"{self.message_count} entries", style="dim")
        bar.append(" │ ", style="dim")
        if self.connected:
            bar.append("live", style="green")
        else:
            bar.append("reconnecting", style="red")
        return bar
