"""Conversation view - scrollable window over the reconciled transcript.

Only the tail chosen by the ``ViewportController`` is mounted. Scrolling
near the top (or pressing the "load older" row) grows the window by a
page and the scroll offset is moved by the height that was added, so
the entry the user was looking at stays put.
"""

from __future__ import annotations

import logging

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.css.query import NoMatches
from textual.widget import Widget
from textual.widgets import Button, Static

from agentdeck.engine.viewport import ScrollMetrics, ViewportController
from agentdeck.shared.formatters.tool_call import (
    format_tool_call,
    group_summary,
    local_command_label,
    render_collapsed_rich,
    render_expanded_rich,
    render_group_header_rich,
    system_context_label,
)
from agentdeck.shared.models.message import Entry, EntryRole

logger = logging.getLogger(__name__)

# Terminal rows are mapped onto the pixel thresholds of the viewport.
PX_PER_ROW = 16


class EntryWidget(Static):
    """A single transcript entry. Click to expand its tool calls."""

    DEFAULT_CSS = """
    EntryWidget {
        height: auto;
        margin: 1 0 0 0;
        padding: 0 1;
    }
    EntryWidget.entry-user {
        border-left: thick $primary;
    }
    EntryWidget.entry-assistant {
        border-left: thick $accent;
    }
    EntryWidget.entry-system {
        color: $text-muted;
    }
    EntryWidget.provisional {
        opacity: 70%;
    }
    """

    def __init__(self, entry: Entry, **kwargs) -> None:
        self.entry = entry
        self._expanded = False
        classes = f"entry-{entry.role.value}"
        if entry.provisional:
            classes += " provisional"
        super().__init__(self._format(), classes=classes, markup=True, **kwargs)

    def _header(self) -> str:
        entry = self.entry
        ts = f"[dim]{entry.timestamp.astimezone().strftime('%H:%M:%S')}[/dim]"
        if entry.is_summary:
            return f"[bold magenta]Context Summary[/bold magenta] {ts}"
        if entry.is_local_command:
            return f"[bold yellow]{local_command_label(entry.local_command_type)}[/bold yellow] {ts}"
        if entry.is_system_context:
            name = f" [cyan]{escape(entry.system_context_name)}[/cyan]" if entry.system_context_name else ""
            return f"[bold blue]{system_context_label(entry.system_context_type)}[/bold blue]{name} {ts}"
        if entry.role is EntryRole.USER:
            sending = "  [dim italic]sending…[/dim italic]" if entry.provisional else ""
            return f"[bold cyan]You[/bold cyan] {ts}{sending}"
        if entry.role is EntryRole.ASSISTANT:
            return f"[bold cyan]Assistant[/bold cyan] {ts}"
        return f"[dim]System[/dim] {ts}"

    def _tool_lines(self) -> list[str]:
        calls = self.entry.tool_calls
        if not calls:
            return []
        summary = group_summary(calls)
        if summary is not None and not self._expanded:
            lines = [render_group_header_rich(summary)]
            for todo in summary.todo_calls:
                lines.append(render_collapsed_rich(format_tool_call(todo), todo.state))
            return lines
        lines = []
        for call in calls:
            fmt = format_tool_call(call)
            if self._expanded:
                lines.append(render_expanded_rich(fmt, call.state))
            else:
                lines.append(render_collapsed_rich(fmt, call.state))
        return lines

    def _format(self) -> str:
        entry = self.entry
        lines = [self._header()]
        if entry.thinking and self._expanded:
            lines.append(f"[dim italic]{escape(entry.thinking)}[/dim italic]")
        if entry.system_context_file and self._expanded:
            lines.append(f"[dim]{escape(entry.system_context_file)}[/dim]")
        if entry.content:
            lines.append(escape(entry.content))
        lines.extend(self._tool_lines())
        return "\n".join(lines)

    def on_click(self) -> None:
        """Toggle between collapsed and expanded tool calls."""
        self._expanded = not self._expanded
        self.set_class(self._expanded, "expanded")
        self.update(self._format())


class ConversationView(Widget):
    """Scrollable transcript pane driven by a ViewportController."""

    DEFAULT_CSS = """
    ConversationView {
        height: 1fr;
    }
    ConversationView #load-older-btn {
        width: 100%;
        border: none;
        background: $surface-lighten-1;
        color: $text-muted;
    }
    ConversationView #empty-note {
        color: $text-muted;
        padding: 1 2;
    }
    """

    def __init__(self, viewport: ViewportController | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.viewport = viewport or ViewportController()
        self._entries: list[Entry] = []
        self._rebuilding = False

    def compose(self) -> ComposeResult:
        yield VerticalScroll(id="entry-container")

    def on_mount(self) -> None:
        container = self._container()
        if container is not None:
            self.watch(container, "scroll_y", self._on_scroll_changed, init=False)

    def _container(self) -> VerticalScroll | None:
        try:
            return self.query_one("#entry-container", VerticalScroll)
        except NoMatches:
            return None

    def _metrics(self, container: VerticalScroll) -> ScrollMetrics:
        return ScrollMetrics(
            scroll_top=container.scroll_y * PX_PER_ROW,
            scroll_height=container.virtual_size.height * PX_PER_ROW,
            client_height=container.size.height * PX_PER_ROW,
        )

    # ── Rendering ──

    async def show_entries(self, entries: list[Entry]) -> None:
        """Display a new materialized transcript."""
        previous_total = len(self._entries)
        self._entries = entries
        await self._rebuild()
        container = self._container()
        if container is None:
            return
        if previous_total == 0 or self.viewport.on_growth(previous_total, len(entries)):
            container.call_after_refresh(container.scroll_end, animate=False)

    async def _rebuild(self) -> None:
        container = self._container()
        if container is None:
            return
        self._rebuilding = True
        try:
            window = self.viewport.window(self._entries)
            widgets: list[Widget] = []
            if window.has_more:
                widgets.append(Button(
                    f"↑ Load {window.next_page_size} older messages ({window.hidden_count} hidden)",
                    id="load-older-btn",
                ))
            if not window.entries:
                widgets.append(Static("No messages yet.", id="empty-note"))
            widgets.extend(EntryWidget(entry) for entry in window.entries)
            await container.remove_children()
            await container.mount_all(widgets)
        finally:
            self._rebuilding = False

    # ── Pagination ──

    def _on_scroll_changed(self, value: float) -> None:
        container = self._container()
        if container is None or self._rebuilding:
            return
        if self.viewport.on_scroll(self._metrics(container), len(self._entries)):
            self.call_later(self._grow_window)

    def load_older(self) -> None:
        container = self._container()
        if container is None:
            return
        if self.viewport.load_more(len(self._entries), self._metrics(container)):
            self.call_later(self._grow_window)

    async def _grow_window(self) -> None:
        await self._rebuild()
        self.call_after_refresh(self._restore_anchor)

    def _restore_anchor(self) -> None:
        container = self._container()
        if container is None:
            return
        top = self.viewport.restore_scroll(container.virtual_size.height * PX_PER_ROW)
        if top is not None:
            container.scroll_to(y=top / PX_PER_ROW, animate=False)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "load-older-btn":
            event.stop()
            self.load_older()
