"""Approval card - inline permission prompt below the last message.

Shows the blocked command with "Approve" and "Always Allow" buttons.
Buttons are disabled while the approval is in flight; once resolved
the card reads "Approved" until the transcript moves on.
"""

from __future__ import annotations

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, Static

from agentdeck.engine.approval import ApprovalOutcome, ApprovalState, ApprovalWorkflow


class ApprovalCard(Widget):
    """Permission request card for the open session."""

    class Decision(Message):
        """Posted when the user picks Approve (persist=False) or Always Allow."""

        def __init__(self, persist: bool) -> None:
            self.persist = persist
            super().__init__()

    DEFAULT_CSS = """
    ApprovalCard {
        height: auto;
        margin: 0 1;
        padding: 1 2;
        border: round $warning;
        display: none;
    }
    ApprovalCard.visible {
        display: block;
    }
    ApprovalCard #approval-buttons {
        height: 3;
        margin: 1 0 0 0;
    }
    ApprovalCard #approval-error {
        color: $error;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("[bold yellow]Permission Required[/bold yellow]", id="approval-title")
            yield Static("", id="approval-command")
            yield Static("", id="approval-pattern")
            with Horizontal(id="approval-buttons"):
                yield Button("Approve", variant="success", id="btn-approve")
                yield Button("Always Allow", variant="warning", id="btn-always")
            yield Static("", id="approval-status")
            yield Static("", id="approval-error")

    def update_from(self, workflow: ApprovalWorkflow, visible: bool) -> None:
        request = workflow.request
        self.set_class(visible and request is not None, "visible")
        if request is None:
            return

        command = request.command or "unknown command"
        self.query_one("#approval-command", Static).update(
            f"[dim]Command:[/dim] [bold]{escape(command)}[/bold]"
        )
        self.query_one("#approval-pattern", Static).update(
            f"[dim]Always Allow adds[/dim] [cyan]{escape(request.pattern)}[/cyan]"
            if request.pattern else ""
        )

        resolved = workflow.state is ApprovalState.RESOLVED
        approving = workflow.state is ApprovalState.APPROVING
        buttons = self.query_one("#approval-buttons", Horizontal)
        buttons.display = not resolved
        for button in buttons.query(Button):
            button.disabled = approving

        status = ""
        if approving:
            status = "[yellow]Approving...[/yellow]"
        elif resolved:
            status = "[bold green]✓ Approved[/bold green]"
            if workflow.outcome is ApprovalOutcome.APPROVED_PERSISTED and workflow.pattern_added:
                status += f" [dim]{escape(workflow.pattern_added)} added to allow list[/dim]"
        self.query_one("#approval-status", Static).update(status)
        self.query_one("#approval-error", Static).update(
            escape(str(workflow.error)) if workflow.error else ""
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id not in ("btn-approve", "btn-always"):
            return
        event.stop()
        self.post_message(self.Decision(persist=event.button.id == "btn-always"))
