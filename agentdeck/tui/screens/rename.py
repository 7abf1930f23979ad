"""Rename session modal.

Returns the new name, or None if cancelled.
"""
from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label


class RenameScreen(ModalScreen[str | None]):
    """Modal dialog asking for a new session name."""

    DEFAULT_CSS = """
    RenameScreen {
        align: center middle;
    }
    RenameScreen #rename-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $primary;
        background: $surface;
    }
    RenameScreen #rename-buttons {
        height: 3;
        margin: 1 0 0 0;
    }
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, current_name: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.current_name = current_name

    def compose(self) -> ComposeResult:
        with Vertical(id="rename-dialog"):
            yield Label("Rename session")
            yield Input(value=self.current_name, id="rename-input")
            with Horizontal(id="rename-buttons"):
                yield Button("Save", variant="primary", id="btn-rename-save")
                yield Button("Cancel", id="btn-rename-cancel")

    def on_mount(self) -> None:
        self.query_one("#rename-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.dismiss(event.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-rename-save":
            self.dismiss(self.query_one("#rename-input", Input).value)
        else:
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)
