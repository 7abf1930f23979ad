"""Confirmation modal for destructive session actions (stop, delete).

Returns True if confirmed, False if cancelled.
"""
from __future__ import annotations

import time

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static


class ConfirmScreen(ModalScreen[bool]):
    """Modal confirmation dialog."""

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
    }
    ConfirmScreen #confirm-dialog {
        width: 60;
        height: auto;
        padding: 1 2;
        border: round $error;
        background: $surface;
    }
    ConfirmScreen Button {
        width: 100%;
        margin: 1 0 0 0;
    }
    """

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
        ("y", "confirm", "Confirm"),
    ]

    # Ignore the keypress that opened the dialog.
    _MOUNT_GUARD_SECONDS = 0.3

    def __init__(self, title: str, details: str = "", confirm_label: str = "Confirm", **kwargs) -> None:
        super().__init__(**kwargs)
        self.title_text = title
        self.details = details
        self.confirm_label = confirm_label
        self._mount_time = 0.0

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Label(self.title_text)
            if self.details:
                yield Static(f"[dim]{escape(self.details)}[/dim]", markup=True)
            yield Button(f"{self.confirm_label} (y)", id="btn-confirm", variant="error")
            yield Button("Cancel (Esc)", id="btn-cancel")

    def on_mount(self) -> None:
        self._mount_time = time.monotonic()
        self.query_one("#btn-confirm", Button).focus()

    def _is_guarded(self) -> bool:
        return time.monotonic() - self._mount_time < self._MOUNT_GUARD_SECONDS

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if self._is_guarded():
            return
        self.dismiss(event.button.id == "btn-confirm")

    def action_cancel(self) -> None:
        if self._is_guarded():
            return
        self.dismiss(False)

    def action_confirm(self) -> None:
        if self._is_guarded():
            return
        self.dismiss(True)
