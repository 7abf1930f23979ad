"""Input bar - message entry, disabled while a send or a run is in progress."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Button, Input


class InputBar(Widget):
    """Single-line prompt input with a send button."""

    class Submitted(Message):
        """Posted when user submits a message."""

        def __init__(self, text: str) -> None:
            self.text = text
            super().__init__()

    DEFAULT_CSS = """
    InputBar {
        height: 3;
    }
    InputBar Horizontal {
        height: 3;
    }
    InputBar #prompt-input {
        width: 1fr;
    }
    InputBar #send-btn {
        min-width: 10;
    }
    """

    PLACEHOLDER = "Send a message to the session..."

    def compose(self) -> ComposeResult:
        with Horizontal():
            yield Input(placeholder=self.PLACEHOLDER, id="prompt-input")
            yield Button("Send", id="send-btn", variant="primary")

    def focus_input(self) -> None:
        self.query_one("#prompt-input", Input).focus()

    def set_enabled(self, enabled: bool, reason: str = "") -> None:
        """Enable or disable input; *reason* replaces the placeholder."""
        prompt = self.query_one("#prompt-input", Input)
        prompt.disabled = not enabled
        prompt.placeholder = self.PLACEHOLDER if enabled else (reason or "Please wait...")
        self.query_one("#send-btn", Button).disabled = not enabled

    def _submit(self) -> None:
        prompt = self.query_one("#prompt-input", Input)
        text = prompt.value.strip()
        if not text or prompt.disabled:
            return
        prompt.value = ""
        self.post_message(self.Submitted(text))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self._submit()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "send-btn":
            event.stop()
            self._submit()
