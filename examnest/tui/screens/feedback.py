from __future__ import annotations

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static, TextArea

from examnest.runtime.library_controller import LibraryController


class FeedbackScreen(ModalScreen[None]):
    CSS = """
    FeedbackScreen {
      align: center middle;
    }

    #feedback-root {
      width: 84;
      height: auto;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }

    #feedback-title {
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }

    .help {
      color: $text-muted;
      height: auto;
      margin-bottom: 1;
    }

    .row {
      height: auto;
      margin-bottom: 1;
    }

    .label {
      width: 12;
      color: $text-muted;
      padding-top: 1;
    }

    .row Input {
      width: 1fr;
    }

    #feedback-message {
      height: 8;
      margin-bottom: 1;
    }

    #feedback-actions {
      height: 3;
      align-horizontal: right;
      margin-bottom: 1;
    }

    #feedback-actions Button {
      margin-left: 1;
      min-width: 14;
    }
    """

    BINDINGS = [
        Binding("ctrl+s", "submit", "Send"),
        Binding("escape", "close", "Close"),
    ]

    def __init__(self, *, controller: LibraryController):
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        with Container(id="feedback-root"):
            yield Label("Send Feedback", id="feedback-title")
            yield Static("Suggestions, missing papers or broken links. We read everything.", classes="help")
            with Horizontal(classes="row"):
                yield Label("Name", classes="label")
                yield Input(id="feedback-name")
            with Horizontal(classes="row"):
                yield Label("Email", classes="label")
                yield Input(id="feedback-email", placeholder="you@example.com")
            yield TextArea("", id="feedback-message")
            with Horizontal(id="feedback-actions"):
                yield Button("Send (^S)", id="feedback-send", variant="success")
                yield Button("Close (Esc)", id="feedback-close", variant="error")

    def on_mount(self) -> None:
        self.set_focus(self.query_one("#feedback-name", Input))

    async def action_submit(self) -> None:
        button = self.query_one("#feedback-send", Button)
        if button.disabled:
            return
        button.disabled = True
        try:
            result = await self.controller.submit_feedback(
                self.query_one("#feedback-name", Input).value,
                self.query_one("#feedback-email", Input).value,
                self.query_one("#feedback-message", TextArea).text,
            )
        finally:
            button.disabled = False

        if not result.ok:
            self.notify(result.message, severity="error")
            return
        self.app.notify(result.message, severity="information")
        self.dismiss(None)

    def action_close(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#feedback-send")
    async def on_send_pressed(self) -> None:
        await self.action_submit()

    @on(Button.Pressed, "#feedback-close")
    def on_close_pressed(self) -> None:
        self.action_close()
