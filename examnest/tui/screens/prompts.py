from __future__ import annotations

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Static

from examnest.core.models import ActionResult
from examnest.tui.common import ALERT_TITLES


PROMPT_CSS = """
    {screen} {{
      align: center middle;
    }}

    .prompt-root {{
      width: 72;
      height: auto;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }}

    .prompt-title {{
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }}

    .prompt-body {{
      height: auto;
      margin: 1 0;
    }}

    .prompt-actions {{
      height: 3;
      align-horizontal: right;
      margin-bottom: 1;
    }}

    .prompt-actions Button {{
      margin-left: 1;
      min-width: 12;
    }}
"""


class TextPromptScreen(ModalScreen[str | None]):
    CSS = PROMPT_CSS.format(screen="TextPromptScreen")

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, *, value: str = "", placeholder: str = ""):
        super().__init__()
        self.prompt_title = title
        self.initial_value = value
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Container(classes="prompt-root"):
            yield Label(self.prompt_title, classes="prompt-title", markup=False)
            yield Input(value=self.initial_value, placeholder=self.placeholder, id="prompt-input", classes="prompt-body")
            with Horizontal(classes="prompt-actions"):
                yield Button("Save (Enter)", id="prompt-ok", variant="primary")
                yield Button("Cancel (Esc)", id="prompt-cancel")

    def on_mount(self) -> None:
        self.set_focus(self.query_one("#prompt-input", Input))

    def action_cancel(self) -> None:
        self.dismiss(None)

    @on(Input.Submitted, "#prompt-input")
    @on(Button.Pressed, "#prompt-ok")
    def on_ok(self) -> None:
        self.dismiss(self.query_one("#prompt-input", Input).value)

    @on(Button.Pressed, "#prompt-cancel")
    def on_cancel_pressed(self) -> None:
        self.action_cancel()


class ConfirmScreen(ModalScreen[bool]):
    CSS = PROMPT_CSS.format(screen="ConfirmScreen")

    BINDINGS = [
        Binding("y", "confirm", "Yes"),
        Binding("n", "cancel", "No"),
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, title: str, message: str):
        super().__init__()
        self.prompt_title = title
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(classes="prompt-root"):
            yield Label(self.prompt_title, classes="prompt-title", markup=False)
            yield Static(self.message, classes="prompt-body", markup=False)
            with Horizontal(classes="prompt-actions"):
                yield Button("Yes (Y)", id="confirm-yes", variant="error")
                yield Button("No (N)", id="confirm-no")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)

    @on(Button.Pressed, "#confirm-yes")
    def on_yes_pressed(self) -> None:
        self.action_confirm()

    @on(Button.Pressed, "#confirm-no")
    def on_no_pressed(self) -> None:
        self.action_cancel()


class AlertScreen(ModalScreen[None]):
    """Blocks the app until the message is acknowledged."""

    CSS = PROMPT_CSS.format(screen="AlertScreen")

    BINDINGS = [
        Binding("enter", "close", "OK"),
        Binding("escape", "close", "OK"),
    ]

    def __init__(self, title: str, message: str):
        super().__init__()
        self.alert_title = title
        self.message = message

    def compose(self) -> ComposeResult:
        with Container(classes="prompt-root"):
            yield Label(self.alert_title, classes="prompt-title", markup=False)
            yield Static(self.message, classes="prompt-body", markup=False)
            with Horizontal(classes="prompt-actions"):
                yield Button("OK (Enter)", id="alert-ok", variant="primary")

    def action_close(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#alert-ok")
    def on_ok_pressed(self) -> None:
        self.action_close()


def report_result(app: App, result: ActionResult) -> None:
    """Success becomes a toast, failure a blocking alert."""
    if result.ok:
        app.notify(result.message, severity="information")
        return
    title = ALERT_TITLES.get(result.kind, "Action failed") if result.kind else "Action failed"
    app.push_screen(AlertScreen(title, result.message))
