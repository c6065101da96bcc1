from __future__ import annotations

from pathlib import Path

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, Static

from examnest.core.catalog import MAX_UPLOAD_MB
from examnest.core.models import Taxonomy, TaxonomyKind, UploadRequest
from examnest.core.uploads import default_display_name


class UploadFormScreen(ModalScreen[UploadRequest | None]):
    CSS = """
    UploadFormScreen {
      align: center middle;
    }

    #upload-root {
      width: 90;
      height: auto;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }

    #upload-title {
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
      width: 16;
      color: $text-muted;
      padding-top: 1;
    }

    .row Input,
    .row Select {
      width: 1fr;
    }

    #upload-actions {
      height: 3;
      align-horizontal: right;
      margin-bottom: 1;
    }

    #upload-actions Button {
      margin-left: 1;
      min-width: 14;
    }
    """

    BINDINGS = [
        Binding("ctrl+s", "submit", "Upload"),
        Binding("escape", "cancel", "Cancel"),
    ]

    def __init__(self, *, taxonomy: Taxonomy, max_upload_mb: float = MAX_UPLOAD_MB):
        super().__init__()
        self.taxonomy = taxonomy
        self.max_upload_mb = max_upload_mb

    def _options(self, kind: TaxonomyKind) -> list[tuple[str, str]]:
        return [(label, label) for label in self.taxonomy.labels(kind)]

    def compose(self) -> ComposeResult:
        subject_options = self._options(TaxonomyKind.SUBJECT)
        category_options = self._options(TaxonomyKind.CATEGORY)

        with Container(id="upload-root"):
            yield Label("Upload Resource", id="upload-title")
            yield Static(f"PDF files only, up to {self.max_upload_mb:g} MB.", classes="help")
            with Horizontal(classes="row"):
                yield Label("PDF path", classes="label")
                yield Input(id="upload-path", placeholder="~/Downloads/unit-1-notes.pdf")
            with Horizontal(classes="row"):
                yield Label("Display name", classes="label")
                yield Input(id="upload-name", placeholder="Defaults to the file name")
            with Horizontal(classes="row"):
                yield Label("Subject", classes="label")
                yield Select(
                    options=subject_options,
                    value=subject_options[0][1] if subject_options else Select.BLANK,
                    allow_blank=not subject_options,
                    id="upload-subject",
                )
            with Horizontal(classes="row"):
                yield Label("Category", classes="label")
                yield Select(
                    options=category_options,
                    value=category_options[0][1] if category_options else Select.BLANK,
                    allow_blank=not category_options,
                    id="upload-category",
                )
            with Horizontal(id="upload-actions"):
                yield Button("Upload (^S)", id="upload-submit", variant="success")
                yield Button("Cancel (Esc)", id="upload-cancel", variant="error")

    def on_mount(self) -> None:
        self.set_focus(self.query_one("#upload-path", Input))

    def _selected(self, widget_id: str) -> str:
        value = self.query_one(widget_id, Select).value
        return "" if value is Select.BLANK else str(value)

    def action_submit(self) -> None:
        path = self.query_one("#upload-path", Input).value.strip()
        if not path:
            self.notify("Please select a file and enter a name.", severity="error")
            return

        subject = self._selected("#upload-subject")
        category = self._selected("#upload-category")
        if not subject or not category:
            self.notify("Subject and category are required.", severity="error")
            return

        display_name = self.query_one("#upload-name", Input).value.strip() or None
        self.dismiss(UploadRequest(path=path, subject=subject, category=category, display_name=display_name))

    def action_cancel(self) -> None:
        self.dismiss(None)

    @on(Input.Changed, "#upload-path")
    def on_path_changed(self, event: Input.Changed) -> None:
        name_input = self.query_one("#upload-name", Input)
        file_name = Path(event.value.strip()).name
        name_input.placeholder = default_display_name(file_name) if file_name else "Defaults to the file name"

    @on(Input.Submitted)
    def on_input_submitted(self) -> None:
        self.action_submit()

    @on(Button.Pressed, "#upload-submit")
    def on_submit_pressed(self) -> None:
        self.action_submit()

    @on(Button.Pressed, "#upload-cancel")
    def on_cancel_pressed(self) -> None:
        self.action_cancel()
