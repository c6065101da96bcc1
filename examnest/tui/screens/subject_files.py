from __future__ import annotations

from collections.abc import Callable

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Label, Static

from examnest.runtime.library_controller import LibraryController
from examnest.tui.common import _fill_files_table, _row_key_value
from examnest.tui.screens.document_viewer import open_document


class SubjectFilesScreen(ModalScreen[None]):
    CSS = """
    SubjectFilesScreen {
      align: center middle;
    }

    #files-root {
      width: 90%;
      height: 85%;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }

    #files-title {
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }

    #files-subtitle {
      color: $text-muted;
      height: auto;
      margin-bottom: 1;
    }

    #files-table {
      height: 1fr;
    }

    #files-actions {
      height: 3;
      align-horizontal: left;
      padding-top: 1;
    }

    #files-actions Button {
      margin-right: 1;
      min-width: 14;
    }
    """

    BINDINGS = [
        Binding("enter", "open_selected", "Open"),
        Binding("escape", "close", "Close"),
    ]

    def __init__(self, *, controller: LibraryController):
        super().__init__()
        self.controller = controller
        self.subject = str(controller.state.selected_subject)
        self.category = str(controller.state.selected_category)
        self.selected_file_id: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        with Container(id="files-root"):
            yield Label(f"{self.subject} - {self.category}", id="files-title", markup=False)
            yield Static("", id="files-subtitle")
            yield DataTable(id="files-table", cursor_type="row")
            with Horizontal(id="files-actions"):
                yield Button("Open (Enter)", id="files-open", variant="primary")
                yield Button("Close (Esc)", id="files-close", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#files-table", DataTable)
        table.add_columns("Name", "Uploaded")
        self._render_files()
        self._unsubscribe = self.controller.subscribe(lambda _: self._render_files())
        self.set_focus(table)

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()

    def _render_files(self) -> None:
        files = self.controller.selected_files
        count = _fill_files_table(self.query_one("#files-table", DataTable), files, full=False)
        subtitle = self.query_one("#files-subtitle", Static)
        if count:
            subtitle.update(f"{count} file(s). Enter opens the highlighted file.")
            if self.selected_file_id is None:
                self.selected_file_id = files[0].id
        else:
            self.selected_file_id = None
            subtitle.update("No files uploaded yet for this subject.")

    def action_open_selected(self) -> None:
        if not self.selected_file_id:
            self.notify("Select a file first", severity="warning")
            return
        open_document(self.app, self.controller, self.selected_file_id)

    def action_close(self) -> None:
        self.dismiss(None)

    @on(DataTable.RowHighlighted, "#files-table")
    def on_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        file_id = _row_key_value(event.row_key)
        if file_id:
            self.selected_file_id = file_id

    @on(DataTable.RowSelected, "#files-table")
    def on_row_selected(self, event: DataTable.RowSelected) -> None:
        file_id = _row_key_value(event.row_key)
        if file_id:
            self.selected_file_id = file_id
            self.action_open_selected()

    @on(Button.Pressed, "#files-open")
    def on_open_pressed(self) -> None:
        self.action_open_selected()

    @on(Button.Pressed, "#files-close")
    def on_close_pressed(self) -> None:
        self.action_close()
