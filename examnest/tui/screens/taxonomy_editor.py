from __future__ import annotations

from collections.abc import Awaitable, Callable

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Label, RadioButton, RadioSet, Static

from examnest.core.models import ActionResult, TaxonomyKind, TaxonomySource
from examnest.core.search import count_by
from examnest.runtime.library_controller import AdminRequired, LibraryController
from examnest.tui.common import _row_key_value
from examnest.tui.screens.prompts import ConfirmScreen, TextPromptScreen, report_result


class TaxonomyEditorScreen(ModalScreen[None]):
    CSS = """
    TaxonomyEditorScreen {
      align: center middle;
    }

    #taxonomy-root {
      width: 90;
      height: 85%;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }

    #taxonomy-title {
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }

    #taxonomy-kind {
      height: auto;
      margin-top: 1;
    }

    #taxonomy-source {
      color: $text-muted;
      height: auto;
      margin: 1 0;
    }

    #taxonomy-table {
      height: 1fr;
    }

    #taxonomy-actions {
      height: 3;
      align-horizontal: left;
      padding-top: 1;
    }

    #taxonomy-actions Button {
      margin-right: 1;
      min-width: 12;
    }
    """

    BINDINGS = [
        Binding("a", "add", "Add"),
        Binding("e", "rename", "Rename"),
        Binding("x", "delete", "Delete"),
        Binding("escape", "close", "Close"),
    ]

    def __init__(self, *, controller: LibraryController, kind: TaxonomyKind = TaxonomyKind.SUBJECT):
        super().__init__()
        self.controller = controller
        self.kind = kind
        self.selected_label: str | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        with Container(id="taxonomy-root"):
            yield Label("Manage Subjects & Categories", id="taxonomy-title")
            with RadioSet(id="taxonomy-kind"):
                yield RadioButton("Subjects", id="kind-subject", value=self.kind == TaxonomyKind.SUBJECT)
                yield RadioButton("Categories", id="kind-category", value=self.kind == TaxonomyKind.CATEGORY)
            yield Static("", id="taxonomy-source")
            yield DataTable(id="taxonomy-table", cursor_type="row")
            with Horizontal(id="taxonomy-actions"):
                yield Button("Add (A)", id="taxonomy-add", variant="success")
                yield Button("Rename (E)", id="taxonomy-rename", variant="primary")
                yield Button("Delete (X)", id="taxonomy-delete", variant="warning")
                yield Button("Close (Esc)", id="taxonomy-close", variant="error")

    def on_mount(self) -> None:
        self.query_one("#taxonomy-table", DataTable).add_columns("Name", "Files")
        self._render_labels()
        self._unsubscribe = self.controller.subscribe(lambda _: self._render_labels())

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()

    def _render_labels(self) -> None:
        labels = self.controller.taxonomy.labels(self.kind)
        counts = count_by(self.controller.files, self.kind.file_column)

        table = self.query_one("#taxonomy-table", DataTable)
        table.clear(columns=False)
        for label in labels:
            table.add_row(label, str(counts.get(label, 0)), key=label)

        if self.selected_label not in labels:
            self.selected_label = labels[0] if labels else None

        source = self.query_one("#taxonomy-source", Static)
        if self.controller.taxonomy.source(self.kind) == TaxonomySource.DEFAULT:
            source.update(
                f"Showing built-in {self.kind.label.lower()} defaults. "
                "Adding an entry creates the remote list, which then replaces these."
            )
        else:
            source.update(f"{len(labels)} {self.kind.label.lower()}(s) from the backend.")

        busy = any(
            self.controller.is_busy(f"{action}_{self.kind.value}") for action in ("add", "rename", "delete")
        )
        for button_id in ("#taxonomy-add", "#taxonomy-rename", "#taxonomy-delete"):
            self.query_one(button_id, Button).disabled = busy

    async def _run(self, operation: Awaitable[ActionResult]) -> None:
        try:
            result = await operation
        except AdminRequired:
            self.notify("Log in as admin first", severity="error")
            return
        report_result(self.app, result)

    def action_add(self) -> None:
        self.run_worker(self._add_flow(), group="taxonomy-edit")

    def action_rename(self) -> None:
        if not self.selected_label:
            self.notify(f"Select a {self.kind.label.lower()} first", severity="warning")
            return
        self.run_worker(self._rename_flow(self.kind, self.selected_label), group="taxonomy-edit")

    def action_delete(self) -> None:
        if not self.selected_label:
            self.notify(f"Select a {self.kind.label.lower()} first", severity="warning")
            return
        self.run_worker(self._delete_flow(self.kind, self.selected_label), group="taxonomy-edit")

    async def _add_flow(self) -> None:
        kind = self.kind
        name = await self.app.push_screen_wait(TextPromptScreen(f"New {kind.label.lower()}", placeholder="Name"))
        if name is None:
            return
        await self._run(self.controller.add_taxonomy(kind, name))

    async def _rename_flow(self, kind: TaxonomyKind, old_name: str) -> None:
        new_name = await self.app.push_screen_wait(
            TextPromptScreen(f"Rename {kind.label.lower()} '{old_name}'", value=old_name)
        )
        if new_name is None or new_name.strip() == old_name:
            return
        await self._run(self.controller.rename_taxonomy(kind, old_name, new_name))

    async def _delete_flow(self, kind: TaxonomyKind, name: str) -> None:
        in_use = count_by(self.controller.files, kind.file_column).get(name, 0)
        message = f"Delete {kind.label.lower()} '{name}'?"
        if in_use:
            message += f" {in_use} file(s) keep this label and will no longer appear under a tile."
        if not await self.app.push_screen_wait(ConfirmScreen(f"Delete {kind.label}", message)):
            return
        await self._run(self.controller.delete_taxonomy(kind, name))

    def action_close(self) -> None:
        self.dismiss(None)

    @on(RadioSet.Changed, "#taxonomy-kind")
    def on_kind_changed(self, event: RadioSet.Changed) -> None:
        self.kind = TaxonomyKind.CATEGORY if event.pressed.id == "kind-category" else TaxonomyKind.SUBJECT
        self.selected_label = None
        self._render_labels()

    @on(DataTable.RowHighlighted, "#taxonomy-table")
    def on_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        label = _row_key_value(event.row_key)
        if label:
            self.selected_label = label

    @on(Button.Pressed, "#taxonomy-add")
    def on_add_pressed(self) -> None:
        self.action_add()

    @on(Button.Pressed, "#taxonomy-rename")
    def on_rename_pressed(self) -> None:
        self.action_rename()

    @on(Button.Pressed, "#taxonomy-delete")
    def on_delete_pressed(self) -> None:
        self.action_delete()

    @on(Button.Pressed, "#taxonomy-close")
    def on_close_pressed(self) -> None:
        self.action_close()
