from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable

from textual import on
from textual.app import App, ComposeResult
from textual.screen import Screen
from textual.binding import Binding
from textual.containers import Grid, Horizontal, Vertical
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Static

from examnest.core.catalog import SEARCH_MIN_QUERY_LENGTH
from examnest.core.models import AcademicFile, ActionResult, TaxonomyKind
from examnest.core.search import count_by, files_for
from examnest.core.view_state import ViewMode
from examnest.runtime.library_controller import AdminRequired, LibraryController
from examnest.tui.common import FILE_COLUMNS, _fill_files_table, _row_key_value
from examnest.tui.screens import (
    ConfirmScreen,
    FeedbackScreen,
    SubjectFilesScreen,
    TaxonomyEditorScreen,
    TextPromptScreen,
    UploadFormScreen,
    open_document,
    report_result,
)


class LibraryScreen(Screen[None]):
    CSS = """
    LibraryScreen {
      layout: vertical;
    }

    .hidden {
      display: none;
    }

    #nav-bar {
      height: 3;
      margin: 0 1;
    }

    #nav-bar Button {
      margin-right: 1;
      min-width: 12;
    }

    #search {
      width: 1fr;
    }

    #error-bar {
      height: 3;
      margin: 0 1;
      background: $error 20%;
    }

    #error-text {
      width: 1fr;
      padding: 1 1 0 1;
      color: $error;
    }

    #search-pane {
      height: auto;
      max-height: 12;
      border: solid $secondary;
      margin: 0 1;
      padding: 0 1;
    }

    #search-table {
      height: auto;
      max-height: 10;
    }

    .pane {
      height: 1fr;
      border: solid $accent;
      margin: 0 1 1 1;
      padding: 0 1;
    }

    .pane-title {
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }

    .help {
      color: $text-muted;
      height: auto;
    }

    .tiles {
      grid-size: 4;
      grid-gutter: 1 2;
      grid-rows: 3;
      height: auto;
      margin-top: 1;
    }

    .tile {
      width: 100%;
    }

    #recent-table,
    #admin-files {
      height: 1fr;
      margin-top: 1;
    }

    #login-box {
      width: 60;
      height: auto;
      border: round $secondary;
      padding: 0 1;
      margin-top: 1;
    }

    #login-box Input {
      margin-bottom: 1;
    }

    .actions {
      height: 3;
      align-horizontal: left;
      padding-top: 1;
    }

    .actions Button {
      margin-right: 1;
      min-width: 14;
    }
    """

    BINDINGS = [
        Binding("h", "go_home", "Home"),
        Binding("a", "go_admin", "Admin"),
        Binding("f", "feedback", "Feedback"),
        Binding("slash", "focus_search", "Search"),
        Binding("r", "manual_refresh", "Refresh"),
        Binding("q", "app.quit", "Quit"),
    ]

    def __init__(self, controller: LibraryController):
        super().__init__()
        self.controller = controller
        self.search_query = ""
        self.selected_admin_file_id: str | None = None
        self._rendered_categories: tuple[tuple[str, int], ...] | None = None
        self._rendered_subjects: tuple[tuple[str, int], ...] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal(id="error-bar", classes="hidden"):
            yield Static("", id="error-text", markup=False)
            yield Button("Retry (R)", id="retry", variant="warning")
        with Horizontal(id="nav-bar"):
            yield Button("Home (H)", id="nav-home")
            yield Button("Admin (A)", id="nav-admin")
            yield Button("Feedback (F)", id="nav-feedback")
            yield Input(id="search", placeholder="Search notes, papers, subjects... ( / )")
        with Vertical(id="search-pane", classes="hidden"):
            yield Static("", id="search-summary", classes="help")
            yield DataTable(id="search-table", cursor_type="row")

        with Vertical(id="home-pane", classes="pane"):
            yield Label("Categories", classes="pane-title")
            yield Static("", id="loading", classes="help")
            yield Grid(id="category-tiles", classes="tiles")
            yield Label("Recently Uploaded", classes="pane-title")
            yield DataTable(id="recent-table", cursor_type="row")

        with Vertical(id="subjects-pane", classes="pane hidden"):
            yield Label("", id="subjects-title", classes="pane-title")
            yield Static("Pick a subject to see its files.", classes="help")
            yield Grid(id="subject-tiles", classes="tiles")
            with Horizontal(classes="actions"):
                yield Button("Back to Categories", id="subjects-back")

        with Vertical(id="admin-pane", classes="pane hidden"):
            yield Label("Admin", classes="pane-title")
            with Vertical(id="login-box"):
                yield Static("Sign in to manage resources.", classes="help")
                yield Input(id="login-username", placeholder="Username")
                yield Input(id="login-password", placeholder="Password", password=True)
                yield Button("Login", id="login", variant="primary")
            with Vertical(id="admin-dashboard", classes="hidden"):
                yield Static("", id="admin-summary", markup=False)
                yield DataTable(id="admin-files", cursor_type="row")
                with Horizontal(classes="actions"):
                    yield Button("Upload", id="admin-upload", variant="success")
                    yield Button("Rename", id="admin-rename", variant="primary")
                    yield Button("Delete", id="admin-delete", variant="warning")
                    yield Button("Subjects & Categories", id="admin-taxonomy")
                    yield Button("Logout", id="admin-logout", variant="error")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#search-table", DataTable).add_columns(*FILE_COLUMNS)
        self.query_one("#recent-table", DataTable).add_columns(*FILE_COLUMNS)
        self.query_one("#admin-files", DataTable).add_columns(*FILE_COLUMNS)

        self._unsubscribe = self.controller.subscribe(lambda _: self._render_all())
        self.controller.load_snapshot()
        self._render_all()
        self.run_worker(self.controller.refresh(), group="fetch")

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()

    # -- rendering ----------------------------------------------------------

    def _render_all(self) -> None:
        mode = self.controller.state.mode
        self.query_one("#home-pane").set_class(mode not in {ViewMode.HOME, ViewMode.FILE_VIEW}, "hidden")
        self.query_one("#subjects-pane").set_class(mode != ViewMode.SUBJECT_LIST, "hidden")
        self.query_one("#admin-pane").set_class(mode != ViewMode.ADMIN, "hidden")

        self._render_status()
        self._render_search()
        self._render_categories()
        self._render_subjects()
        self._fill_table("#recent-table", self.controller.recent_files)
        self._render_admin()

    def _fill_table(self, selector: str, files: Iterable[AcademicFile]) -> None:
        _fill_files_table(self.query_one(selector, DataTable), files)

    def _render_status(self) -> None:
        controller = self.controller
        error_bar = self.query_one("#error-bar")
        error_bar.set_class(controller.fetch_error is None, "hidden")
        self.query_one("#error-text", Static).update(controller.fetch_error or "")
        self.query_one("#retry", Button).disabled = controller.loading

        loading = self.query_one("#loading", Static)
        if controller.show_spinner:
            loading.update("Loading resources...")
        elif controller.showing_snapshot:
            loading.update("Showing saved copy while the library refreshes.")
        else:
            loading.update(f"{len(controller.files)} resource(s) available.")

        if controller.loading:
            self.app.sub_title = "Refreshing..."
        elif controller.fetch_error:
            self.app.sub_title = "Offline copy"
        else:
            self.app.sub_title = ""

    def _render_search(self) -> None:
        pane = self.query_one("#search-pane")
        query = self.search_query.strip()
        if len(query) < SEARCH_MIN_QUERY_LENGTH:
            pane.add_class("hidden")
            return

        results = self.controller.search(query)
        self._fill_table("#search-table", results)
        summary = f"{len(results)} match(es) for '{query}'" if results else f"No matches for '{query}'"
        self.query_one("#search-summary", Static).update(summary)
        pane.remove_class("hidden")

    async def _replace_tiles(self, selector: str, tiles: list[Button]) -> None:
        grid = self.query_one(selector, Grid)
        await grid.remove_children()
        if tiles:
            await grid.mount(*tiles)

    def _render_categories(self) -> None:
        counts = count_by(self.controller.files, TaxonomyKind.CATEGORY.file_column)
        entries = tuple((label, counts.get(label, 0)) for label in self.controller.taxonomy.categories)
        if entries == self._rendered_categories:
            return
        self._rendered_categories = entries
        tiles = [
            Button(f"{label} ({count})", name=label, classes="tile category-tile", variant="primary")
            for label, count in entries
        ]
        self.call_later(self._replace_tiles, "#category-tiles", tiles)

    def _render_subjects(self) -> None:
        category = self.controller.state.selected_category
        self.query_one("#subjects-title", Label).update(category or "")
        if category is None:
            return

        entries = tuple(
            (label, len(files_for(self.controller.files, subject=label, category=category)))
            for label in self.controller.taxonomy.subjects
        )
        if entries == self._rendered_subjects:
            return
        self._rendered_subjects = entries
        tiles = [Button(f"{label} ({count})", name=label, classes="tile subject-tile") for label, count in entries]
        self.call_later(self._replace_tiles, "#subject-tiles", tiles)

    def _render_admin(self) -> None:
        controller = self.controller
        logged_in = controller.state.admin_logged_in
        self.query_one("#login-box").set_class(logged_in, "hidden")
        self.query_one("#admin-dashboard").set_class(not logged_in, "hidden")
        if not logged_in:
            return

        by_category = count_by(controller.files, TaxonomyKind.CATEGORY.file_column)
        breakdown = ", ".join(f"{label}: {count}" for label, count in sorted(by_category.items()))
        summary = f"Total resources: {len(controller.files)}"
        if breakdown:
            summary += f" ({breakdown})"
        self.query_one("#admin-summary", Static).update(summary)

        table = self.query_one("#admin-files", DataTable)
        _fill_files_table(table, controller.files)
        if self.selected_admin_file_id and controller.find_file(self.selected_admin_file_id) is None:
            self.selected_admin_file_id = None
        if self.selected_admin_file_id:
            table.move_cursor(row=table.get_row_index(self.selected_admin_file_id))

        self.query_one("#admin-upload", Button).disabled = controller.is_busy("upload")
        self.query_one("#admin-rename", Button).disabled = controller.is_busy("rename")
        self.query_one("#admin-delete", Button).disabled = controller.is_busy("delete")

    # -- navigation ---------------------------------------------------------

    def action_go_home(self) -> None:
        self.controller.go_home()

    def action_go_admin(self) -> None:
        self.controller.go_admin()

    def action_feedback(self) -> None:
        self.app.push_screen(FeedbackScreen(controller=self.controller))

    def action_focus_search(self) -> None:
        self.set_focus(self.query_one("#search", Input))

    def action_manual_refresh(self) -> None:
        self.run_worker(self.controller.refresh(), group="fetch")

    def _open_subject(self, subject: str) -> None:
        self.controller.select_subject(subject)
        if not self.controller.state.file_list_open:
            return

        def _on_closed(_: None) -> None:
            self.controller.close_file_list()

        self.app.push_screen(SubjectFilesScreen(controller=self.controller), callback=_on_closed)

    @on(Button.Pressed, ".category-tile")
    def on_category_pressed(self, event: Button.Pressed) -> None:
        if event.button.name:
            self.controller.select_category(event.button.name)

    @on(Button.Pressed, ".subject-tile")
    def on_subject_pressed(self, event: Button.Pressed) -> None:
        if event.button.name:
            self._open_subject(event.button.name)

    @on(Button.Pressed, "#subjects-back")
    def on_back_pressed(self) -> None:
        self.action_go_home()

    @on(Button.Pressed, "#nav-home")
    def on_home_pressed(self) -> None:
        self.action_go_home()

    @on(Button.Pressed, "#nav-admin")
    def on_admin_pressed(self) -> None:
        self.action_go_admin()

    @on(Button.Pressed, "#nav-feedback")
    def on_feedback_pressed(self) -> None:
        self.action_feedback()

    @on(Button.Pressed, "#retry")
    def on_retry_pressed(self) -> None:
        self.action_manual_refresh()

    @on(Input.Changed, "#search")
    def on_search_changed(self, event: Input.Changed) -> None:
        self.search_query = event.value
        self._render_search()

    @on(DataTable.RowSelected, "#search-table")
    @on(DataTable.RowSelected, "#recent-table")
    def on_file_selected(self, event: DataTable.RowSelected) -> None:
        file_id = _row_key_value(event.row_key)
        if file_id:
            open_document(self.app, self.controller, file_id)

    # -- admin --------------------------------------------------------------

    @on(Input.Submitted, "#login-password")
    @on(Button.Pressed, "#login")
    def on_login(self) -> None:
        username = self.query_one("#login-username", Input)
        password = self.query_one("#login-password", Input)
        if not self.controller.login(username.value, password.value):
            self.notify("Invalid credentials.", severity="error")
            password.value = ""
            return
        username.value = ""
        password.value = ""
        self.notify("Logged in as admin", severity="information")

    @on(Button.Pressed, "#admin-logout")
    def on_logout_pressed(self) -> None:
        self.controller.logout()

    @on(DataTable.RowHighlighted, "#admin-files")
    def on_admin_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        file_id = _row_key_value(event.row_key)
        if file_id:
            self.selected_admin_file_id = file_id

    async def _run_admin(self, operation: Awaitable[ActionResult]) -> None:
        try:
            result = await operation
        except AdminRequired:
            self.notify("Log in as admin first", severity="error")
            return
        report_result(self.app, result)

    @on(Button.Pressed, "#admin-upload")
    def on_upload_pressed(self) -> None:
        self.run_worker(self._upload_flow(), group="admin-upload")

    @on(Button.Pressed, "#admin-rename")
    def on_rename_pressed(self) -> None:
        self.run_worker(self._rename_flow(), group="admin-rename")

    @on(Button.Pressed, "#admin-delete")
    def on_delete_pressed(self) -> None:
        self.run_worker(self._delete_flow(), group="admin-delete")

    @on(Button.Pressed, "#admin-taxonomy")
    def on_taxonomy_pressed(self) -> None:
        self.app.push_screen(TaxonomyEditorScreen(controller=self.controller))

    async def _upload_flow(self) -> None:
        form = UploadFormScreen(taxonomy=self.controller.taxonomy, max_upload_mb=self.controller.settings.max_upload_mb)
        request = await self.app.push_screen_wait(form)
        if request is None:
            return
        self.notify(f"Uploading {request.path}...", severity="information")
        await self._run_admin(self.controller.upload(request))

    async def _rename_flow(self) -> None:
        file = self.controller.find_file(self.selected_admin_file_id)
        if file is None:
            self.notify("Select a file first", severity="warning")
            return
        new_name = await self.app.push_screen_wait(
            TextPromptScreen(f"Rename '{file.file_name}'", value=file.file_name)
        )
        if new_name is None or new_name.strip() == file.file_name:
            return
        await self._run_admin(self.controller.rename_file(file.id, new_name))

    async def _delete_flow(self) -> None:
        file = self.controller.find_file(self.selected_admin_file_id)
        if file is None:
            self.notify("Select a file first", severity="warning")
            return
        confirmed = await self.app.push_screen_wait(
            ConfirmScreen("Delete file", f"Delete '{file.file_name}' ({file.subject}, {file.category})?")
        )
        if not confirmed:
            return
        await self._run_admin(self.controller.delete_file(file.id))


class ExamNestApp(App[None]):
    TITLE = "Exam Nest"

    def __init__(self, controller: LibraryController):
        super().__init__()
        self.controller = controller

    def get_default_screen(self) -> Screen:
        return LibraryScreen(self.controller)

    def on_unmount(self) -> None:
        self.controller.close()


def run_tui(controller: LibraryController) -> None:
    app = ExamNestApp(controller)
    app.run()
