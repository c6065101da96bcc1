from __future__ import annotations

import asyncio
import webbrowser

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static

from examnest.core.models import AcademicFile
from examnest.core.pdf_tools import describe_pdf, extract_page_text
from examnest.runtime.gateway import GatewayError
from examnest.runtime.library_controller import LibraryController
from examnest.tui.common import _format_size


class DocumentViewerScreen(ModalScreen[None]):
    CSS = """
    DocumentViewerScreen {
      align: center middle;
    }

    #viewer-root {
      width: 98%;
      height: 98%;
      border: heavy $accent;
      background: $panel;
      padding: 0 1;
    }

    #viewer-title {
      text-style: bold;
      color: $accent;
      height: auto;
      margin-top: 1;
    }

    #viewer-meta {
      color: $text-muted;
      height: auto;
      margin-bottom: 1;
    }

    #viewer-content {
      height: 1fr;
      border: round $secondary;
      padding: 0 1;
      overflow: auto;
    }

    #viewer-help {
      color: $text-muted;
      height: auto;
      margin-top: 1;
    }

    #viewer-actions {
      height: 3;
      align-horizontal: left;
      padding-top: 1;
    }

    #viewer-actions Button {
      margin-right: 1;
      min-width: 14;
    }
    """

    BINDINGS = [
        Binding("left", "prev_page", "Prev"),
        Binding("right", "next_page", "Next"),
        Binding("up", "scroll_up", "Up"),
        Binding("down", "scroll_down", "Down"),
        Binding("d", "download", "Download"),
        Binding("b", "open_browser", "Open in Browser"),
        Binding("l", "copy_link", "Copy Link"),
        Binding("escape", "close", "Close"),
    ]

    def __init__(self, *, controller: LibraryController, file: AcademicFile):
        super().__init__()
        self.controller = controller
        self.file = file
        self.data: bytes | None = None
        self.page_count = 0
        self.current_index = 0

    def compose(self) -> ComposeResult:
        with Container(id="viewer-root"):
            yield Label(self.file.file_name, id="viewer-title", markup=False)
            yield Static("Loading document...", id="viewer-meta", markup=False)
            yield Static("", id="viewer-content", markup=False)
            yield Static(
                "Left/Right switch page | Up/Down scroll | D download | B browser | L copy link | Esc close",
                id="viewer-help",
            )
            with Horizontal(id="viewer-actions"):
                yield Button("Prev (Left)", id="viewer-prev")
                yield Button("Next (Right)", id="viewer-next")
                yield Button("Download (D)", id="viewer-download", variant="success")
                yield Button("Open in Browser (B)", id="viewer-browser")
                yield Button("Copy Link (L)", id="viewer-link")
                yield Button("Close (Esc)", id="viewer-close", variant="error")

    def on_mount(self) -> None:
        self._update_nav_buttons()
        self.run_worker(self._load_document(), group="viewer-load", exclusive=True)

    def _meta_prefix(self) -> str:
        return f"{self.file.subject} | {self.file.category} | uploaded {self.file.upload_date}"

    async def _load_document(self) -> None:
        meta = self.query_one("#viewer-meta", Static)
        content = self.query_one("#viewer-content", Static)
        try:
            data = await self.controller.fetch_document(self.file)
        except GatewayError as exc:
            meta.update(f"{self._meta_prefix()} | failed to load: {exc.message}")
            content.update("Unable to fetch this document. You can still open it in the browser (B).")
            return

        try:
            descriptor = await asyncio.to_thread(describe_pdf, data)
        except ValueError as exc:
            meta.update(f"{self._meta_prefix()} | {exc}")
            content.update("This file could not be read as a PDF.")
            return

        self.data = data
        self.page_count = descriptor.page_count
        self.current_index = 0
        await self._load_current_page()

    async def _load_current_page(self) -> None:
        if self.data is None or self.page_count <= 0:
            self._update_nav_buttons()
            return

        content = self.query_one("#viewer-content", Static)
        try:
            text = await asyncio.to_thread(extract_page_text, self.data, self.current_index)
        except (IndexError, ValueError) as exc:
            text = f"Could not extract text: {exc}"

        self.query_one("#viewer-meta", Static).update(
            f"{self._meta_prefix()} | page {self.current_index + 1}/{self.page_count}"
            f" | {_format_size(len(self.data))}"
        )
        content.update(text or "<no extractable text on this page>")
        content.scroll_home(animate=False)
        self._update_nav_buttons()

    def _update_nav_buttons(self) -> None:
        has_pages = self.page_count > 0
        self.query_one("#viewer-prev", Button).disabled = (not has_pages) or self.current_index <= 0
        self.query_one("#viewer-next", Button).disabled = (not has_pages) or self.current_index >= self.page_count - 1

    async def action_prev_page(self) -> None:
        if self.current_index <= 0:
            return
        self.current_index -= 1
        await self._load_current_page()

    async def action_next_page(self) -> None:
        if self.current_index >= self.page_count - 1:
            return
        self.current_index += 1
        await self._load_current_page()

    def action_scroll_up(self) -> None:
        self.query_one("#viewer-content", Static).scroll_relative(y=-4, animate=False)

    def action_scroll_down(self) -> None:
        self.query_one("#viewer-content", Static).scroll_relative(y=4, animate=False)

    def action_download(self) -> None:
        self.run_worker(self._download(), group="viewer-download", exclusive=True)

    async def _download(self) -> None:
        button = self.query_one("#viewer-download", Button)
        button.disabled = True
        try:
            target = await self.controller.download(self.file)
        except GatewayError as exc:
            self.notify(f"Download failed: {exc.message}", severity="error")
            return
        except OSError as exc:
            self.notify(f"Could not save file: {exc}", severity="error")
            return
        finally:
            button.disabled = False
        self.notify(f"Saved to {target}", severity="information")

    async def action_open_browser(self) -> None:
        opened = await asyncio.to_thread(webbrowser.open, self.file.file_url)
        if not opened:
            self.notify(f"No browser available. Link: {self.file.file_url}", severity="warning")

    def action_copy_link(self) -> None:
        self.app.copy_to_clipboard(self.file.file_url)
        self.notify("Link copied to clipboard", severity="information")

    def action_close(self) -> None:
        self.dismiss(None)

    @on(Button.Pressed, "#viewer-prev")
    async def on_prev_pressed(self) -> None:
        await self.action_prev_page()

    @on(Button.Pressed, "#viewer-next")
    async def on_next_pressed(self) -> None:
        await self.action_next_page()

    @on(Button.Pressed, "#viewer-download")
    def on_download_pressed(self) -> None:
        self.action_download()

    @on(Button.Pressed, "#viewer-browser")
    async def on_browser_pressed(self) -> None:
        await self.action_open_browser()

    @on(Button.Pressed, "#viewer-link")
    def on_link_pressed(self) -> None:
        self.action_copy_link()

    @on(Button.Pressed, "#viewer-close")
    def on_close_pressed(self) -> None:
        self.action_close()


def open_document(app: App, controller: LibraryController, file_id: str) -> None:
    file = controller.find_file(file_id)
    if file is None:
        app.notify("That file is no longer available", severity="warning")
        return

    def _on_closed(_: None) -> None:
        controller.close_viewer()

    controller.open_file(file.id)
    app.push_screen(DocumentViewerScreen(controller=controller, file=file), callback=_on_closed)
