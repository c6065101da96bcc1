import asyncio
import threading

from conftest import PDF_BYTES, FakeBackend
from textual.app import App

from examnest.core.config import Settings
from examnest.core.pdf_tools import PDFDescriptor
from examnest.runtime.library_controller import LibraryController
from examnest.runtime.snapshot_cache import SnapshotCache
from examnest.tui.screens import document_viewer
from examnest.tui.screens.document_viewer import DocumentViewerScreen


def test_viewer_mounts_before_the_download_finishes(
    settings: Settings, backend: FakeBackend, cache: SnapshotCache, monkeypatch
) -> None:
    release = threading.Event()
    backend.hooks["download"] = lambda: release.wait(timeout=5)
    monkeypatch.setattr(
        document_viewer,
        "describe_pdf",
        lambda data: PDFDescriptor(size_bytes=len(data), page_count=3),
    )
    monkeypatch.setattr(document_viewer, "extract_page_text", lambda data, index: f"page {index + 1}")
    controller = LibraryController(settings, backend, cache)
    screen = DocumentViewerScreen(controller=controller, file=backend.files[0])
    while_downloading: dict[str, object] = {}

    async def _scenario() -> None:
        app = App()
        async with app.run_test() as pilot:
            try:
                await app.push_screen(screen)
                await pilot.pause()
                while_downloading["active_screen"] = app.screen
                while_downloading["data"] = screen.data
            finally:
                release.set()
            await app.workers.wait_for_complete()
            await pilot.pause()

    asyncio.run(_scenario())

    assert while_downloading == {"active_screen": screen, "data": None}
    assert screen.data == PDF_BYTES
    assert screen.page_count == 3
    assert backend.count("download") == 1
