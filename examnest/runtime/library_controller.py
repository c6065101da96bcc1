from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from examnest.core.catalog import FEEDBACK_FAILURE_MESSAGE
from examnest.core.config import Settings
from examnest.core.models import (
    AcademicFile,
    ActionResult,
    FeedbackMessage,
    Taxonomy,
    TaxonomyEntry,
    TaxonomyKind,
    TaxonomySource,
    UploadRequest,
)
from examnest.core.search import files_for, recent_uploads, search_files
from examnest.core.uploads import UploadRejected, download_file_name, prepare_upload
from examnest.core.view_state import (
    Action,
    CloseFileList,
    CloseViewer,
    GoAdmin,
    GoHome,
    LoginSucceeded,
    Logout,
    OpenFile,
    SelectCategory,
    SelectSubject,
    ViewState,
    reduce,
)
from examnest.runtime.gateway import GatewayError
from examnest.runtime.sagas import TaxonomyRenameIncomplete, run_taxonomy_rename, run_upload
from examnest.runtime.snapshot_cache import SnapshotCache


logger = logging.getLogger(__name__)

Listener = Callable[["LibraryController"], None]


class AdminRequired(PermissionError):
    pass


class LibraryGateway(Protocol):
    def list_files(self) -> list[AcademicFile]: ...

    def list_taxonomy(self, kind: TaxonomyKind) -> list[TaxonomyEntry]: ...

    def insert_taxonomy(self, kind: TaxonomyKind, name: str) -> None: ...

    def rename_taxonomy(self, kind: TaxonomyKind, old_name: str, new_name: str) -> None: ...

    def delete_taxonomy(self, kind: TaxonomyKind, name: str) -> None: ...

    def relabel_files(self, kind: TaxonomyKind, old_label: str, new_label: str) -> int: ...

    def delete_file(self, file_id: str) -> None: ...

    def rename_file(self, file_id: str, new_name: str) -> AcademicFile: ...

    def upload_object(self, key: str, data: bytes, content_type: str) -> None: ...

    def public_url(self, key: str) -> str: ...

    def remove_object(self, key: str) -> None: ...

    def insert_file(
        self,
        *,
        subject: str,
        category: str,
        file_name: str,
        file_url: str,
        storage_path: str | None = None,
    ) -> AcademicFile | None: ...

    def submit_feedback(self, message: FeedbackMessage) -> None: ...

    def download(self, url: str) -> bytes: ...


def default_taxonomy() -> Taxonomy:
    return Taxonomy(
        subjects=list(TaxonomyKind.SUBJECT.preset.defaults),
        categories=list(TaxonomyKind.CATEGORY.preset.defaults),
    )


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "input"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class LibraryController:
    """Holds what the library screens show and runs every action they trigger.

    Screens subscribe for change notifications and render from ``state``,
    ``files``, ``taxonomy``, ``loading`` and ``fetch_error``.
    """

    def __init__(self, settings: Settings, gateway: LibraryGateway, cache: SnapshotCache):
        self.settings = settings
        self.gateway = gateway
        self.cache = cache

        self.state = ViewState()
        self.files: list[AcademicFile] = []
        self.taxonomy = default_taxonomy()
        self.loading = True
        self.fetch_error: str | None = None
        self.showing_snapshot = False

        self._listeners: list[Listener] = []
        self._fetch_generation = 0
        self._closed = False
        self._pending: set[str] = set()

    # -- observers ----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        if self._closed:
            return
        for listener in list(self._listeners):
            listener(self)

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    # -- navigation ---------------------------------------------------------

    def dispatch(self, action: Action) -> ViewState:
        next_state = reduce(self.state, action)
        if next_state != self.state:
            self.state = next_state
            self._notify()
        return self.state

    def select_category(self, category: str) -> ViewState:
        return self.dispatch(SelectCategory(category))

    def go_home(self) -> ViewState:
        return self.dispatch(GoHome())

    def go_admin(self) -> ViewState:
        return self.dispatch(GoAdmin())

    def select_subject(self, subject: str) -> ViewState:
        return self.dispatch(SelectSubject(subject))

    def close_file_list(self) -> ViewState:
        return self.dispatch(CloseFileList())

    def open_file(self, file_id: str) -> ViewState:
        return self.dispatch(OpenFile(file_id))

    def close_viewer(self) -> ViewState:
        return self.dispatch(CloseViewer())

    # -- derived views ------------------------------------------------------

    @property
    def show_spinner(self) -> bool:
        return self.loading and not self.files

    @property
    def selected_files(self) -> list[AcademicFile]:
        if not self.state.file_list_open:
            return []
        return files_for(
            self.files,
            subject=str(self.state.selected_subject),
            category=str(self.state.selected_category),
        )

    @property
    def recent_files(self) -> list[AcademicFile]:
        return recent_uploads(self.files)

    @property
    def viewing_file(self) -> AcademicFile | None:
        return self.find_file(self.state.viewing_file_id)

    def find_file(self, file_id: str | None) -> AcademicFile | None:
        if file_id is None:
            return None
        return next((file for file in self.files if file.id == file_id), None)

    def search(self, query: str) -> list[AcademicFile]:
        return search_files(self.files, query)

    # -- fetching -----------------------------------------------------------

    def load_snapshot(self) -> bool:
        snapshot = self.cache.load()
        if snapshot is None:
            return False
        self.files = snapshot
        self.showing_snapshot = True
        logger.debug("Showing %d files from snapshot", len(snapshot))
        self._notify()
        return True

    async def start(self) -> bool:
        self.load_snapshot()
        return await self.refresh()

    async def _fetch_taxonomy_kind(self, kind: TaxonomyKind) -> tuple[list[str], TaxonomySource]:
        try:
            entries = await asyncio.to_thread(self.gateway.list_taxonomy, kind)
        except GatewayError as exc:
            logger.warning("Using default %s list: %s", kind.value, exc.message)
            return list(kind.preset.defaults), TaxonomySource.DEFAULT

        names = [entry.name for entry in entries]
        if not names:
            return list(kind.preset.defaults), TaxonomySource.DEFAULT
        return names, TaxonomySource.REMOTE

    async def _fetch_taxonomy(self) -> Taxonomy:
        (subjects, subjects_source), (categories, categories_source) = await asyncio.gather(
            self._fetch_taxonomy_kind(TaxonomyKind.SUBJECT),
            self._fetch_taxonomy_kind(TaxonomyKind.CATEGORY),
        )
        return Taxonomy(
            subjects=subjects,
            categories=categories,
            subjects_source=subjects_source,
            categories_source=categories_source,
        )

    def _is_stale(self, generation: int) -> bool:
        return self._closed or generation != self._fetch_generation

    async def refresh(self) -> bool:
        """Fetch files and taxonomy. Returns True when the file list was replaced."""
        self._fetch_generation += 1
        generation = self._fetch_generation
        self.loading = True
        self._notify()

        files_result, taxonomy = await asyncio.gather(
            asyncio.to_thread(self.gateway.list_files),
            self._fetch_taxonomy(),
            return_exceptions=True,
        )

        if self._is_stale(generation):
            logger.debug("Dropping stale fetch result (generation %d)", generation)
            return False

        for outcome in (files_result, taxonomy):
            if isinstance(outcome, BaseException) and not isinstance(outcome, GatewayError):
                self.loading = False
                self._notify()
                raise outcome

        if isinstance(taxonomy, Taxonomy):
            self.taxonomy = taxonomy

        self.loading = False
        if isinstance(files_result, GatewayError):
            self.fetch_error = f"Could not load resources: {files_result.message}"
            logger.warning("File fetch failed: %s", files_result.message)
            self._notify()
            return False

        self.files = list(files_result)
        self.showing_snapshot = False
        self.fetch_error = None
        self.cache.save(self.files)
        self._notify()
        return True

    # -- admin --------------------------------------------------------------

    def login(self, username: str, password: str) -> bool:
        if username == self.settings.admin_username and password == self.settings.admin_password:
            self.dispatch(LoginSucceeded())
            return True
        logger.info("Rejected admin login for %r", username)
        return False

    def logout(self) -> None:
        self.dispatch(Logout())

    def is_busy(self, action: str) -> bool:
        return action in self._pending

    async def _admin_action(
        self,
        action: str,
        operation: Callable[[], Awaitable[str]],
        *,
        refresh_on_partial_failure: bool = False,
    ) -> ActionResult:
        if not self.state.admin_logged_in:
            raise AdminRequired("Admin login required")
        if action in self._pending:
            return ActionResult(ok=False, message=f"{action.replace('_', ' ').capitalize()} is already in progress.")

        self._pending.add(action)
        self._notify()
        try:
            try:
                message = await operation()
            except (UploadRejected, ValueError) as exc:
                return ActionResult(ok=False, message=str(exc))
            except TaxonomyRenameIncomplete as exc:
                if refresh_on_partial_failure and not self._closed:
                    await self.refresh()
                return ActionResult(ok=False, message=exc.message, kind=exc.kind)
            except GatewayError as exc:
                return ActionResult(ok=False, message=exc.message, kind=exc.kind)

            if not self._closed:
                await self.refresh()
            return ActionResult(ok=True, message=message)
        finally:
            self._pending.discard(action)
            self._notify()

    async def upload(self, request: UploadRequest) -> ActionResult:
        async def _operation() -> str:
            prepared = prepare_upload(request, max_bytes=self.settings.max_upload_bytes)
            await asyncio.to_thread(run_upload, self.gateway, prepared)
            return "File uploaded successfully!"

        return await self._admin_action("upload", _operation)

    async def delete_file(self, file_id: str) -> ActionResult:
        async def _operation() -> str:
            await asyncio.to_thread(self.gateway.delete_file, file_id)
            return "File deleted."

        return await self._admin_action("delete", _operation)

    async def rename_file(self, file_id: str, new_name: str) -> ActionResult:
        async def _operation() -> str:
            cleaned = new_name.strip()
            if not cleaned:
                raise ValueError("Display name cannot be empty.")
            await asyncio.to_thread(self.gateway.rename_file, file_id, cleaned)
            return f"Renamed to '{cleaned}'."

        return await self._admin_action("rename", _operation)

    def _check_new_label(self, kind: TaxonomyKind, name: str, *, replacing: str | None = None) -> str:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError(f"{kind.label} name cannot be empty.")
        if self.taxonomy.source(kind) != TaxonomySource.REMOTE:
            # Defaults live only on the client.
            return cleaned
        existing = {label.casefold() for label in self.taxonomy.labels(kind) if label != replacing}
        if cleaned.casefold() in existing:
            raise ValueError(f"{kind.label} '{cleaned}' already exists.")
        return cleaned

    async def add_taxonomy(self, kind: TaxonomyKind, name: str) -> ActionResult:
        async def _operation() -> str:
            cleaned = self._check_new_label(kind, name)
            await asyncio.to_thread(self.gateway.insert_taxonomy, kind, cleaned)
            return f"{kind.label} '{cleaned}' added."

        return await self._admin_action(f"add_{kind.value}", _operation)

    async def rename_taxonomy(self, kind: TaxonomyKind, old_name: str, new_name: str) -> ActionResult:
        async def _operation() -> str:
            cleaned = self._check_new_label(kind, new_name, replacing=old_name)
            updated = await asyncio.to_thread(run_taxonomy_rename, self.gateway, kind, old_name, cleaned)
            return f"{kind.label} '{old_name}' renamed to '{cleaned}'; {updated} file(s) updated."

        return await self._admin_action(f"rename_{kind.value}", _operation, refresh_on_partial_failure=True)

    async def delete_taxonomy(self, kind: TaxonomyKind, name: str) -> ActionResult:
        async def _operation() -> str:
            await asyncio.to_thread(self.gateway.delete_taxonomy, kind, name)
            return f"{kind.label} '{name}' deleted. Files labelled '{name}' keep that label."

        return await self._admin_action(f"delete_{kind.value}", _operation)

    # -- public actions -----------------------------------------------------

    async def submit_feedback(self, name: str, email: str, message: str) -> ActionResult:
        try:
            feedback = FeedbackMessage(name=name, email=email, message=message)
        except ValidationError as exc:
            return ActionResult(ok=False, message=_validation_message(exc))

        try:
            await asyncio.to_thread(self.gateway.submit_feedback, feedback)
        except GatewayError as exc:
            logger.warning("Feedback submission failed: %s", exc.message)
            return ActionResult(ok=False, message=FEEDBACK_FAILURE_MESSAGE, kind=exc.kind)
        return ActionResult(ok=True, message="Your feedback has been received. We appreciate your input.")

    async def fetch_document(self, file: AcademicFile) -> bytes:
        return await asyncio.to_thread(self.gateway.download, file.file_url)

    async def download(self, file: AcademicFile, target_dir: Path | None = None) -> Path:
        data = await self.fetch_document(file)
        directory = target_dir or self.settings.downloads_path
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / download_file_name(file.file_name)
        await asyncio.to_thread(target.write_bytes, data)
        logger.info("Downloaded %s to %s", file.id, target)
        return target
