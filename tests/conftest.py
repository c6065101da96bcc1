"""Shared fixtures: settings rooted in tmp_path and an in-memory backend."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from examnest.core.config import Settings
from examnest.core.models import AcademicFile, FailureKind, FeedbackMessage, TaxonomyEntry, TaxonomyKind
from examnest.runtime.gateway import GatewayError
from examnest.runtime.library_controller import LibraryController
from examnest.runtime.snapshot_cache import SnapshotCache


BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
PDF_BYTES = b"%PDF-1.4\n% fake document\n"


def make_file(
    file_id: str,
    file_name: str,
    subject: str = "Physics",
    category: str = "NOTES",
    *,
    age_minutes: int = 0,
) -> AcademicFile:
    return AcademicFile(
        id=file_id,
        subject=subject,
        category=category,
        file_name=file_name,
        file_url=f"https://backend.test/storage/v1/object/public/resources/{file_id}.pdf",
        created_at=BASE_TIME - timedelta(minutes=age_minutes),
    )


class FakeBackend:
    """Stands in for BackendGateway. Failures are injected per method name."""

    def __init__(
        self,
        files: list[AcademicFile] | None = None,
        subjects: list[str] | None = None,
        categories: list[str] | None = None,
    ):
        self.files = list(files or [])
        self.taxonomy: dict[TaxonomyKind, list[str]] = {
            TaxonomyKind.SUBJECT: list(subjects or []),
            TaxonomyKind.CATEGORY: list(categories or []),
        }
        self.objects: dict[str, bytes] = {}
        self.feedback: list[FeedbackMessage] = []
        self.calls: list[str] = []
        self.failures: dict[str, GatewayError] = {}
        self.hooks: dict[str, Callable[[], None]] = {}
        self._next_id = 1000

    def _record(self, name: str) -> None:
        self.calls.append(name)
        hook = self.hooks.get(name)
        if hook is not None:
            hook()
        error = self.failures.get(name)
        if error is not None:
            raise error

    def count(self, name: str) -> int:
        return self.calls.count(name)

    # -- files --------------------------------------------------------------

    def list_files(self) -> list[AcademicFile]:
        self._record("list_files")
        return list(self.files)

    def insert_file(
        self,
        *,
        subject: str,
        category: str,
        file_name: str,
        file_url: str,
        storage_path: str | None = None,
    ) -> AcademicFile | None:
        self._record("insert_file")
        self._next_id += 1
        record = AcademicFile(
            id=str(self._next_id),
            subject=subject,
            category=category,
            file_name=file_name,
            file_url=file_url,
            storage_path=storage_path,
        )
        self.files.insert(0, record)
        return record

    def delete_file(self, file_id: str) -> None:
        self._record("delete_file")
        if not any(file.id == file_id for file in self.files):
            raise GatewayError(FailureKind.DATABASE, f"File not found: {file_id}")
        self.files = [file for file in self.files if file.id != file_id]

    def rename_file(self, file_id: str, new_name: str) -> AcademicFile:
        self._record("rename_file")
        for index, file in enumerate(self.files):
            if file.id == file_id:
                self.files[index] = file.model_copy(update={"file_name": new_name})
                return self.files[index]
        raise GatewayError(FailureKind.DATABASE, f"File not found: {file_id}")

    def relabel_files(self, kind: TaxonomyKind, old_label: str, new_label: str) -> int:
        self._record("relabel_files")
        updated = 0
        for index, file in enumerate(self.files):
            if file.label_for(kind) == old_label:
                self.files[index] = file.model_copy(update={kind.file_column: new_label})
                updated += 1
        return updated

    # -- storage ------------------------------------------------------------

    def upload_object(self, key: str, data: bytes, content_type: str) -> None:
        self._record("upload_object")
        self.objects[key] = data

    def public_url(self, key: str) -> str:
        self._record("public_url")
        return f"https://backend.test/storage/v1/object/public/resources/{key}"

    def remove_object(self, key: str) -> None:
        self._record("remove_object")
        self.objects.pop(key, None)

    def download(self, url: str) -> bytes:
        self._record("download")
        return self.objects.get(url.rsplit("/", 1)[-1], PDF_BYTES)

    # -- taxonomy -----------------------------------------------------------

    def list_taxonomy(self, kind: TaxonomyKind) -> list[TaxonomyEntry]:
        self._record(f"list_taxonomy:{kind.value}")
        return [TaxonomyEntry(id=str(index), name=name) for index, name in enumerate(self.taxonomy[kind])]

    def insert_taxonomy(self, kind: TaxonomyKind, name: str) -> None:
        self._record("insert_taxonomy")
        self.taxonomy[kind].append(name)

    def rename_taxonomy(self, kind: TaxonomyKind, old_name: str, new_name: str) -> None:
        self._record("rename_taxonomy")
        labels = self.taxonomy[kind]
        if old_name not in labels:
            raise GatewayError(FailureKind.DATABASE, f"{kind.label} not found: {old_name}")
        labels[labels.index(old_name)] = new_name

    def delete_taxonomy(self, kind: TaxonomyKind, name: str) -> None:
        self._record("delete_taxonomy")
        if name not in self.taxonomy[kind]:
            raise GatewayError(FailureKind.DATABASE, f"{kind.label} not found: {name}")
        self.taxonomy[kind] = [label for label in self.taxonomy[kind] if label != name]

    # -- feedback -----------------------------------------------------------

    def submit_feedback(self, message: FeedbackMessage) -> None:
        self._record("submit_feedback")
        self.feedback.append(message)


def write_pdf(path: Path, size_bytes: int | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as handle:
        handle.write(PDF_BYTES)
        if size_bytes is not None:
            handle.truncate(size_bytes)
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        EXAMNEST_BACKEND_URL="https://backend.test/",
        EXAMNEST_BACKEND_KEY="anon-key",
        EXAMNEST_STATE_DIR=str(tmp_path / "state"),
        EXAMNEST_DOWNLOADS_DIR=str(tmp_path / "downloads"),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(
        files=[
            make_file("1", "Kinematics Notes", "Physics", "NOTES", age_minutes=0),
            make_file("2", "Organic Chemistry Unit 2", "Chemistry", "NOTES", age_minutes=10),
            make_file("3", "Optics Mid 1", "Physics", "MID QUESTION PAPERS", age_minutes=20),
        ],
        subjects=["Physics", "Chemistry", "M1"],
        categories=["NOTES", "MID QUESTION PAPERS"],
    )


@pytest.fixture
def cache(settings: Settings) -> SnapshotCache:
    return SnapshotCache.from_settings(settings)


@pytest.fixture
def controller(settings: Settings, backend: FakeBackend, cache: SnapshotCache) -> LibraryController:
    return LibraryController(settings, backend, cache)
