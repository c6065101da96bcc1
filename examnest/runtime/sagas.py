from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from examnest.core.models import AcademicFile, FailureKind, TaxonomyKind
from examnest.core.uploads import PDF_CONTENT_TYPE, PreparedUpload, build_storage_key
from examnest.runtime.gateway import GatewayError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class UploadGateway(Protocol):
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


class TaxonomyGateway(Protocol):
    def rename_taxonomy(self, kind: TaxonomyKind, old_name: str, new_name: str) -> None: ...

    def relabel_files(self, kind: TaxonomyKind, old_label: str, new_label: str) -> int: ...


class TaxonomyRenameIncomplete(GatewayError):
    """The entry was renamed but its files still carry the old label."""

    def __init__(self, kind: TaxonomyKind, old_name: str, new_name: str, cause: GatewayError):
        super().__init__(
            cause.kind,
            f"{kind.label} renamed to '{new_name}', but files still reference '{old_name}': {cause.message}",
            status=cause.status,
        )
        self.taxonomy_kind = kind
        self.old_name = old_name
        self.new_name = new_name
        self.cause = cause


@dataclass
class _CompletedStep:
    name: str
    compensation: Callable[[], Any] | None


@dataclass
class Saga:
    """Runs dependent steps in order and undoes completed ones when a later step fails.

    There is no atomicity: a compensation that itself fails is logged and the
    original error is what propagates.
    """

    name: str
    completed: list[_CompletedStep] = field(default_factory=list)

    def step(self, name: str, action: Callable[[], T], *, compensation: Callable[[], Any] | None = None) -> T:
        try:
            result = action()
        except Exception:
            logger.warning("Saga %s failed at step %s", self.name, name)
            self.compensate()
            raise
        self.completed.append(_CompletedStep(name=name, compensation=compensation))
        return result

    def compensate(self) -> None:
        while self.completed:
            step = self.completed.pop()
            if step.compensation is None:
                continue
            try:
                step.compensation()
                logger.info("Saga %s compensated step %s", self.name, step.name)
            except Exception as exc:  # noqa: BLE001
                logger.error("Saga %s could not compensate step %s: %s", self.name, step.name, exc)


@dataclass
class UploadOutcome:
    storage_key: str
    file_url: str
    record: AcademicFile | None


def run_upload(
    gateway: UploadGateway,
    upload: PreparedUpload,
    *,
    now: float | None = None,
    remove_orphans: bool = True,
) -> UploadOutcome:
    """Store the PDF, resolve its public URL, then insert the metadata row."""
    storage_key = build_storage_key(upload.source.name, now=time.time() if now is None else now)
    data = upload.source.read_bytes()
    saga = Saga(name=f"upload:{storage_key}")

    def _upload() -> None:
        try:
            gateway.upload_object(storage_key, data, PDF_CONTENT_TYPE)
        except GatewayError as exc:
            if exc.kind != FailureKind.STORAGE:
                raise
            raise GatewayError(
                FailureKind.STORAGE,
                f"Storage Error: {exc.message.rstrip('.')}. Check that the storage bucket exists and accepts uploads.",
                status=exc.status,
            ) from exc

    saga.step(
        "upload_object",
        _upload,
        compensation=(lambda: gateway.remove_object(storage_key)) if remove_orphans else None,
    )
    file_url = saga.step("public_url", lambda: gateway.public_url(storage_key))

    def _insert() -> AcademicFile | None:
        try:
            return gateway.insert_file(
                subject=upload.subject,
                category=upload.category,
                file_name=upload.display_name,
                file_url=file_url,
                storage_path=storage_key,
            )
        except GatewayError as exc:
            if exc.kind != FailureKind.DATABASE:
                raise
            raise GatewayError(FailureKind.DATABASE, f"Database Error: {exc.message}", status=exc.status) from exc

    record = saga.step("insert_file", _insert)
    logger.info("Uploaded %s as %s", upload.display_name, storage_key)
    return UploadOutcome(storage_key=storage_key, file_url=file_url, record=record)


def run_taxonomy_rename(
    gateway: TaxonomyGateway,
    kind: TaxonomyKind,
    old_name: str,
    new_name: str,
    *,
    revert_on_failure: bool = False,
) -> int:
    """Rename a taxonomy entry, then move every file on the old label to the new one.

    Returns the number of relabelled files. When the relabel step fails the
    entry keeps its new name unless ``revert_on_failure`` is set, and
    ``TaxonomyRenameIncomplete`` is raised either way.
    """
    saga = Saga(name=f"rename-{kind.value}:{old_name}")
    saga.step(
        "rename_taxonomy",
        lambda: gateway.rename_taxonomy(kind, old_name, new_name),
        compensation=(lambda: gateway.rename_taxonomy(kind, new_name, old_name)) if revert_on_failure else None,
    )
    try:
        updated = saga.step("relabel_files", lambda: gateway.relabel_files(kind, old_name, new_name))
    except GatewayError as exc:
        raise TaxonomyRenameIncomplete(kind, old_name, new_name, exc) from exc
    logger.info("Renamed %s %r to %r (%d files relabelled)", kind.value, old_name, new_name, updated)
    return updated
