from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path

from examnest.core.models import UploadRequest


PDF_MAGIC = b"%PDF-"
PDF_CONTENT_TYPE = "application/pdf"


class UploadRejected(ValueError):
    pass


@dataclass
class PreparedUpload:
    source: Path
    subject: str
    category: str
    display_name: str
    size_bytes: int


def _sanitize_name(file_name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.]", "_", file_name)


def build_storage_key(file_name: str, now: float | None = None) -> str:
    stamp = int((time.time() if now is None else now) * 1000)
    return f"{stamp}_{_sanitize_name(file_name)}"


def default_display_name(file_name: str) -> str:
    return file_name.replace(".pdf", "")


def prepare_upload(request: UploadRequest, *, max_bytes: int) -> PreparedUpload:
    """Check an upload request locally before anything touches the network."""
    source = Path(request.path).expanduser()
    if not source.is_file():
        raise UploadRejected(f"File not found: {source}")

    if source.suffix.lower() != ".pdf":
        raise UploadRejected("Please select a valid PDF file.")

    size_bytes = source.stat().st_size
    if size_bytes > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise UploadRejected(
            f"{source.name} is {size_bytes / (1024 * 1024):.1f} MiB; the upload limit is {limit_mb:g} MiB."
        )

    with source.open("rb") as handle:
        if handle.read(len(PDF_MAGIC)) != PDF_MAGIC:
            raise UploadRejected(f"{source.name} does not look like a PDF document.")

    subject = request.subject.strip()
    category = request.category.strip()
    if not subject or not category:
        raise UploadRejected("Subject and category are required.")

    display_name = (request.display_name or "").strip() or default_display_name(source.name).strip()
    if not display_name:
        raise UploadRejected("Please select a file and enter a name.")

    return PreparedUpload(
        source=source,
        subject=subject,
        category=category,
        display_name=display_name,
        size_bytes=size_bytes,
    )


def download_file_name(display_name: str) -> str:
    cleaned = re.sub(r'[\\/:*?"<>|]+', "_", display_name).strip() or "document"
    return cleaned if cleaned.lower().endswith(".pdf") else f"{cleaned}.pdf"
