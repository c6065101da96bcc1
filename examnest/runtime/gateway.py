from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, TypeVar
from urllib.parse import quote, urlencode

from pydantic import BaseModel, ValidationError

from examnest.core.catalog import STORAGE_CACHE_CONTROL
from examnest.core.config import Settings
from examnest.core.models import AcademicFile, FailureKind, FeedbackMessage, TaxonomyEntry, TaxonomyKind


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GatewayError(RuntimeError):
    def __init__(self, kind: FailureKind, message: str, status: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status


def _error_detail(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        return ""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if not isinstance(payload, dict):
        return text

    message = str(payload.get("message") or payload.get("error") or payload.get("msg") or text)
    hint = payload.get("hint")
    if hint:
        message = f"{message} (hint: {hint})"
    return message


@dataclass
class BackendGateway:
    """Request/response access to the hosted backend (PostgREST tables + object storage)."""

    base_url: str
    api_key: str
    bucket: str = "resources"
    files_table: str = "academic_files"
    feedback_table: str = "feedback"
    taxonomy_tables: dict[TaxonomyKind, str] = field(
        default_factory=lambda: {TaxonomyKind.SUBJECT: "subjects", TaxonomyKind.CATEGORY: "categories"}
    )
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackendGateway":
        base_url, api_key = settings.require_backend()
        return cls(
            base_url=base_url,
            api_key=api_key,
            bucket=settings.storage_bucket,
            files_table=settings.files_table,
            feedback_table=settings.feedback_table,
            taxonomy_tables={kind: getattr(settings, kind.preset.table_setting) for kind in TaxonomyKind},
            timeout_seconds=settings.request_timeout_seconds,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}

    def _send(
        self,
        method: str,
        url: str,
        *,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        failure_kind: FailureKind = FailureKind.DATABASE,
    ) -> bytes:
        request = urllib.request.Request(url=url, data=data, headers=headers or {}, method=method)
        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as response:
                return response.read()
        except urllib.error.HTTPError as exc:
            detail = _error_detail(exc.read()) or str(exc.reason)
            logger.warning("%s %s failed with HTTP %s: %s", method, url, exc.code, detail)
            raise GatewayError(failure_kind, detail, status=exc.code) from exc
        except urllib.error.URLError as exc:
            logger.warning("%s %s failed: %s", method, url, exc.reason)
            raise GatewayError(FailureKind.NETWORK, f"Connection error: {exc.reason}") from exc
        except (TimeoutError, ConnectionError) as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise GatewayError(FailureKind.NETWORK, f"Connection error: {exc}") from exc

    def _rest(
        self,
        method: str,
        table: str,
        *,
        query: dict[str, str] | None = None,
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self.base_url}/rest/v1/{table}"
        if query:
            url = f"{url}?{urlencode(query, safe='*.,', quote_via=quote)}"

        headers = self._auth_headers()
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if prefer:
            headers["Prefer"] = prefer

        body = self._send(method, url, data=data, headers=headers, failure_kind=FailureKind.DATABASE)
        if not body:
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise GatewayError(FailureKind.DATABASE, f"Malformed response from {table}: {exc}") from exc

    def _rows(self, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            return []
        return [row for row in payload if isinstance(row, dict)]

    def _validated(self, model: type[ModelT], rows: list[dict[str, Any]], table: str) -> list[ModelT]:
        records: list[ModelT] = []
        for row in rows:
            try:
                records.append(model.model_validate(row))
            except ValidationError as exc:
                logger.warning("Skipping malformed %s row %r: %d error(s)", table, row.get("id"), exc.error_count())
        return records

    def _object_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(key)}"

    # -- files --------------------------------------------------------------

    def list_files(self) -> list[AcademicFile]:
        payload = self._rest("GET", self.files_table, query={"select": "*", "order": "created_at.desc"})
        return self._validated(AcademicFile, self._rows(payload), self.files_table)

    def insert_file(
        self,
        *,
        subject: str,
        category: str,
        file_name: str,
        file_url: str,
        storage_path: str | None = None,
    ) -> AcademicFile | None:
        record = {
            "subject": subject,
            "category": category,
            "file_name": file_name,
            "file_url": file_url,
            "storage_path": storage_path,
        }
        rows = self._rows(self._rest("POST", self.files_table, payload=[record], prefer="return=representation"))
        records = self._validated(AcademicFile, rows, self.files_table)
        return records[0] if records else None

    def delete_file(self, file_id: str) -> None:
        # Metadata only: the stored object stays in the bucket.
        rows = self._rows(
            self._rest(
                "DELETE",
                self.files_table,
                query={"id": f"eq.{file_id}"},
                prefer="return=representation",
            )
        )
        if not rows:
            raise GatewayError(FailureKind.DATABASE, f"File not found: {file_id}")

    def rename_file(self, file_id: str, new_name: str) -> AcademicFile:
        rows = self._rows(
            self._rest(
                "PATCH",
                self.files_table,
                query={"id": f"eq.{file_id}"},
                payload={"file_name": new_name},
                prefer="return=representation",
            )
        )
        if not rows:
            raise GatewayError(FailureKind.DATABASE, f"File not found: {file_id}")
        return AcademicFile.model_validate(rows[0])

    def relabel_files(self, kind: TaxonomyKind, old_label: str, new_label: str) -> int:
        column = kind.file_column
        rows = self._rows(
            self._rest(
                "PATCH",
                self.files_table,
                query={column: f"eq.{old_label}"},
                payload={column: new_label},
                prefer="return=representation",
            )
        )
        return len(rows)

    # -- storage ------------------------------------------------------------

    def upload_object(self, key: str, data: bytes, content_type: str) -> None:
        headers = self._auth_headers()
        headers.update(
            {
                "Content-Type": content_type,
                "x-upsert": "true",
                "cache-control": f"max-age={STORAGE_CACHE_CONTROL}",
            }
        )
        self._send("POST", self._object_url(key), data=data, headers=headers, failure_kind=FailureKind.STORAGE)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(key)}"

    def remove_object(self, key: str) -> None:
        headers = self._auth_headers()
        headers["Content-Type"] = "application/json"
        self._send(
            "DELETE",
            f"{self.base_url}/storage/v1/object/{self.bucket}",
            data=json.dumps({"prefixes": [key]}).encode("utf-8"),
            headers=headers,
            failure_kind=FailureKind.STORAGE,
        )

    def download(self, url: str) -> bytes:
        return self._send("GET", url, failure_kind=FailureKind.STORAGE)

    # -- taxonomy -----------------------------------------------------------

    def list_taxonomy(self, kind: TaxonomyKind) -> list[TaxonomyEntry]:
        table = self.taxonomy_tables[kind]
        payload = self._rest("GET", table, query={"select": "*", "order": "created_at.asc"})
        return self._validated(TaxonomyEntry, [row for row in self._rows(payload) if row.get("name")], table)

    def insert_taxonomy(self, kind: TaxonomyKind, name: str) -> None:
        self._rest("POST", self.taxonomy_tables[kind], payload=[{"name": name}], prefer="return=minimal")

    def rename_taxonomy(self, kind: TaxonomyKind, old_name: str, new_name: str) -> None:
        rows = self._rows(
            self._rest(
                "PATCH",
                self.taxonomy_tables[kind],
                query={"name": f"eq.{old_name}"},
                payload={"name": new_name},
                prefer="return=representation",
            )
        )
        if not rows:
            raise GatewayError(FailureKind.DATABASE, f"{kind.label} not found: {old_name}")

    def delete_taxonomy(self, kind: TaxonomyKind, name: str) -> None:
        rows = self._rows(
            self._rest(
                "DELETE",
                self.taxonomy_tables[kind],
                query={"name": f"eq.{name}"},
                prefer="return=representation",
            )
        )
        if not rows:
            raise GatewayError(FailureKind.DATABASE, f"{kind.label} not found: {name}")

    # -- feedback -----------------------------------------------------------

    def submit_feedback(self, message: FeedbackMessage) -> None:
        self._rest("POST", self.feedback_table, payload=[message.model_dump()], prefer="return=minimal")
