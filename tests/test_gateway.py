from __future__ import annotations

import io
import json
import urllib.error
import urllib.request
from typing import Any

import pytest

from examnest.core.config import Settings
from examnest.core.models import FailureKind, FeedbackMessage, TaxonomyKind
from examnest.runtime.gateway import BackendGateway, GatewayError


class _Response:
    def __init__(self, body: bytes):
        self.body = body

    def read(self) -> bytes:
        return self.body

    def __enter__(self) -> "_Response":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


class _Recorder:
    def __init__(self, payload: Any = None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.requests: list[urllib.request.Request] = []

    def __call__(self, request: urllib.request.Request, timeout: float) -> _Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        body = b"" if self.payload is None else json.dumps(self.payload).encode("utf-8")
        return _Response(body)

    @property
    def last(self) -> urllib.request.Request:
        return self.requests[-1]


def _install(monkeypatch, recorder: _Recorder) -> None:
    monkeypatch.setattr(urllib.request, "urlopen", recorder)


def _gateway() -> BackendGateway:
    return BackendGateway(base_url="https://backend.test", api_key="anon-key")


def _http_error(code: int, body: bytes) -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://backend.test", code, "error", {}, io.BytesIO(body))  # type: ignore[arg-type]


def test_from_settings_uses_configured_tables(settings: Settings) -> None:
    gateway = BackendGateway.from_settings(settings)
    assert gateway.base_url == "https://backend.test"
    assert gateway.taxonomy_tables == {TaxonomyKind.SUBJECT: "subjects", TaxonomyKind.CATEGORY: "categories"}


def test_from_settings_requires_backend() -> None:
    with pytest.raises(RuntimeError, match="EXAMNEST_BACKEND_URL"):
        BackendGateway.from_settings(Settings(_env_file=None, EXAMNEST_BACKEND_KEY="anon-key"))


def test_list_files_orders_newest_first_and_sends_auth_headers(monkeypatch) -> None:
    recorder = _Recorder(
        payload=[
            {
                "id": 7,
                "subject": "Physics",
                "category": "NOTES",
                "file_name": "Kinematics Notes",
                "file_url": "https://backend.test/storage/v1/object/public/resources/1_k.pdf",
                "created_at": "2025-03-01T12:00:00+00:00",
            }
        ]
    )
    _install(monkeypatch, recorder)

    files = _gateway().list_files()

    assert [file.id for file in files] == ["7"]
    request = recorder.last
    assert request.get_method() == "GET"
    assert request.full_url == "https://backend.test/rest/v1/academic_files?select=*&order=created_at.desc"
    assert request.get_header("Apikey") == "anon-key"
    assert request.get_header("Authorization") == "Bearer anon-key"


def test_insert_file_asks_for_representation(monkeypatch) -> None:
    recorder = _Recorder(
        payload=[
            {
                "id": "11",
                "subject": "M1",
                "category": "ASSIGNMENTS",
                "file_name": "Matrices",
                "file_url": "https://backend.test/x.pdf",
                "storage_path": "1_Matrices.pdf",
                "created_at": "2025-03-01T12:00:00+00:00",
            }
        ]
    )
    _install(monkeypatch, recorder)

    record = _gateway().insert_file(
        subject="M1",
        category="ASSIGNMENTS",
        file_name="Matrices",
        file_url="https://backend.test/x.pdf",
        storage_path="1_Matrices.pdf",
    )

    assert record is not None and record.storage_path == "1_Matrices.pdf"
    request = recorder.last
    assert request.get_method() == "POST"
    assert request.get_header("Prefer") == "return=representation"
    assert json.loads(request.data)[0]["file_name"] == "Matrices"


def test_relabel_files_filters_on_old_label(monkeypatch) -> None:
    recorder = _Recorder(payload=[{"id": 1}, {"id": 2}])
    _install(monkeypatch, recorder)

    updated = _gateway().relabel_files(TaxonomyKind.SUBJECT, "Physics", "Applied Physics")

    assert updated == 2
    request = recorder.last
    assert request.get_method() == "PATCH"
    assert request.full_url == "https://backend.test/rest/v1/academic_files?subject=eq.Physics"
    assert json.loads(request.data) == {"subject": "Applied Physics"}


def test_upload_object_targets_bucket_with_cache_headers(monkeypatch) -> None:
    recorder = _Recorder()
    _install(monkeypatch, recorder)

    _gateway().upload_object("1700000000500_notes.pdf", b"%PDF-1.4", "application/pdf")

    request = recorder.last
    assert request.full_url == "https://backend.test/storage/v1/object/resources/1700000000500_notes.pdf"
    assert request.get_header("X-upsert") == "true"
    assert request.get_header("Cache-control") == "max-age=3600"
    assert request.get_header("Content-type") == "application/pdf"
    assert request.data == b"%PDF-1.4"


def test_public_url_and_remove_object(monkeypatch) -> None:
    recorder = _Recorder()
    _install(monkeypatch, recorder)
    gateway = _gateway()

    assert gateway.public_url("1_a.pdf") == "https://backend.test/storage/v1/object/public/resources/1_a.pdf"

    gateway.remove_object("1_a.pdf")
    request = recorder.last
    assert request.get_method() == "DELETE"
    assert request.full_url == "https://backend.test/storage/v1/object/resources"
    assert json.loads(request.data) == {"prefixes": ["1_a.pdf"]}


def test_http_error_maps_to_database_failure_with_detail(monkeypatch) -> None:
    body = json.dumps({"message": "duplicate key value", "hint": "check the name"}).encode("utf-8")
    _install(monkeypatch, _Recorder(error=_http_error(409, body)))

    with pytest.raises(GatewayError) as excinfo:
        _gateway().insert_taxonomy(TaxonomyKind.CATEGORY, "NOTES")

    assert excinfo.value.kind == FailureKind.DATABASE
    assert excinfo.value.status == 409
    assert excinfo.value.message == "duplicate key value (hint: check the name)"


def test_storage_http_error_maps_to_storage_failure(monkeypatch) -> None:
    _install(monkeypatch, _Recorder(error=_http_error(404, b'{"error": "Bucket not found"}')))

    with pytest.raises(GatewayError) as excinfo:
        _gateway().upload_object("k.pdf", b"%PDF-", "application/pdf")

    assert excinfo.value.kind == FailureKind.STORAGE
    assert excinfo.value.message == "Bucket not found"


def test_unreachable_backend_is_a_network_failure(monkeypatch) -> None:
    _install(monkeypatch, _Recorder(error=urllib.error.URLError("Name or service not known")))

    with pytest.raises(GatewayError) as excinfo:
        _gateway().list_files()

    assert excinfo.value.kind == FailureKind.NETWORK
    assert excinfo.value.message.startswith("Connection error:")


def test_rename_taxonomy_without_match_raises(monkeypatch) -> None:
    _install(monkeypatch, _Recorder(payload=[]))

    with pytest.raises(GatewayError, match="Subject not found: Physics"):
        _gateway().rename_taxonomy(TaxonomyKind.SUBJECT, "Physics", "Applied Physics")


def test_list_taxonomy_skips_rows_without_name(monkeypatch) -> None:
    recorder = _Recorder(payload=[{"id": 1, "name": "NOTES"}, {"id": 2, "name": ""}, {"id": 3}])
    _install(monkeypatch, recorder)

    entries = _gateway().list_taxonomy(TaxonomyKind.CATEGORY)

    assert [entry.name for entry in entries] == ["NOTES"]
    assert recorder.last.full_url == "https://backend.test/rest/v1/categories?select=*&order=created_at.asc"


def test_submit_feedback_inserts_into_feedback_table(monkeypatch) -> None:
    recorder = _Recorder()
    _install(monkeypatch, recorder)

    _gateway().submit_feedback(FeedbackMessage(name="Asha", email="asha@example.com", message="Add M2 papers"))

    request = recorder.last
    assert request.full_url == "https://backend.test/rest/v1/feedback"
    assert json.loads(request.data) == [{"name": "Asha", "email": "asha@example.com", "message": "Add M2 papers"}]


def test_list_files_skips_rows_with_missing_columns(monkeypatch, caplog) -> None:
    good = {
        "id": 8,
        "subject": "Chemistry",
        "category": "NOTES",
        "file_name": "Organic Chemistry Unit 2",
        "file_url": "https://backend.test/storage/v1/object/public/resources/2_o.pdf",
        "created_at": "2025-03-01T11:50:00+00:00",
    }
    broken = {**good, "id": 9, "subject": None, "created_at": None}
    _install(monkeypatch, _Recorder(payload=[broken, good]))

    with caplog.at_level("WARNING", logger="examnest.runtime.gateway"):
        files = _gateway().list_files()

    assert [file.id for file in files] == ["8"]
    assert "Skipping malformed academic_files row 9" in caplog.text


def test_delete_file_asks_for_representation(monkeypatch) -> None:
    recorder = _Recorder(payload=[{"id": 3}])
    _install(monkeypatch, recorder)

    _gateway().delete_file("3")

    request = recorder.last
    assert request.get_method() == "DELETE"
    assert request.full_url == "https://backend.test/rest/v1/academic_files?id=eq.3"
    assert request.get_header("Prefer") == "return=representation"


def test_delete_without_match_raises(monkeypatch) -> None:
    _install(monkeypatch, _Recorder(payload=[]))

    with pytest.raises(GatewayError, match="File not found: 404") as excinfo:
        _gateway().delete_file("404")
    assert excinfo.value.kind == FailureKind.DATABASE

    with pytest.raises(GatewayError, match="Category not found: LAB MANUALS"):
        _gateway().delete_taxonomy(TaxonomyKind.CATEGORY, "LAB MANUALS")
