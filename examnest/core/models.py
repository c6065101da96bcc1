from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from examnest.core.catalog import PRESET_BY_KEY, TaxonomyPreset


class TaxonomyKind(str, Enum):
    SUBJECT = "subject"
    CATEGORY = "category"

    @property
    def preset(self) -> TaxonomyPreset:
        return PRESET_BY_KEY[self.value]

    @property
    def label(self) -> str:
        return self.preset.label

    @property
    def file_column(self) -> str:
        return self.preset.file_column


class TaxonomySource(str, Enum):
    REMOTE = "remote"
    DEFAULT = "default"


class FailureKind(str, Enum):
    NETWORK = "network"
    STORAGE = "storage"
    DATABASE = "database"


def _coerce_id(value: Any) -> Any:
    if value is None:
        return value
    return str(value)


class AcademicFile(BaseModel):
    id: str
    subject: str
    category: str
    file_name: str
    file_url: str
    storage_path: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @property
    def upload_date(self) -> str:
        return self.created_at.astimezone().strftime("%x")

    def label_for(self, kind: TaxonomyKind) -> str:
        return self.subject if kind == TaxonomyKind.SUBJECT else self.category


class TaxonomyEntry(BaseModel):
    id: str | None = None
    name: str

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, value: Any) -> Any:
        return _coerce_id(value)


class Taxonomy(BaseModel):
    subjects: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    subjects_source: TaxonomySource = TaxonomySource.DEFAULT
    categories_source: TaxonomySource = TaxonomySource.DEFAULT

    def labels(self, kind: TaxonomyKind) -> list[str]:
        return self.subjects if kind == TaxonomyKind.SUBJECT else self.categories

    def source(self, kind: TaxonomyKind) -> TaxonomySource:
        return self.subjects_source if kind == TaxonomyKind.SUBJECT else self.categories_source


class UploadRequest(BaseModel):
    path: str
    subject: str
    category: str
    display_name: str | None = Field(default=None, description="Defaults to the file name without .pdf")


class FeedbackMessage(BaseModel):
    name: str
    email: str
    message: str

    @field_validator("name", "message")
    @classmethod
    def validate_required(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("field is required")
        return cleaned

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        cleaned = value.strip()
        if "@" not in cleaned:
            raise ValueError("a valid email address is required")
        return cleaned


class ActionResult(BaseModel):
    ok: bool
    message: str
    kind: FailureKind | None = None
