from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TaxonomyPreset:
    key: str
    label: str
    file_column: str
    table_setting: str
    defaults: tuple[str, ...] = ()


DEFAULT_CATEGORIES: tuple[str, ...] = (
    "NOTES",
    "MID QUESTION PAPERS",
    "ASSIGNMENTS",
    "PREVIOUS YEAR SEMESTER PAPERS",
)

DEFAULT_SUBJECTS: tuple[str, ...] = (
    "M1",
    "Physics",
    "Engineering Drawing",
    "BEEE",
    "Introduction to programming",
    "Chemistry",
    "BCME",
    "English",
    "M2",
    "Data Structures",
)

TAXONOMY_PRESETS: tuple[TaxonomyPreset, ...] = (
    TaxonomyPreset(
        key="subject",
        label="Subject",
        file_column="subject",
        table_setting="subjects_table",
        defaults=DEFAULT_SUBJECTS,
    ),
    TaxonomyPreset(
        key="category",
        label="Category",
        file_column="category",
        table_setting="categories_table",
        defaults=DEFAULT_CATEGORIES,
    ),
)

PRESET_BY_KEY = {preset.key: preset for preset in TAXONOMY_PRESETS}

# Compared in plaintext. The backend never sees these; they only gate the admin screens.
ADMIN_CREDENTIALS: tuple[str, str] = ("Examnest", "Examnest@3813")

MAX_UPLOAD_MB = 50
SEARCH_RESULT_LIMIT = 8
SEARCH_MIN_QUERY_LENGTH = 2
RECENT_UPLOADS_LIMIT = 5
SNAPSHOT_CACHE_KEY = "examnest_files_cache"
STORAGE_CACHE_CONTROL = "3600"
FEEDBACK_FAILURE_MESSAGE = "Could not submit feedback. Please try again later."
