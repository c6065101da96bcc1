from __future__ import annotations

from collections.abc import Iterable, Sequence

from examnest.core.catalog import RECENT_UPLOADS_LIMIT, SEARCH_RESULT_LIMIT
from examnest.core.models import AcademicFile


def _matches(file: AcademicFile, needle: str) -> bool:
    return (
        needle in file.file_name.lower()
        or needle in file.subject.lower()
        or needle in file.category.lower()
    )


def search_files(
    files: Iterable[AcademicFile],
    query: str,
    limit: int = SEARCH_RESULT_LIMIT,
) -> list[AcademicFile]:
    """Case-insensitive substring match over name, subject and category.

    Results keep the order of ``files`` and stop after ``limit`` matches.
    An empty query matches nothing.
    """
    needle = query.strip().lower()
    if not needle or limit <= 0:
        return []

    results: list[AcademicFile] = []
    for file in files:
        if _matches(file, needle):
            results.append(file)
            if len(results) >= limit:
                break
    return results


def files_for(files: Iterable[AcademicFile], *, subject: str, category: str) -> list[AcademicFile]:
    return [file for file in files if file.subject == subject and file.category == category]


def recent_uploads(files: Sequence[AcademicFile], limit: int = RECENT_UPLOADS_LIMIT) -> list[AcademicFile]:
    return list(files[: max(0, limit)])


def count_by(files: Iterable[AcademicFile], attribute: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for file in files:
        key = str(getattr(file, attribute))
        counts[key] = counts.get(key, 0) + 1
    return counts
