from __future__ import annotations

import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from pydantic import ValidationError

from examnest.core.config import Settings
from examnest.core.models import AcademicFile


logger = logging.getLogger(__name__)


class SnapshotCache:
    """Last fetched file list, kept on disk to fill the first paint.

    Never authoritative. Every failure here is logged and ignored.
    """

    def __init__(self, path: Path):
        self.path = path

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnapshotCache":
        return cls(settings.snapshot_path)

    def load(self) -> list[AcademicFile] | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.path, exc)
            return None

        if not isinstance(payload, list):
            logger.warning("Ignoring snapshot %s: expected a JSON array", self.path)
            return None

        try:
            return [AcademicFile.model_validate(item) for item in payload]
        except ValidationError as exc:
            logger.warning("Ignoring snapshot %s: %s", self.path, exc)
            return None

    def save(self, files: Sequence[AcademicFile]) -> None:
        payload = [file.model_dump(mode="json") for file in files]
        tmp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Could not persist snapshot %s: %s", self.path, exc)
