"""Durable storage for user commentary settings.

Emulates a per-origin key-value store with a single JSON file holding
``{storage_key: record}``. The commentary settings record lives under one
fixed key.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from livecommentary.domain.models import CommentarySettings

logger = logging.getLogger(__name__)

STORAGE_KEY = "live-commentary-settings"


def merge_settings(*layers: Mapping[str, Any] | CommentarySettings | None) -> CommentarySettings:
    """Merge settings layers left to right; later layers win.

    Each layer may be a CommentarySettings, or a mapping using either
    camelCase or snake_case keys. The result is validated as a whole.
    """
    merged: dict[str, Any] = CommentarySettings().model_dump()
    for layer in layers:
        if layer is None:
            continue
        if isinstance(layer, CommentarySettings):
            merged.update(layer.model_dump())
            continue
        for key, value in layer.items():
            name = _field_name(key)
            if name is not None:
                merged[name] = value
    return CommentarySettings.model_validate(merged)


def _field_name(key: str) -> str | None:
    for name, field in CommentarySettings.model_fields.items():
        if key == name or key == field.alias:
            return name
    return None


class SettingsStore:
    """Loads and saves CommentarySettings as JSON on disk."""

    def __init__(self, path: Path | str, key: str = STORAGE_KEY) -> None:
        self._path = Path(path)
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def load_record(self) -> dict[str, Any] | None:
        """Return the persisted record, or None if absent or unreadable."""
        data = self._read_all()
        record = data.get(self._key)
        if record is None:
            return None
        if not isinstance(record, dict):
            logger.warning("Ignoring malformed settings record under %r", self._key)
            return None
        return record

    def load(
        self,
        overrides: Mapping[str, Any] | CommentarySettings | None = None,
    ) -> CommentarySettings:
        """Defaults, then caller overrides, then the persisted record."""
        base = merge_settings(overrides)
        record = self.load_record()
        if record is None:
            return base
        try:
            settings = merge_settings(base, record)
        except ValidationError as e:
            logger.warning("Failed to load settings from %s: %s", self._path, e)
            return base
        logger.info("Loaded persisted settings from %s", self._path)
        return settings

    def save(self, settings: CommentarySettings) -> None:
        """Persist the full settings record. Failures are logged, not raised."""
        data = self._read_all()
        data[self._key] = settings.to_record()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            tmp.replace(self._path)
        except OSError as e:
            logger.warning("Failed to save settings to %s: %s", self._path, e)

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (OSError, ValueError) as e:
            logger.warning("Failed to read settings storage %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}
