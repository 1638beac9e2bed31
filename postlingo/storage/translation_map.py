"""
Persisted translation map.

One JSON object, keyed by document id, then by language code, each leaf
{"title", "description", "markdown"}. The file is also published as a
static asset so pages can load it directly.

Invariants:
- The source-language entry is written once and never overwritten.
- A target-language entry counts as translated once its markdown is
  non-empty; it is only replaced by an explicit put() or clear().
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterator

from pydantic import ValidationError

from postlingo.core.models import TranslationEntry
from postlingo.errors import PersistenceFailure

logger = logging.getLogger(__name__)


# =============================================================================
# In-memory map
# =============================================================================


class TranslationMap:
    """document id -> language code -> TranslationEntry"""

    def __init__(self, entries: dict[str, dict[str, TranslationEntry]] | None = None):
        self._entries: dict[str, dict[str, TranslationEntry]] = entries or {}

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TranslationMap):
            return NotImplemented
        return self._entries == other._entries

    def languages(self, doc_id: str) -> list[str]:
        return list(self._entries.get(doc_id, {}))

    def get(self, doc_id: str, language: str) -> TranslationEntry | None:
        return self._entries.get(doc_id, {}).get(_code(language))

    def is_translated(self, doc_id: str, language: str) -> bool:
        entry = self.get(doc_id, language)
        return entry is not None and entry.is_complete

    def put_source(self, doc_id: str, language: str, entry: TranslationEntry) -> bool:
        """
        Store the source-language baseline unless one already exists.

        Returns:
            True if the entry was written
        """
        if self.get(doc_id, language) is not None:
            return False
        self._entries.setdefault(doc_id, {})[_code(language)] = entry
        return True

    def put(self, doc_id: str, language: str, entry: TranslationEntry) -> None:
        self._entries.setdefault(doc_id, {})[_code(language)] = entry

    def clear(self, doc_id: str, language: str) -> bool:
        """Forget one translation so the next batch run redoes it."""
        entries = self._entries.get(doc_id, {})
        return entries.pop(_code(language), None) is not None

    def to_dict(self) -> dict[str, dict[str, dict[str, str]]]:
        return {
            doc_id: {lang: entry.model_dump() for lang, entry in langs.items()}
            for doc_id, langs in self._entries.items()
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranslationMap:
        if not isinstance(data, dict):
            raise ValueError("Translation map must be a JSON object")
        entries: dict[str, dict[str, TranslationEntry]] = {}
        for doc_id, langs in data.items():
            if not isinstance(langs, dict):
                raise ValueError(f"Entry for {doc_id!r} must be an object")
            entries[doc_id] = {
                lang: TranslationEntry.model_validate(value)
                for lang, value in langs.items()
            }
        return cls(entries)


def _code(language) -> str:
    # Accepts Language members as well as plain codes
    return getattr(language, "value", language)


# =============================================================================
# File store
# =============================================================================


class TranslationMapStore:
    """Loads, flushes and publishes the translation map file."""

    def __init__(self, path: Path | str, public_path: Path | str | None = None):
        self.path = Path(path)
        self.public_path = Path(public_path) if public_path else None

    def load(self) -> TranslationMap:
        """
        Read the map from disk. A missing file is an empty map.

        Raises:
            PersistenceFailure: If the file exists but cannot be read or parsed
        """
        if not self.path.exists():
            logger.info(f"No existing translations at {self.path}, starting fresh")
            return TranslationMap()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            translation_map = TranslationMap.from_dict(data)
        except (OSError, ValueError, ValidationError) as e:
            raise PersistenceFailure(f"Cannot read translation map {self.path}: {e}") from e

        logger.info(f"Loaded translations for {len(translation_map)} document(s) from {self.path}")
        return translation_map

    def save(self, translation_map: TranslationMap) -> None:
        """
        Write the whole map atomically (temp file + rename).

        Raises:
            PersistenceFailure: If the file cannot be written
        """
        payload = json.dumps(translation_map.to_dict(), ensure_ascii=False, indent=2)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceFailure(f"Cannot write translation map {self.path}: {e}") from e

    def publish(self) -> Path | None:
        """
        Copy the map to the public (static asset) location.

        Returns:
            The published path, or None if there is nothing to publish
        """
        if self.public_path is None or not self.path.exists():
            return None
        try:
            self.public_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.path, self.public_path)
        except OSError as e:
            raise PersistenceFailure(f"Cannot publish translation map to {self.public_path}: {e}") from e
        return self.public_path
