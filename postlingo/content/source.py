"""
Content source - where published posts come from.

The document store itself is a black box; the pipeline only needs
"give me every published post with its markdown". MarkdownDirectorySource
reads posts exported as markdown files with YAML front matter:

    ---
    id: 1f2e3d
    title: 첫 번째 글
    description: 블로그를 시작하며
    tags: [intro]
    author: Jane
    date: 2024-05-01
    slug: first-post
    status: Published
    ---
    본문...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from postlingo.core.models import Document
from postlingo.errors import ContentSourceError

logger = logging.getLogger(__name__)


PUBLISHED = "published"


class ContentSource(ABC):
    """Read-only supplier of source-language documents."""

    @abstractmethod
    async def list_published(self) -> list[Document]:
        """
        Fetch every published document, markdown included.

        Raises:
            ContentSourceError: If the source cannot be reached at all
        """
        pass


class StaticContentSource(ContentSource):
    """A fixed list of documents (scripts and tests)."""

    def __init__(self, documents: list[Document]):
        self.documents = list(documents)

    async def list_published(self) -> list[Document]:
        return list(self.documents)


class MarkdownDirectorySource(ContentSource):
    """Posts exported as `*.md` files with YAML front matter."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    async def list_published(self) -> list[Document]:
        if not self.directory.is_dir():
            raise ContentSourceError(f"Content directory not found: {self.directory}")

        documents: list[Document] = []
        for path in sorted(self.directory.glob("*.md")):
            try:
                doc = self.load(path)
            except (OSError, ValueError, ValidationError, yaml.YAMLError) as e:
                logger.warning(f"Skipping {path.name}: {e}")
                continue
            if doc is not None:
                documents.append(doc)

        logger.info(f"Found {len(documents)} published post(s) in {self.directory}")
        return documents

    def load(self, path: Path) -> Document | None:
        """Parse one file; returns None for posts that are not published."""
        meta, body = split_front_matter(path.read_text(encoding="utf-8"))
        if str(meta.get("status", PUBLISHED)).lower() != PUBLISHED:
            return None

        modified = meta.get("modified")
        if not modified:
            mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            modified = mtime.isoformat()

        return Document(
            id=str(meta.get("id") or path.stem),
            title=str(meta.get("title", "")),
            description=str(meta.get("description") or ""),
            markdown=body,
            tags=[str(t) for t in meta.get("tags") or []],
            author=str(meta.get("author") or ""),
            date=_as_text(meta.get("date")),
            modified_date=_as_text(modified),
            slug=str(meta.get("slug") or ""),
            cover_image=str(meta.get("cover") or ""),
        )


def split_front_matter(content: str) -> tuple[dict[str, Any], str]:
    """
    Split a markdown file into (front matter, body).

    Files without front matter yield an empty dict and the whole content.
    """
    if not content.startswith("---"):
        return {}, content

    lines = content.split("\n")
    if lines[0].strip() != "---":
        return {}, content
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            meta = yaml.safe_load("\n".join(lines[1:i])) or {}
            if not isinstance(meta, dict):
                raise ValueError("Front matter must be a mapping")
            body = "\n".join(lines[i + 1:])
            return meta, body.lstrip("\n")
    raise ValueError("Unterminated front matter")


def _as_text(value: Any) -> str:
    # YAML turns bare dates into date/datetime objects
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
