"""
Core data models.

A Document is a published post as delivered by the content source. A
TranslationEntry is the (title, description, markdown) triple for one
document in one language; entries are replaced wholesale, never edited.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Documents
# =============================================================================


class Document(BaseModel):
    """
    A published post from the content source.

    Identity is `id` (source-assigned). Immutable once fetched.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    markdown: str = ""
    tags: list[str] = Field(default_factory=list)
    author: str = ""
    date: str = ""  # Publication date, ISO 8601
    modified_date: str = ""  # Last edit, ISO 8601
    slug: str = ""
    cover_image: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_slug(cls, data):
        if isinstance(data, dict) and not data.get("slug"):
            data = {**data, "slug": data.get("id", "")}
        return data


# =============================================================================
# Translations
# =============================================================================


class TranslationEntry(BaseModel):
    """Title, description and body of one document in one language."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str = ""
    markdown: str = ""

    @property
    def is_complete(self) -> bool:
        """An entry only counts as translated once it has a body."""
        return bool(self.markdown)


class PlaceholderToken(BaseModel):
    """A protected markdown span and the index of the marker standing in for it."""

    model_config = ConfigDict(frozen=True)

    index: int
    original: str
