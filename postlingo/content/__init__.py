"""Content sources - read-only suppliers of published posts."""

from postlingo.content.source import (
    ContentSource,
    MarkdownDirectorySource,
    StaticContentSource,
    split_front_matter,
)

__all__ = [
    "ContentSource",
    "MarkdownDirectorySource",
    "StaticContentSource",
    "split_front_matter",
]
