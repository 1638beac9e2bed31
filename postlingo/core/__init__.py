"""
Core module - data models and shared helpers.

This module contains:
- models: Document, TranslationEntry, PlaceholderToken
- utils: Shared utility functions
"""

from postlingo.core.models import (
    Document,
    PlaceholderToken,
    TranslationEntry,
)

from postlingo.core.utils import short_hash

__all__ = [
    # Models
    "Document",
    "TranslationEntry",
    "PlaceholderToken",
    # Utils
    "short_hash",
]
