"""
Error taxonomy for the translation pipeline.

Translation-path failures never stop a page from rendering: callers fall
back to source-language content. Only the batch job treats
ContentSourceError / PersistenceFailure on load as fatal.
"""

from __future__ import annotations


class PostlingoError(Exception):
    """Base class for all postlingo errors."""
    pass


class TranslationError(PostlingoError):
    """Something went wrong on the translation path."""
    pass


class ConfigurationAbsent(TranslationError):
    """No provider credential is configured (degrades to pass-through)."""
    pass


class InvalidRequest(TranslationError):
    """Missing fields or an unsupported language."""
    pass


class ProviderError(TranslationError):
    """The translation provider failed or returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceFailure(PostlingoError):
    """Reading or writing the translation map / runtime cache failed."""
    pass


class ContentSourceError(PostlingoError):
    """The content source could not be read."""
    pass
