"""
Internationalization - markdown-safe translation of blog posts.

Design:
1. Protect code, images, URLs and HTML behind placeholders before translating
2. Pre-translate every published post in a batch job (translation map)
3. Translate ad hoc strings on demand, cached by content hash
4. Never blank a page: fall back to the source language on any failure

Usage:
    from postlingo.i18n import translate_markdown, get_translator

    # One body, code blocks and links left intact
    body_en = await translate_markdown(markdown, "en", get_translator())

    # A whole post
    entry = await translate_document(doc, "ja", get_translator())

    # Everything, from the command line
    python -m postlingo.i18n.batch --languages en ja
"""

from postlingo.i18n.languages import (
    Language,
    SOURCE_LANGUAGE,
    SUPPORTED_LANGUAGES,
    get_language_name,
    parse_language,
)
from postlingo.i18n.placeholders import (
    PlaceholderStyle,
    RestoreResult,
    TAG_STYLE,
    TEXT_STYLE,
    TokenTable,
    extract,
    get_style,
    restore,
)
from postlingo.i18n.provider import (
    DeepLTranslator,
    TextTranslator,
    get_translator,
)
from postlingo.i18n.document import (
    select_entry,
    source_entry,
    translate_document,
    translate_markdown,
)
from postlingo.i18n.runtime import (
    RuntimeTranslationCache,
    TranslationEndpointClient,
    TranslationHandle,
    TranslationState,
    content_hash,
    create_endpoint_client,
    create_runtime_cache,
    get_translation,
)

__all__ = [
    # Placeholder codec
    "PlaceholderStyle",
    "RestoreResult",
    "TAG_STYLE",
    "TEXT_STYLE",
    "TokenTable",
    "extract",
    "get_style",
    "restore",
    # Provider
    "DeepLTranslator",
    "TextTranslator",
    "get_translator",
    # Document-level
    "translate_document",
    "translate_markdown",
    "source_entry",
    "select_entry",
    # Runtime cache
    "RuntimeTranslationCache",
    "TranslationEndpointClient",
    "TranslationHandle",
    "TranslationState",
    "content_hash",
    "create_endpoint_client",
    "create_runtime_cache",
    "get_translation",
    # Language utilities
    "Language",
    "SOURCE_LANGUAGE",
    "SUPPORTED_LANGUAGES",
    "get_language_name",
    "parse_language",
]
