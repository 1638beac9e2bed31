"""
Document-level translation helpers.

Translates a whole post (title, description, markdown body) and picks the
right pre-computed entry at render time.
"""

from __future__ import annotations

import logging

from postlingo.core.models import Document, TranslationEntry
from postlingo.i18n.languages import Language, SOURCE_LANGUAGE, parse_language
from postlingo.i18n.placeholders import PlaceholderStyle, TEXT_STYLE, extract, restore
from postlingo.i18n.provider import DeepLTranslator
from postlingo.storage.translation_map import TranslationMap

logger = logging.getLogger(__name__)


async def translate_plain(
    text: str,
    target: str | Language,
    provider: DeepLTranslator,
) -> str:
    """Translate a short plain-text string; blank input stays as it is."""
    if not text or not text.strip():
        return text
    return await provider.translate(text, target)


async def translate_markdown(
    markdown: str,
    target: str | Language,
    provider: DeepLTranslator,
    style: PlaceholderStyle | None = None,
) -> str:
    """
    Translate a markdown body without touching code, images, URLs or HTML.

    extract -> provider.translate -> restore. If nothing translatable is
    left once the protected spans are out, the provider is not called.
    """
    if not markdown or not markdown.strip():
        return markdown

    protected, table = extract(markdown, style or TEXT_STYLE)
    if not _has_prose(protected, table.style):
        return markdown

    translated = await provider.translate(
        protected, target, ignore_tags=table.style.ignore_tags
    )
    result = restore(translated, table)
    if result.unresolved:
        logger.warning(
            f"{result.unresolved_count} protected span(s) lost in {target} translation"
        )
    return result.text


def _has_prose(protected: str, style: PlaceholderStyle) -> bool:
    remainder = style.canonical_pattern().sub("", protected)
    return any(ch.isalnum() for ch in remainder)


async def translate_document(
    doc: Document,
    target: str | Language,
    provider: DeepLTranslator,
    style: PlaceholderStyle | None = None,
) -> TranslationEntry:
    """
    Translate a document into one language.

    Title and description are plain strings; the body goes through the
    placeholder codec. All three are returned together so a translated
    title is never shown over a stale body. No cache is consulted.

    Args:
        doc: Source-language document
        target: Target language
        provider: Translation provider
        style: Placeholder style for the body (default: text tokens)

    Returns:
        TranslationEntry for `target`
    """
    language = parse_language(target)
    title = await translate_plain(doc.title, language, provider)
    description = await translate_plain(doc.description, language, provider)
    markdown = await translate_markdown(doc.markdown, language, provider, style)
    return TranslationEntry(title=title, description=description, markdown=markdown)


def source_entry(doc: Document) -> TranslationEntry:
    """The untranslated entry for a document."""
    return TranslationEntry(
        title=doc.title,
        description=doc.description,
        markdown=doc.markdown,
    )


def select_entry(
    translation_map: TranslationMap,
    doc_id: str,
    language: str | Language,
    fallback: TranslationEntry | None = None,
    source_language: Language = SOURCE_LANGUAGE,
) -> tuple[TranslationEntry | None, bool]:
    """
    Pick the entry to display for the active language.

    Falls back to `fallback` (usually the freshly fetched source document)
    or to the stored source-language entry when no translation exists.

    Returns:
        Tuple of (entry or None, whether a fallback was used)
    """
    language = parse_language(language)
    if language != source_language:
        entry = translation_map.get(doc_id, language)
        if entry is not None and entry.is_complete:
            return entry, False

    if fallback is not None:
        return fallback, language != source_language
    return translation_map.get(doc_id, source_language), language != source_language
