"""
Batch translation of all published posts.

Pre-translates every published post into every target language and stores
the result in the translation map, which pages load as a static asset.

Each (post, language) pair moves through:

    untranslated -> translating -> translated
                               \\-> failed

`translated` is persisted and terminal: the next run skips the pair
without calling the provider. `failed` leaves nothing behind, so the next
run simply tries again. The map is flushed after every post, so a crash
loses at most the post in flight.

Run on:
- Deploy, before building the site
- Cron job (to catch new posts)

Usage:
    # Translate everything that is missing
    await BatchTranslationJob(source, store, provider, languages=["en", "ja"]).run()

    # CLI
    python -m postlingo.i18n.batch
    python -m postlingo.i18n.batch --languages en --clear 1f2e3d:en
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from postlingo.config import get_settings
from postlingo.content.source import ContentSource, MarkdownDirectorySource
from postlingo.core.models import Document
from postlingo.errors import (
    ConfigurationAbsent,
    ContentSourceError,
    InvalidRequest,
    PersistenceFailure,
    TranslationError,
)
from postlingo.i18n.document import source_entry, translate_document
from postlingo.i18n.images import ImageRelocator
from postlingo.i18n.languages import (
    Language,
    get_language_name,
    parse_language,
    parse_language_list,
)
from postlingo.i18n.placeholders import PlaceholderStyle, get_style
from postlingo.i18n.provider import DeepLTranslator
from postlingo.storage.translation_map import TranslationMap, TranslationMapStore

logger = logging.getLogger(__name__)


# =============================================================================
# Pair states / report
# =============================================================================


class PairState(str, Enum):
    """Where a (post, language) pair is in the current run."""

    UNTRANSLATED = "untranslated"
    TRANSLATING = "translating"
    TRANSLATED = "translated"
    FAILED = "failed"
    SKIPPED = "skipped"  # Already translated by an earlier run


@dataclass
class BatchReport:
    """Outcome of one batch run."""

    documents: int = 0
    outcomes: dict[tuple[str, str], PairState] = field(default_factory=dict)

    def record(self, doc_id: str, language: Language, state: PairState) -> None:
        self.outcomes[(doc_id, language.value)] = state

    def count(self, state: PairState) -> int:
        return sum(1 for s in self.outcomes.values() if s == state)

    @property
    def translated(self) -> int:
        return self.count(PairState.TRANSLATED)

    @property
    def skipped(self) -> int:
        return self.count(PairState.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(PairState.FAILED)


# =============================================================================
# Rate limiting
# =============================================================================


class RateLimitedTranslator:
    """
    Waits a fixed delay between consecutive provider calls.

    A cooperative pause, not a lock: the batch job is sequential anyway.
    """

    def __init__(
        self,
        provider: DeepLTranslator,
        delay: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.delay = delay
        self._sleep = sleep
        self.calls = 0

    async def translate(self, text: str, target: str | Language, **kwargs) -> str:
        if self.calls and self.delay > 0:
            await self._sleep(self.delay)
        self.calls += 1
        return await self.provider.translate(text, target, **kwargs)


# =============================================================================
# Job
# =============================================================================


class BatchTranslationJob:
    """
    Translates every published post into every target language.

    Single instance, strictly sequential: posts one after another, and
    languages one after another within a post.
    """

    def __init__(
        self,
        source: ContentSource,
        store: TranslationMapStore,
        provider: DeepLTranslator,
        languages: list[str | Language],
        source_language: str | Language = Language.KO,
        relocator: ImageRelocator | None = None,
        delay: float = 1.0,
        style: PlaceholderStyle | None = None,
        clear: list[tuple[str, str | Language]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.store = store
        self.source_language = parse_language(source_language)
        self.languages = [
            lang for lang in parse_language_list(list(languages))
            if lang != self.source_language
        ]
        self.relocator = relocator
        self.style = style
        self.clear = [(doc_id, parse_language(lang)) for doc_id, lang in clear or []]
        if any(lang == self.source_language for _, lang in self.clear):
            raise InvalidRequest("The source-language entry cannot be cleared")
        self.provider = provider
        self.translator = RateLimitedTranslator(provider, delay, sleep)

    async def run(self) -> BatchReport:
        """
        Run the job.

        Raises:
            ConfigurationAbsent: No provider credential (results would be untranslated copies)
            PersistenceFailure: The existing map cannot be read
            ContentSourceError: The content source is unreachable
        """
        if not getattr(self.provider, "is_configured", True):
            raise ConfigurationAbsent("DEEPL_API_KEY is not set; refusing to store untranslated copies")

        translation_map = self.store.load()
        for doc_id, language in self.clear:
            if translation_map.clear(doc_id, language):
                logger.info(f"Cleared {doc_id} [{language.value}] for re-translation")

        documents = await self.source.list_published()
        report = BatchReport()

        for doc in documents:
            await self._process_document(doc, translation_map, report)
            report.documents += 1
            self._flush(translation_map)

        if self.clear and not documents:
            self._flush(translation_map)

        try:
            published = self.store.publish()
        except PersistenceFailure as e:
            logger.error(str(e))
        else:
            if published:
                logger.info(f"Published translations to {published}")

        return report

    async def _process_document(
        self,
        doc: Document,
        translation_map: TranslationMap,
        report: BatchReport,
    ) -> None:
        logger.info(f"Processing: {doc.title} ({doc.slug})")

        pending = [lang for lang in self.languages if not translation_map.is_translated(doc.id, lang)]
        needs_source = translation_map.get(doc.id, self.source_language) is None

        body = doc
        if (pending or needs_source) and self.relocator is not None:
            body = doc.model_copy(update={"markdown": await self.relocator.relocate(doc.markdown)})

        if translation_map.put_source(doc.id, self.source_language, source_entry(body)):
            logger.info(f"  Stored {self.source_language.value} source entry")

        for language in self.languages:
            if language not in pending:
                logger.info(f"  {language.value.upper()}: already translated, skipping")
                report.record(doc.id, language, PairState.SKIPPED)
                continue
            state = await self._translate_pair(body, language, translation_map)
            report.record(doc.id, language, state)

    async def _translate_pair(
        self,
        doc: Document,
        language: Language,
        translation_map: TranslationMap,
    ) -> PairState:
        logger.debug(f"  {doc.id} [{language.value}]: {PairState.UNTRANSLATED.value} -> {PairState.TRANSLATING.value}")
        logger.info(f"  {language.value.upper()}: translating...")
        try:
            entry = await translate_document(doc, language, self.translator, self.style)
        except TranslationError as e:
            logger.error(f"  {language.value.upper()}: translation failed: {e}")
            return PairState.FAILED

        translation_map.put(doc.id, language, entry)
        logger.info(f"  {language.value.upper()}: {entry.title}")
        return PairState.TRANSLATED

    def _flush(self, translation_map: TranslationMap) -> None:
        try:
            self.store.save(translation_map)
        except PersistenceFailure as e:
            logger.error(f"Flush failed, will retry after the next post: {e}")


# =============================================================================
# CLI Entry Point
# =============================================================================


def _parse_clear(value: str) -> tuple[str, str]:
    doc_id, sep, lang = value.rpartition(":")
    if not sep or not doc_id or not lang:
        raise ValueError(f"Expected DOC_ID:LANG, got {value!r}")
    return doc_id, lang


def main(argv: list[str] | None = None) -> int:
    """Run the batch translation from the command line."""
    import argparse

    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Translate all published posts into the target languages"
    )
    parser.add_argument(
        "--languages", "-l",
        nargs="+",
        default=settings.target_language_list,
        help="Target languages (default: TARGET_LANGUAGES)"
    )
    parser.add_argument(
        "--content-dir",
        default=settings.content_dir,
        help="Directory of exported posts"
    )
    parser.add_argument(
        "--map",
        default=settings.translations_path,
        help="Translation map file"
    )
    parser.add_argument(
        "--public-map",
        default=settings.public_translations_path,
        help="Where to publish the map as a static asset"
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.request_delay,
        help="Seconds to wait between provider calls"
    )
    parser.add_argument(
        "--clear",
        action="append",
        default=[],
        metavar="DOC_ID:LANG",
        help="Forget one translation so it is redone (repeatable)"
    )
    parser.add_argument(
        "--no-images",
        action="store_true",
        help="Do not download transient images"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        clear = [_parse_clear(value) for value in args.clear]
        job = BatchTranslationJob(
            source=MarkdownDirectorySource(args.content_dir),
            store=TranslationMapStore(args.map, args.public_map),
            provider=DeepLTranslator(),
            languages=args.languages,
            source_language=settings.source_language,
            relocator=None if args.no_images else ImageRelocator(
                image_dir=settings.image_dir,
                url_prefix=settings.image_url_prefix,
                transient_pattern=settings.transient_image_pattern,
            ),
            delay=args.delay,
            style=get_style(settings.placeholder_style),
            clear=clear,
        )
    except (ValueError, InvalidRequest) as e:
        parser.error(str(e))

    if not args.quiet:
        names = ", ".join(get_language_name(lang.value) for lang in job.languages)
        print("🌐 Starting translation process...")
        print(f"   Target languages: {names}")

    try:
        report = asyncio.run(job.run())
    except (ConfigurationAbsent, ContentSourceError, PersistenceFailure) as e:
        logger.error(str(e))
        print(f"❌ Translation failed: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        print("\n✨ Translation complete!")
        print(f"📄 Posts processed: {report.documents}")
        print(f"📊 New translations: {report.translated}")
        print(f"⏭️  Skipped (already translated): {report.skipped}")
        print(f"⚠️  Failed (will retry next run): {report.failed}")
        print(f"💾 Saved to: {args.map}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
