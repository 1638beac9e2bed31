"""
Runtime translation cache.

For text the batch job does not cover (ad hoc short strings), translations
are fetched on demand from the translation endpoint and cached on the
client, keyed by a hash of the text and then by language.

The cache is advisory: it may be cleared or corrupted at any time and the
only cost is a repeated translation call. Failures never blank the
display; the original text is shown instead.

Usage:
    cache = create_runtime_cache()  # RUNTIME_CACHE_PATH, RUNTIME_CACHE_VERSION
    backend = create_endpoint_client()  # TRANSLATE_ENDPOINT_URL

    state = await get_translation("안녕하세요", "en", cache=cache, backend=backend)
    state.translated_text, state.error

    # Observable form, for views that may go away before the answer arrives
    handle = TranslationHandle("안녕하세요", "en", cache=cache, backend=backend)
    handle.subscribe(render)
    await handle.resolve()
    handle.dispose()
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from postlingo.config import Settings, get_settings
from postlingo.core.utils import short_hash
from postlingo.errors import InvalidRequest, PersistenceFailure, PostlingoError, ProviderError
from postlingo.i18n.languages import Language, SOURCE_LANGUAGE, parse_language
from postlingo.i18n.provider import TextTranslator
from postlingo.storage.cache import CacheStorage, JsonFileCacheStorage

logger = logging.getLogger(__name__)


CACHE_KEY = "translation-cache"
CACHE_VERSION = "v1"


def content_hash(text: str) -> str:
    """128-bit hex hash of the text, used as the cache key."""
    return short_hash(text, 32)


# =============================================================================
# Cache
# =============================================================================


class RuntimeTranslationCache:
    """
    content hash -> language -> translated text, in one storage key.

    The version is part of the storage key, so bumping it drops every old
    entry at once.
    """

    def __init__(self, storage: CacheStorage, version: str = CACHE_VERSION):
        self.storage = storage
        self.version = version

    @property
    def storage_key(self) -> str:
        return f"{CACHE_KEY}-{self.version}"

    async def load(self) -> dict[str, dict[str, str]]:
        """Whole cache; anything unreadable counts as empty."""
        try:
            raw = await self.storage.get(self.storage_key)
            data = json.loads(raw) if raw else {}
        except (PersistenceFailure, OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable translation cache: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, dict)}

    async def lookup(self, key: str, language: str | Language) -> str | None:
        cached = (await self.load()).get(key, {}).get(parse_language(language).value)
        return cached if isinstance(cached, str) else None

    async def store(self, key: str, language: str | Language, translated: str) -> None:
        """Read-modify-write one entry; failures are logged and ignored."""
        data = await self.load()
        data.setdefault(key, {})[parse_language(language).value] = translated
        try:
            await self.storage.set(self.storage_key, json.dumps(data, ensure_ascii=False))
        except PersistenceFailure as e:
            logger.warning(f"Failed to save translation cache: {e}")

    async def clear(self) -> None:
        await self.storage.delete(self.storage_key)


# =============================================================================
# Endpoint client
# =============================================================================


class TranslationEndpointClient:
    """Calls the site's own POST /api/translate endpoint."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def translate(self, text: str, target: str | Language) -> str:
        payload = {"text": text, "targetLang": parse_language(target).value}
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"Translation endpoint unreachable: {e}") from e

        if not response.is_success:
            raise ProviderError(
                f"Translation endpoint error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            translated = response.json()["translatedText"]
        except (ValueError, KeyError, TypeError) as e:
            raise ProviderError(f"Unexpected translation endpoint response: {e!r}") from e
        if not isinstance(translated, str):
            raise ProviderError("translatedText must be a string")
        return translated


# =============================================================================
# Builders
# =============================================================================


def create_runtime_cache(settings: Settings | None = None) -> RuntimeTranslationCache:
    """Runtime cache on disk, at RUNTIME_CACHE_PATH and RUNTIME_CACHE_VERSION."""
    settings = settings or get_settings()
    return RuntimeTranslationCache(
        JsonFileCacheStorage(settings.runtime_cache_path),
        version=settings.runtime_cache_version,
    )


def create_endpoint_client(settings: Settings | None = None) -> TranslationEndpointClient:
    """Client for the translation endpoint at TRANSLATE_ENDPOINT_URL."""
    settings = settings or get_settings()
    return TranslationEndpointClient(settings.translate_endpoint_url)


# =============================================================================
# Lookup
# =============================================================================


@dataclass
class TranslationState:
    """What a view shows for one piece of text."""

    translated_text: str
    is_loading: bool = False
    error: str | None = None


async def get_translation(
    text: str,
    target: str | Language,
    *,
    cache: RuntimeTranslationCache,
    backend: TextTranslator,
    source: str | Language = SOURCE_LANGUAGE,
) -> TranslationState:
    """
    Translate `text` through the cache.

    Same language: `text` as-is, no cache, no network. Cache hit: cached
    value. Miss: backend call, then cache write. Any failure: `text` with
    `error` set.
    """
    try:
        target_lang = parse_language(target)
        source_lang = parse_language(source)
    except InvalidRequest as e:
        return TranslationState(translated_text=text, error=str(e))

    if target_lang == source_lang or not text.strip():
        return TranslationState(translated_text=text)

    key = content_hash(text)
    try:
        cached = await cache.lookup(key, target_lang)
        if cached is not None:
            return TranslationState(translated_text=cached)

        translated = await backend.translate(text, target_lang)
        await cache.store(key, target_lang, translated)
    except PostlingoError as e:
        logger.error(f"Translation error: {e}")
        return TranslationState(translated_text=text, error="Translation failed")

    return TranslationState(translated_text=translated)


def _needs_translation(text: str, target: str | Language, source: str | Language) -> bool:
    # Mirrors the early returns of get_translation()
    try:
        return parse_language(target) != parse_language(source) and bool(text.strip())
    except InvalidRequest:
        return False


class TranslationHandle:
    """
    Observable translation of one text for one view.

    Starts out showing the original text (loading, unless no translation
    is needed). Once disposed, a late result is dropped instead of
    overwriting whatever the view shows now.
    """

    def __init__(
        self,
        text: str,
        target: str | Language,
        *,
        cache: RuntimeTranslationCache,
        backend: TextTranslator,
        source: str | Language = SOURCE_LANGUAGE,
    ):
        self.text = text
        self.target = target
        self.source = source
        self._cache = cache
        self._backend = backend
        self._listeners: list[Callable[[TranslationState], None]] = []
        self._alive = True
        self.state = TranslationState(
            translated_text=text,
            is_loading=_needs_translation(text, target, source),
        )

    @property
    def alive(self) -> bool:
        return self._alive

    def subscribe(self, listener: Callable[[TranslationState], None]) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def resolve(self) -> TranslationState:
        result = await get_translation(
            self.text,
            self.target,
            cache=self._cache,
            backend=self._backend,
            source=self.source,
        )
        if not self._alive:
            logger.debug("Discarding translation for a disposed view")
            return self.state
        self.state = result
        for listener in list(self._listeners):
            listener(result)
        return result

    def dispose(self) -> None:
        self._alive = False
        self._listeners.clear()
