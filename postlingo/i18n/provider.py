# =============================================================================
# DeepL translation provider
# =============================================================================
#
# Setup:
#   1. Create a DeepL API account (the free tier is enough for a blog)
#   2. Copy the authentication key from the account page
#   3. Set env vars:
#      - DEEPL_API_KEY=...
#      - DEEPL_API_URL=https://api.deepl.com/v2/translate  (paid plans only)
#
# Without DEEPL_API_KEY every call returns its input unchanged.
#
# =============================================================================

import logging
from typing import Protocol

import httpx

from postlingo.config import get_settings
from postlingo.errors import ConfigurationAbsent, InvalidRequest, ProviderError
from postlingo.i18n.languages import DEEPL_LANG_MAP, Language, parse_language

logger = logging.getLogger(__name__)


class TextTranslator(Protocol):
    """Anything that can translate a string into a target language."""

    async def translate(self, text: str, target: str | Language) -> str: ...


class DeepLTranslator:
    """
    Thin adapter over the DeepL v2 /translate endpoint.

    Does not cache: the batch job and the runtime cache each cache at
    their own granularity.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.api_key = settings.deepl_api_key if api_key is None else api_key
        self.api_url = api_url or settings.deepl_api_url
        self.timeout = settings.deepl_timeout if timeout is None else timeout
        self._client = client
        self._warned = False

    @property
    def is_configured(self) -> bool:
        """Check if a DeepL key is configured."""
        return bool(self.api_key)

    def _auth_header(self) -> dict[str, str]:
        if not self.is_configured:
            raise ConfigurationAbsent("DEEPL_API_KEY is not set")
        return {"Authorization": f"DeepL-Auth-Key {self.api_key}"}

    async def translate(
        self,
        text: str,
        target: str | Language,
        *,
        ignore_tags: tuple[str, ...] = (),
    ) -> str:
        """
        Translate text into the target language.

        Args:
            text: Non-empty source text
            target: Supported language code
            ignore_tags: XML tags whose content DeepL must leave alone

        Returns:
            Translated text, or `text` itself when no key is configured

        Raises:
            InvalidRequest: Blank text or unsupported language
            ProviderError: Network failure or non-success response
        """
        language = parse_language(target)
        if not text or not text.strip():
            raise InvalidRequest("Text is required")

        try:
            headers = self._auth_header()
        except ConfigurationAbsent as e:
            if not self._warned:
                logger.warning(f"{e}. Returning original text.")
                self._warned = True
            return text

        data = {
            "text": text,
            "target_lang": DEEPL_LANG_MAP[language],
            "tag_handling": "xml",
            "preserve_formatting": "1",
        }
        if ignore_tags:
            data["ignore_tags"] = ",".join(ignore_tags)

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.api_url, data=data, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"DeepL request failed: {e!r}")
            raise ProviderError(f"DeepL request failed: {e}") from e

        if not response.is_success:
            logger.error(f"DeepL API error: {response.status_code} {response.text[:200]}")
            raise ProviderError(
                f"DeepL API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()["translations"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"Unexpected DeepL response: {e!r}") from e


_translator: DeepLTranslator | None = None


def get_translator() -> DeepLTranslator:
    """Get or create the global DeepL translator."""
    global _translator
    if _translator is None:
        _translator = DeepLTranslator()
    return _translator
