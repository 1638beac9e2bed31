"""
Shared fixtures.

FakeProvider stands in for DeepL: it records every call and "translates"
by prefixing the target language, so tests can see exactly what was sent.
"""

import pytest

from postlingo.config import get_settings
from postlingo.core.models import Document
from postlingo.errors import ProviderError
from postlingo.i18n.languages import parse_language
from postlingo.storage.translation_map import TranslationMapStore


class FakeProvider:
    """Records calls; output is `[lang] text`."""

    def __init__(self, fail_on=None, error=None, configured=True):
        self.calls = []
        self.is_configured = configured
        self.fail_on = fail_on
        self.error = error or ProviderError("DeepL API error: 503 Service Unavailable", status_code=503)

    async def translate(self, text, target, *, ignore_tags=()):
        language = parse_language(target)
        self.calls.append((text, language, ignore_tags))
        if self.fail_on is not None and self.fail_on(text, language):
            raise self.error
        return f"[{language.value}] {text}"

    def texts_for(self, language):
        return [text for text, lang, _ in self.calls if lang == parse_language(language)]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """No real credentials leak into tests."""
    monkeypatch.delenv("DEEPL_API_KEY", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def provider():
    """A provider that always succeeds."""
    return FakeProvider()


@pytest.fixture
def make_provider():
    """Factory for providers that fail on demand."""
    return FakeProvider


@pytest.fixture
def document():
    """A published post with code, a link and an image."""
    return Document(
        id="1f2e3d",
        title="첫 번째 글",
        description="블로그를 시작하며",
        markdown=(
            "# 안녕하세요\n\n"
            "설치는 `pip install postlingo` 로 합니다.\n\n"
            "```python\nprint('hello')\n```\n\n"
            "자세한 내용은 [문서](https://example.com/docs)를 보세요.\n"
        ),
        tags=["intro"],
        author="Jane",
        date="2024-05-01",
    )


@pytest.fixture
def second_document():
    return Document(
        id="4a5b6c",
        title="두 번째 글",
        description="",
        markdown="두 번째 글의 본문입니다.",
    )


@pytest.fixture
def store(tmp_path):
    """Translation map store in a temp directory."""
    return TranslationMapStore(
        tmp_path / "content" / "translations.json",
        tmp_path / "public" / "translations.json",
    )
