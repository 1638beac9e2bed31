"""
Tests for the batch translation job.

Core principle: a translated pair is never paid for twice, and a failed or
interrupted run leaves the map in a state the next run can finish.
"""

import json

import httpx
import pytest

from postlingo.content.source import MarkdownDirectorySource, StaticContentSource
from postlingo.core.models import Document, TranslationEntry
from postlingo.errors import ConfigurationAbsent, ContentSourceError, InvalidRequest, PersistenceFailure
from postlingo.i18n import batch
from postlingo.i18n.batch import BatchTranslationJob, PairState, RateLimitedTranslator
from postlingo.i18n.images import ImageRelocator
from postlingo.storage.translation_map import TranslationMap


TRANSIENT_URL = (
    "https://prod-files-secure.s3.us-west-2.amazonaws.com/space/abc/diagram.png"
    "?X-Amz-Signature=deadbeef&X-Amz-Expires=3600"
)
TRANSIENT_PATTERN = r"^https://prod-files-secure\.s3\.[a-z0-9-]+\.amazonaws\.com/"


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return SleepRecorder()


def make_job(documents, store, provider, sleep, **kwargs):
    kwargs.setdefault("languages", ["en", "ja"])
    kwargs.setdefault("delay", 0.5)
    return BatchTranslationJob(
        source=StaticContentSource(documents),
        store=store,
        provider=provider,
        sleep=sleep,
        **kwargs,
    )


# =============================================================================
# First run
# =============================================================================


class TestFirstRun:
    async def test_translates_every_pair(self, document, second_document, store, provider, sleep):
        report = await make_job([document, second_document], store, provider, sleep).run()

        assert report.documents == 2
        assert report.translated == 4
        assert report.failed == 0
        assert report.outcomes[("1f2e3d", "ja")] == PairState.TRANSLATED

        saved = store.load()
        assert saved.languages("1f2e3d") == ["ko", "en", "ja"]
        assert saved.get("1f2e3d", "ko").title == "첫 번째 글"
        assert saved.get("1f2e3d", "en").title == "[en] 첫 번째 글"
        assert saved.get("4a5b6c", "ja").markdown == "[ja] 두 번째 글의 본문입니다."

    async def test_protected_spans_preserved(self, document, store, provider, sleep):
        await make_job([document], store, provider, sleep).run()

        body = store.load().get("1f2e3d", "ja").markdown
        assert "```python\nprint('hello')\n```" in body
        assert "`pip install postlingo`" in body
        assert "(https://example.com/docs)" in body

    async def test_delay_between_provider_calls(self, document, store, provider, sleep):
        await make_job([document], store, provider, sleep).run()

        # title + description + body, for two languages
        assert len(provider.calls) == 6
        assert sleep.delays == [0.5] * 5

    async def test_source_language_is_not_a_target(self, document, store, provider, sleep):
        job = make_job([document], store, provider, sleep, languages=["ko", "en", "en"])

        assert job.languages == ["en"]

    async def test_map_is_published(self, document, store, provider, sleep):
        await make_job([document], store, provider, sleep).run()

        assert json.loads(store.public_path.read_text(encoding="utf-8")) == store.load().to_dict()


# =============================================================================
# Idempotency / resumability
# =============================================================================


class TestIdempotency:
    async def test_second_run_makes_no_calls(self, document, second_document, store, provider, sleep):
        await make_job([document, second_document], store, provider, sleep).run()
        before = store.path.read_bytes()
        provider.calls.clear()

        report = await make_job([document, second_document], store, provider, sleep).run()

        assert provider.calls == []
        assert report.translated == 0
        assert report.skipped == 4
        assert store.path.read_bytes() == before

    async def test_only_missing_pairs_translated(self, document, store, provider, sleep):
        existing = TranslationMap()
        existing.put("1f2e3d", "en", TranslationEntry(title="Done", description="d", markdown="done"))
        store.save(existing)

        report = await make_job([document], store, provider, sleep).run()

        assert report.outcomes[("1f2e3d", "en")] == PairState.SKIPPED
        assert report.outcomes[("1f2e3d", "ja")] == PairState.TRANSLATED
        assert provider.texts_for("en") == []
        assert store.load().get("1f2e3d", "en").title == "Done"

    async def test_source_entry_never_overwritten(self, document, store, provider, sleep):
        existing = TranslationMap()
        existing.put_source("1f2e3d", "ko", TranslationEntry(title="원래 제목", markdown="원래 본문"))
        store.save(existing)

        await make_job([document], store, provider, sleep).run()

        assert store.load().get("1f2e3d", "ko").title == "원래 제목"

    async def test_crash_keeps_finished_posts(self, document, second_document, store, make_provider, sleep):
        crashing = make_provider(
            fail_on=lambda text, lang: "두 번째" in text,
            error=RuntimeError("process killed"),
        )

        with pytest.raises(RuntimeError):
            await make_job([document, second_document], store, crashing, sleep).run()

        saved = store.load()
        assert saved.is_translated("1f2e3d", "en")
        assert saved.is_translated("1f2e3d", "ja")
        assert "4a5b6c" not in saved

        resumed = make_provider()
        report = await make_job([document, second_document], store, resumed, sleep).run()

        assert report.skipped == 2
        assert report.translated == 2
        assert all("두 번째" in text for text, _, _ in resumed.calls)


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    async def test_failed_pair_retried_next_run(self, document, store, make_provider, sleep):
        flaky = make_provider(fail_on=lambda text, lang: lang.value == "ja")

        report = await make_job([document], store, flaky, sleep).run()

        assert report.outcomes[("1f2e3d", "ja")] == PairState.FAILED
        assert report.outcomes[("1f2e3d", "en")] == PairState.TRANSLATED
        assert store.load().get("1f2e3d", "ja") is None

        report = await make_job([document], store, make_provider(), sleep).run()

        assert report.outcomes[("1f2e3d", "ja")] == PairState.TRANSLATED
        assert report.outcomes[("1f2e3d", "en")] == PairState.SKIPPED

    async def test_refuses_to_run_without_credentials(self, document, store, make_provider, sleep):
        unconfigured = make_provider(configured=False)

        with pytest.raises(ConfigurationAbsent):
            await make_job([document], store, unconfigured, sleep).run()

        assert unconfigured.calls == []
        assert not store.path.exists()

    async def test_corrupt_map_is_fatal(self, document, store, provider, sleep):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{broken", encoding="utf-8")

        with pytest.raises(PersistenceFailure):
            await make_job([document], store, provider, sleep).run()

        assert provider.calls == []

    async def test_unreachable_content_source(self, tmp_path, store, provider, sleep):
        job = BatchTranslationJob(
            source=MarkdownDirectorySource(tmp_path / "missing"),
            store=store,
            provider=provider,
            languages=["en"],
            sleep=sleep,
        )

        with pytest.raises(ContentSourceError):
            await job.run()

    @pytest.mark.parametrize("lang", ["en-US", "JA", "English"])
    def test_inexact_language_code_rejected(self, document, store, provider, sleep, lang):
        with pytest.raises(InvalidRequest):
            make_job([document], store, provider, sleep, languages=[lang])


# =============================================================================
# Clearing pairs
# =============================================================================


class TestClear:
    async def test_cleared_pair_is_retranslated(self, document, store, provider, sleep):
        await make_job([document], store, provider, sleep).run()
        provider.calls.clear()

        report = await make_job([document], store, provider, sleep, clear=[("1f2e3d", "en")]).run()

        assert report.outcomes[("1f2e3d", "en")] == PairState.TRANSLATED
        assert report.outcomes[("1f2e3d", "ja")] == PairState.SKIPPED
        assert len(provider.texts_for("en")) == 3

    def test_source_entry_cannot_be_cleared(self, document, store, provider, sleep):
        with pytest.raises(InvalidRequest):
            make_job([document], store, provider, sleep, clear=[("1f2e3d", "ko")])


# =============================================================================
# Images
# =============================================================================


class TestImages:
    @staticmethod
    def make_relocator(tmp_path, requests):
        def handler(request):
            requests.append(str(request.url))
            return httpx.Response(200, content=b"\x89PNG fake")

        return ImageRelocator(
            image_dir=tmp_path / "images",
            url_prefix="/images/posts",
            transient_pattern=TRANSIENT_PATTERN,
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            retry_wait=False,
        )

    async def test_transient_images_relocated_once(self, tmp_path, store, provider, sleep):
        doc = Document(id="img", title="사진", markdown=f"다이어그램\n\n![구조]({TRANSIENT_URL})")
        requests = []
        relocator = self.make_relocator(tmp_path, requests)

        await make_job([doc], store, provider, sleep, relocator=relocator).run()

        local = f"/images/posts/{relocator.local_name(TRANSIENT_URL)}"
        saved = store.load()
        for lang in ("ko", "en", "ja"):
            assert f"![구조]({local})" in saved.get("img", lang).markdown
            assert "amazonaws" not in saved.get("img", lang).markdown
        assert len(requests) == 1
        assert (tmp_path / "images" / relocator.local_name(TRANSIENT_URL)).read_bytes() == b"\x89PNG fake"

        again = []
        await make_job([doc], store, provider, sleep, relocator=self.make_relocator(tmp_path, again)).run()

        assert again == []

    async def test_failed_download_keeps_url(self, tmp_path, store, provider, sleep):
        doc = Document(id="img", title="사진", markdown=f"![구조]({TRANSIENT_URL})")
        relocator = ImageRelocator(
            image_dir=tmp_path / "images",
            url_prefix="/images/posts",
            transient_pattern=TRANSIENT_PATTERN,
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(403))),
            attempts=2,
            retry_wait=False,
        )

        await make_job([doc], store, provider, sleep, relocator=relocator).run()

        assert store.load().get("img", "ko").markdown == f"![구조]({TRANSIENT_URL})"

    def test_local_name_ignores_signature(self, tmp_path):
        relocator = self.make_relocator(tmp_path, [])
        other_signature = TRANSIENT_URL.replace("deadbeef", "cafebabe")

        assert relocator.local_name(TRANSIENT_URL) == relocator.local_name(other_signature)
        assert relocator.local_name(TRANSIENT_URL).endswith(".png")
        assert not relocator.is_transient("https://example.com/a.png")


# =============================================================================
# Rate limiter
# =============================================================================


class TestRateLimitedTranslator:
    async def test_no_wait_before_first_call(self, provider, sleep):
        limited = RateLimitedTranslator(provider, 2.0, sleep)

        await limited.translate("하나", "en")
        await limited.translate("둘", "en")
        await limited.translate("셋", "ja", ignore_tags=("x",))

        assert sleep.delays == [2.0, 2.0]
        assert limited.calls == 3
        assert provider.calls[2][2] == ("x",)


# =============================================================================
# CLI
# =============================================================================


POST = """---
id: cli-post
title: 명령줄에서
status: Published
---
본문입니다.
"""


class TestCli:
    def test_success(self, tmp_path, monkeypatch, provider):
        content = tmp_path / "posts"
        content.mkdir()
        (content / "cli-post.md").write_text(POST, encoding="utf-8")
        monkeypatch.setattr(batch, "DeepLTranslator", lambda: provider)

        code = batch.main([
            "--content-dir", str(content),
            "--map", str(tmp_path / "translations.json"),
            "--public-map", str(tmp_path / "public" / "translations.json"),
            "--languages", "en",
            "--delay", "0",
            "--no-images",
            "--quiet",
        ])

        assert code == 0
        data = json.loads((tmp_path / "translations.json").read_text(encoding="utf-8"))
        assert data["cli-post"]["en"]["title"] == "[en] 명령줄에서"
        assert (tmp_path / "public" / "translations.json").exists()

    def test_missing_key_exits_nonzero(self, tmp_path):
        content = tmp_path / "posts"
        content.mkdir()

        code = batch.main([
            "--content-dir", str(content),
            "--map", str(tmp_path / "translations.json"),
            "--no-images",
            "--quiet",
        ])

        assert code == 1
        assert not (tmp_path / "translations.json").exists()

    def test_bad_clear_argument(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            batch.main(["--content-dir", str(tmp_path), "--clear", "no-language", "--quiet"])

        assert exc_info.value.code == 2
