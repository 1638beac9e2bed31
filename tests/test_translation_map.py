"""
Tests for the translation map and its file store.
"""

import json

import pytest

from postlingo.core.models import TranslationEntry
from postlingo.errors import PersistenceFailure
from postlingo.i18n.languages import Language
from postlingo.storage.translation_map import TranslationMap, TranslationMapStore


KO = TranslationEntry(title="제목", description="설명", markdown="본문")
EN = TranslationEntry(title="Title", description="Description", markdown="Body")


# =============================================================================
# TranslationMap
# =============================================================================


class TestTranslationMap:
    def test_source_entry_written_once(self):
        tm = TranslationMap()

        assert tm.put_source("doc1", "ko", KO) is True
        assert tm.put_source("doc1", "ko", KO.model_copy(update={"title": "바뀐 제목"})) is False
        assert tm.get("doc1", "ko").title == "제목"

    def test_translated_requires_markdown(self):
        tm = TranslationMap()
        tm.put("doc1", "en", TranslationEntry(title="Title"))

        assert tm.get("doc1", "en") is not None
        assert not tm.is_translated("doc1", "en")

        tm.put("doc1", "en", EN)
        assert tm.is_translated("doc1", "en")

    def test_language_members_and_codes_are_interchangeable(self):
        tm = TranslationMap()
        tm.put("doc1", Language.EN, EN)

        assert tm.get("doc1", "en") == EN
        assert tm.languages("doc1") == ["en"]

    def test_clear(self):
        tm = TranslationMap()
        tm.put("doc1", "en", EN)

        assert tm.clear("doc1", "en") is True
        assert tm.clear("doc1", "en") is False
        assert not tm.is_translated("doc1", "en")

    def test_dict_round_trip(self):
        tm = TranslationMap()
        tm.put_source("doc1", "ko", KO)
        tm.put("doc1", "en", EN)

        data = tm.to_dict()

        assert data == {"doc1": {"ko": KO.model_dump(), "en": EN.model_dump()}}
        assert TranslationMap.from_dict(data) == tm

    @pytest.mark.parametrize("data", [[], {"doc1": "oops"}, {"doc1": {"en": {"description": "x"}}}])
    def test_from_dict_rejects_bad_shapes(self, data):
        with pytest.raises(ValueError):
            TranslationMap.from_dict(data)


# =============================================================================
# TranslationMapStore
# =============================================================================


class TestTranslationMapStore:
    def test_missing_file_is_empty(self, store):
        assert len(store.load()) == 0

    def test_save_and_load(self, store):
        tm = TranslationMap()
        tm.put_source("doc1", "ko", KO)
        tm.put("doc1", "en", EN)

        store.save(tm)

        assert store.load() == tm

    def test_file_is_readable_utf8(self, store):
        tm = TranslationMap()
        tm.put_source("doc1", "ko", KO)

        store.save(tm)

        raw = store.path.read_text(encoding="utf-8")
        assert "제목" in raw
        assert json.loads(raw)["doc1"]["ko"]["markdown"] == "본문"

    def test_no_temp_files_left(self, store):
        store.save(TranslationMap())

        assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"doc1": {"en": 5}}'])
    def test_corrupt_file_is_fatal(self, store, content):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(content, encoding="utf-8")

        with pytest.raises(PersistenceFailure):
            store.load()

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = TranslationMapStore(blocker / "translations.json")

        with pytest.raises(PersistenceFailure):
            store.save(TranslationMap())

    def test_publish_copies_file(self, store):
        tm = TranslationMap()
        tm.put("doc1", "en", EN)
        store.save(tm)

        published = store.publish()

        assert published == store.public_path
        assert published.read_text(encoding="utf-8") == store.path.read_text(encoding="utf-8")

    def test_publish_without_target(self, tmp_path):
        store = TranslationMapStore(tmp_path / "translations.json")
        store.save(TranslationMap())

        assert store.publish() is None

    def test_publish_before_save(self, store):
        assert store.publish() is None
