"""
Storage.

- TranslationMapStore → the persisted translation map (JSON file + public copy)
- CacheStorage → backing store for the runtime translation cache
"""

from postlingo.storage.cache import (
    CacheStorage,
    InMemoryCacheStorage,
    JsonFileCacheStorage,
)
from postlingo.storage.translation_map import TranslationMap, TranslationMapStore

__all__ = [
    "CacheStorage",
    "InMemoryCacheStorage",
    "JsonFileCacheStorage",
    "TranslationMap",
    "TranslationMapStore",
]
