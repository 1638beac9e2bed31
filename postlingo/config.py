"""
Application configuration.

Loads settings from environment variables (and .env / .env.local files)
with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Translation provider (DeepL)
    # ==========================================================================

    deepl_api_key: str = ""
    deepl_api_url: str = "https://api-free.deepl.com/v2/translate"
    deepl_timeout: float = 30.0

    # "text" -> __PLACEHOLDER_n__ tokens, "tag" -> inert <x id="n"/> tags
    placeholder_style: str = "text"

    # ==========================================================================
    # Languages
    # ==========================================================================

    source_language: str = "ko"
    target_languages: str = "en,ja"

    # ==========================================================================
    # Batch job
    # ==========================================================================

    content_dir: str = "content/posts"
    translations_path: str = "content/translations/translations.json"
    public_translations_path: str = "public/content/translations/translations.json"
    image_dir: str = "public/images/posts"
    image_url_prefix: str = "/images/posts"
    # Signed, expiring file URLs handed out by the content store
    transient_image_pattern: str = (
        r"^https://prod-files-secure\.s3\.[a-z0-9-]+\.amazonaws\.com/"
    )
    request_delay: float = 1.0

    # ==========================================================================
    # Runtime cache
    # ==========================================================================

    runtime_cache_path: str = ".cache/translation-cache.json"
    runtime_cache_version: str = "v1"
    translate_endpoint_url: str = "http://localhost:8000/api/translate"

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def target_language_list(self) -> list[str]:
        return [code.strip() for code in self.target_languages.split(",") if code.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
