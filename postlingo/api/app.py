"""
FastAPI application for the blog's translation API.

Serves the on-demand translation endpoint used by the runtime cache, the
published translation map, and render-time entry selection.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field, StrictStr
from starlette.exceptions import HTTPException as StarletteHTTPException

from postlingo.config import Settings, get_settings
from postlingo.errors import InvalidRequest, PersistenceFailure, ProviderError
from postlingo.i18n.document import select_entry
from postlingo.i18n.languages import (
    SUPPORTED_LANGUAGES,
    get_language_name,
    parse_language,
)
from postlingo.i18n.provider import DeepLTranslator
from postlingo.storage.translation_map import TranslationMapStore

logger = logging.getLogger(__name__)


REQUIRED_FIELDS = "Text and targetLang are required"


# =============================================================================
# App State
# =============================================================================


class AppState:
    """Application state - initialized at startup."""

    settings: Settings
    provider: DeepLTranslator
    store: TranslationMapStore


# =============================================================================
# Request Models
# =============================================================================


class TranslateRequest(BaseModel):
    text: StrictStr = Field(min_length=1)
    targetLang: StrictStr = Field(min_length=1)


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    provider: DeepLTranslator | None = None,
    store: TranslationMapStore | None = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        settings: Defaults to environment settings
        provider: Defaults to a DeepLTranslator built from settings
        store: Defaults to the configured translation map file
    """
    settings = settings or get_settings()
    state = AppState()
    state.settings = settings
    state.provider = provider or DeepLTranslator(
        api_key=settings.deepl_api_key,
        api_url=settings.deepl_api_url,
        timeout=settings.deepl_timeout,
    )
    state.store = store or TranslationMapStore(
        settings.translations_path, settings.public_translations_path
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Report startup configuration."""
        print(f"🚀 Postlingo API starting in {settings.environment} mode")
        if not state.provider.is_configured:
            print("⚠️  DEEPL_API_KEY not set - translations pass through unchanged")
        yield
        print("👋 Postlingo API shutting down")

    app = FastAPI(
        title="Postlingo API",
        description="Markdown-safe translation for a personal blog",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.postlingo = state

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Errors are reported as {"error": message}
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": REQUIRED_FIELDS})

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "postlingo-api",
            "translation_provider": state.provider.is_configured,
        }

    @app.get("/api/languages")
    async def list_languages():
        """List all supported languages."""
        return {
            "source": settings.source_language,
            "languages": [
                {"code": lang.value, "name": get_language_name(lang.value)}
                for lang in SUPPORTED_LANGUAGES
            ],
        }

    # =========================================================================
    # Translation
    # =========================================================================

    @app.post("/api/translate")
    async def translate_text(request: TranslateRequest):
        """
        Translate a short text.

        Without a DeepL key the text comes back unchanged.
        """
        try:
            language = parse_language(request.targetLang)
        except InvalidRequest:
            raise HTTPException(status_code=400, detail="Invalid target language")

        try:
            translated = await state.provider.translate(request.text, language)
        except InvalidRequest:
            raise HTTPException(status_code=400, detail=REQUIRED_FIELDS)
        except ProviderError as e:
            logger.error(f"Translation error: {e}")
            raise HTTPException(status_code=500, detail="Translation failed")

        return {"translatedText": translated}

    # =========================================================================
    # Pre-computed translations
    # =========================================================================

    @app.get("/content/translations/translations.json")
    async def translations_file():
        """The published translation map, as a static asset."""
        path = _published_path(state.store)
        if path is None:
            raise HTTPException(status_code=404, detail="Translations not found")
        return FileResponse(path, media_type="application/json")

    @app.get("/api/translations/{doc_id}")
    async def get_document_translation(doc_id: str, lang: str | None = None):
        """
        The entry to display for one post in one language.

        Falls back to the source-language entry when no translation exists.
        """
        source = parse_language(settings.source_language)
        try:
            language = parse_language(lang) if lang else source
        except InvalidRequest:
            raise HTTPException(status_code=400, detail="Invalid target language")

        try:
            translation_map = state.store.load()
        except PersistenceFailure as e:
            logger.error(str(e))
            raise HTTPException(status_code=500, detail="Translations unavailable")

        if doc_id not in translation_map:
            raise HTTPException(status_code=404, detail="Document not found")

        entry, is_fallback = select_entry(
            translation_map, doc_id, language, source_language=source
        )
        if entry is None:
            raise HTTPException(status_code=404, detail="Document not found")

        return {
            **entry.model_dump(),
            "language": source.value if is_fallback else language.value,
            "fallback": is_fallback,
        }

    return app


def _published_path(store: TranslationMapStore) -> Path | None:
    for path in (store.public_path, store.path):
        if path is not None and path.is_file():
            return path
    return None


app = create_app()
