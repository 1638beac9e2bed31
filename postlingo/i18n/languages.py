"""
Supported languages and utilities.

The blog is authored in Korean and offered in English and Japanese. The set
is closed: any other code is invalid input.
"""

from __future__ import annotations

from enum import Enum

from postlingo.errors import InvalidRequest


class Language(str, Enum):
    """Supported display languages."""

    KO = "ko"  # Korean (source)
    EN = "en"  # English
    JA = "ja"  # Japanese


SOURCE_LANGUAGE = Language.KO


# Human-readable names, in the language itself (for the selector)
LANGUAGE_NAMES: dict[str, str] = {
    "ko": "한국어",
    "en": "English",
    "ja": "日本語",
}


# Target codes expected by DeepL
DEEPL_LANG_MAP: dict[Language, str] = {
    Language.KO: "KO",
    Language.EN: "EN",
    Language.JA: "JA",
}


SUPPORTED_LANGUAGES = list(Language)


# =============================================================================
# Utilities
# =============================================================================


def get_language_name(code: str) -> str:
    """Get human-readable language name."""
    return LANGUAGE_NAMES.get(code.lower(), code)


def parse_language(code: str | Language) -> Language:
    """
    Parse a language code, rejecting anything outside the supported set.

    Only the exact codes "ko", "en" and "ja" are accepted.

    Raises:
        InvalidRequest: If the code is not supported
    """
    if isinstance(code, Language):
        return code
    try:
        return Language(code)
    except ValueError:
        raise InvalidRequest(f"Unsupported language: {code!r}") from None


def parse_language_list(codes: list[str | Language]) -> list[Language]:
    """Parse several codes, dropping duplicates but keeping order."""
    result: list[Language] = []
    for code in codes:
        language = parse_language(code)
        if language not in result:
            result.append(language)
    return result
