"""
Placeholder codec - keeps markdown constructs out of machine translation.

extract() swaps every span that must survive translation verbatim (code,
images, link URLs, raw HTML) for an inert token; restore() puts the spans
back after the provider has done its work.

Providers do not always leave tokens alone. DeepL has been seen to
lower-case them, drop or escape the underscores, turn underscores into
spaces, use full-width underscores, and transliterate the word itself
into katakana when translating into Japanese. Each PlaceholderStyle
therefore carries a list of variant templates that restore() recognises.
The list is data: build your own PlaceholderStyle to extend it.

Usage:
    protected, table = extract(markdown)
    translated = await provider.translate(protected, "en")
    result = restore(translated, table)
    result.text, result.unresolved
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Iterator

from postlingo.core.models import PlaceholderToken

logger = logging.getLogger(__name__)


# =============================================================================
# Styles
# =============================================================================


@dataclass(frozen=True)
class PlaceholderStyle:
    """
    How tokens are rendered and which mangled forms are accepted back.

    The first template is the canonical rendering. Templates use `{name}`
    and `{index}` fields.
    """

    name: str
    templates: tuple[str, ...]
    aliases: tuple[str, ...] = ()  # Transliterations of `name`
    is_tag: bool = False

    @property
    def ignore_tags(self) -> tuple[str, ...]:
        """Tags the provider should pass through untouched."""
        return (self.name,) if self.is_tag else ()

    def render(self, index: int) -> str:
        return self.templates[0].format(name=self.name, index=index)

    def renamed(self, name: str) -> PlaceholderStyle:
        return replace(self, name=name, aliases=())

    def variants(self, index: int) -> list[str]:
        """All accepted spellings of one token, longest first."""
        forms: list[str] = []
        for name in (self.name, *self.aliases):
            for template in self.templates:
                form = template.format(name=name, index=index)
                if form not in forms:
                    forms.append(form)
        return sorted(forms, key=len, reverse=True)

    def canonical_pattern(self) -> re.Pattern[str]:
        """Exact canonical tokens of any index; group 1 is the index."""
        return re.compile(_template_regex(self.templates[0], self.name, r"(\d+)"))

    def occurs_in(self, text: str) -> bool:
        """Whether `text` already contains something restore() would treat as a token."""
        alternatives = [
            _template_regex(template, name, r"\d+")
            for name in (self.name, *self.aliases)
            for template in self.templates
        ]
        return re.search("|".join(alternatives), text, re.IGNORECASE) is not None


def _template_regex(template: str, name: str, index_pattern: str) -> str:
    parts = [re.escape(part.format(name=name)) for part in template.split("{index}")]
    pattern = index_pattern.join(parts)
    if template.endswith("{index}"):
        pattern += r"(?!\d)"  # token 1 must not match the start of token 10
    return pattern


TEXT_STYLE = PlaceholderStyle(
    name="PLACEHOLDER",
    templates=(
        "__{name}_{index}__",
        "\\_\\_{name}\\_{index}\\_\\_",  # markdown-escaped
        "＿＿{name}＿{index}＿＿",  # full-width underscores
        "  {name} {index}  ",  # underscores became spaces
        "{name}_{index}__",
        "__{name}_{index}",
        "{name}_{index}",
        "{name} {index}",
        "{name}-{index}",
        "{name}＿{index}",
    ),
    aliases=("プレースホルダー", "プレースホルダ"),
)


TAG_STYLE = PlaceholderStyle(
    name="x",
    templates=(
        '<{name} id="{index}"/>',
        '<{name} id="{index}" />',
        "<{name} id='{index}'/>",
        "<{name} id='{index}' />",
        '<{name} id="{index}"></{name}>',
    ),
    is_tag=True,
)


STYLES: dict[str, PlaceholderStyle] = {
    "text": TEXT_STYLE,
    "tag": TAG_STYLE,
}


def get_style(name: str) -> PlaceholderStyle:
    """Look up a built-in style by its settings name."""
    try:
        return STYLES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown placeholder style: {name!r}") from None


# =============================================================================
# Token table / restore result
# =============================================================================


@dataclass
class TokenTable:
    """Tokens produced by one extraction pass, keyed by index."""

    style: PlaceholderStyle
    tokens: dict[int, PlaceholderToken] = field(default_factory=dict)
    _next_index: int = 0

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> Iterator[PlaceholderToken]:
        return iter(self.tokens.values())

    def __contains__(self, index: int) -> bool:
        return index in self.tokens

    @property
    def indices(self) -> list[int]:
        return sorted(self.tokens)

    def add(self, original: str) -> PlaceholderToken:
        token = PlaceholderToken(index=self._next_index, original=original)
        self.tokens[token.index] = token
        self._next_index += 1
        return token

    def absorb(self, index: int) -> str:
        """Remove a token that became part of a larger protected span."""
        return self.tokens.pop(index).original

    def original(self, index: int) -> str:
        return self.tokens[index].original


@dataclass
class RestoreResult:
    text: str
    unresolved: list[int] = field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)


# =============================================================================
# Extraction
# =============================================================================


# Applied in order; later patterns only see what earlier ones left behind.
_FENCED_CODE = re.compile(r"(`{3,}|~{3,})[\s\S]*?\1")
_INLINE_CODE = re.compile(r"(`+)(?!`).+?(?<!`)\1(?!`)")
_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BLOCK_HTML = re.compile(
    r"<!--[\s\S]*?-->"
    r"|<(details|pre|table|script|style|svg)\b[^>]*>[\s\S]*?</\1\s*>",
    re.IGNORECASE,
)
_INLINE_HTML = re.compile(r"<(?:/?[A-Za-z][\w:-]*|!)[^<>]*>")


class _Extractor:
    def __init__(self, style: PlaceholderStyle):
        self.table = TokenTable(style=style)
        self._canonical = style.canonical_pattern()

    def run(self, markdown: str) -> str:
        text = _FENCED_CODE.sub(self._protect_match, markdown)
        text = _INLINE_CODE.sub(self._protect_match, text)
        text = _IMAGE.sub(self._protect_match, text)
        text = _LINK.sub(self._protect_link_url, text)
        text = _BLOCK_HTML.sub(self._protect_match, text)
        text = _INLINE_HTML.sub(self._protect_match, text)
        return text

    def _protect_match(self, match: re.Match[str]) -> str:
        return self._protect(match.group(0))

    def _protect_link_url(self, match: re.Match[str]) -> str:
        return f"[{match.group(1)}]({self._protect(match.group(2))})"

    def _protect(self, span: str) -> str:
        existing = self._canonical.fullmatch(span)
        if existing and int(existing.group(1)) in self.table:
            return span
        # Earlier tokens inside this span are folded back into its original
        original = self._canonical.sub(self._absorb, span)
        return self.table.style.render(self.table.add(original).index)

    def _absorb(self, match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index not in self.table:
            return match.group(0)
        return self.table.absorb(index)


def _candidate_styles(style: PlaceholderStyle) -> Iterator[PlaceholderStyle]:
    yield style
    suffix = "X"
    while True:
        yield style.renamed(style.name + suffix)
        suffix += "X"


def extract(markdown: str, style: PlaceholderStyle = TEXT_STYLE) -> tuple[str, TokenTable]:
    """
    Replace untranslatable spans with placeholder tokens.

    If the document already contains text that looks like one of the
    style's tokens, the token name is extended until it no longer collides,
    so restore(*extract(m)).text == m always holds.

    Args:
        markdown: Raw markdown
        style: Token style to use

    Returns:
        Tuple of (protected_text, token_table)
    """
    for candidate in _candidate_styles(style):
        if not candidate.occurs_in(markdown):
            break
    if candidate is not style:
        logger.debug(f"Placeholder name collides with document text, using {candidate.name!r}")

    extractor = _Extractor(candidate)
    protected = extractor.run(markdown)
    return protected, extractor.table


# =============================================================================
# Restoration
# =============================================================================


def _restore_pattern(table: TokenTable) -> re.Pattern[str]:
    # Highest index first, longest spelling first, one named group per token
    groups = []
    for index in sorted(table.indices, reverse=True):
        alternatives = []
        for variant in table.style.variants(index):
            pattern = re.escape(variant)
            if variant.endswith(str(index)):
                pattern += r"(?!\d)"
            alternatives.append(pattern)
        groups.append(f"(?P<t{index}>{'|'.join(alternatives)})")
    return re.compile("|".join(groups), re.IGNORECASE)


def restore(translated_text: str, table: TokenTable) -> RestoreResult:
    """
    Put protected spans back into translated text.

    Runs a single pass, so restored content is never rescanned. Tokens that
    cannot be found are reported in `unresolved` and logged; this never
    raises.

    Args:
        translated_text: Provider output
        table: Token table from extract()

    Returns:
        RestoreResult with the final text and unresolved token indices
    """
    if not len(table):
        return RestoreResult(text=translated_text)

    found: set[int] = set()

    def _replace(match: re.Match[str]) -> str:
        index = int(match.lastgroup[1:])
        found.add(index)
        return table.original(index)

    text = _restore_pattern(table).sub(_replace, translated_text)
    unresolved = [index for index in table.indices if index not in found]
    if unresolved:
        logger.warning(
            f"Restoration mismatch: {len(unresolved)} placeholder(s) not found "
            f"in translated text (indices {unresolved}); leaving text as-is"
        )
    return RestoreResult(text=text, unresolved=unresolved)
