"""Text classifiers and name/symbol extraction for mint requests."""

import re
from dataclasses import dataclass
from typing import Callable, Optional

MAX_NAME_LENGTH = 30
MAX_INITIALS_SYMBOL_LENGTH = 10
MAX_WORD_SYMBOL_LENGTH = 4
SHORT_FORM_MAX_TOKENS = 4

POST_MINT_PHRASES = (
    "mint this post",
    "mint this cast",
    "tokenize this post",
    "tokenize this cast",
    "token this cast",
    "coin this cast",
    "coinify this cast",
    "turn this into a token",
    "turn this into a coin",
    "create token from this",
    "create a token from this",
)
SHORT_FORM_PHRASE = "mint this"

# Words that introduce another field rather than a value
FIELD_KEYWORDS = {"name", "ticker", "symbol"}

_UNSAFE_CHARS = re.compile(r"[^\w\s\-.']")
_SURROUNDING_QUOTES = re.compile(r"""^["'](.+)["']$""")


@dataclass(frozen=True)
class ExtractionRule:
    """A regex and the function that turns its match into a value (or None to keep looking)."""

    pattern: re.Pattern
    extract: Callable[[re.Match], Optional[str]]


def _group(match: re.Match) -> Optional[str]:
    value = match.group(1).strip()
    return value or None


def _value_not_keyword(match: re.Match) -> Optional[str]:
    value = match.group(1).strip()
    if not value or value.split()[0].lower().rstrip(":") in FIELD_KEYWORDS:
        return None
    return value


NAME_RULES: list[ExtractionRule] = [
    # name: Something / name: "Something"
    ExtractionRule(re.compile(r"""\bname\s*:\s*["']?([^"',;:\n]+)["']?""", re.IGNORECASE), _group),
    # token called "Something with spaces"
    ExtractionRule(
        re.compile(r"""\b(?:token|coin)\s+(?:called|named)\s+["']([^"']+)["']""", re.IGNORECASE),
        _group,
    ),
    # token called Something
    ExtractionRule(
        re.compile(r"\b(?:token|coin)\s+(?:called|named)\s+([^,;:\n]+)", re.IGNORECASE),
        _value_not_keyword,
    ),
    # create a token: Something
    ExtractionRule(
        re.compile(r"\bcreate\s+(?:a\s+)?(?:coin|token)\s*:\s*([^,;\n]+)", re.IGNORECASE),
        _value_not_keyword,
    ),
    # mint this content: Something, ticker: SYM
    ExtractionRule(
        re.compile(
            r"""\b(?:mint|coin)\s+this(?:\s+content)?\s*:\s*["']?([^"',;:\n]+)["']?""",
            re.IGNORECASE,
        ),
        _value_not_keyword,
    ),
]

SYMBOL_RULES: list[ExtractionRule] = [
    ExtractionRule(re.compile(r"""\bticker\s*:\s*["']?\$?([^"',;:\n]+)["']?""", re.IGNORECASE), _group),
    ExtractionRule(re.compile(r"""\bsymbol\s*:\s*["']?\$?([^"',;:\n]+)["']?""", re.IGNORECASE), _group),
    ExtractionRule(re.compile(r"(?:^|\s)\$([A-Za-z0-9]{1,10})\b"), _group),
]


def _first_match(rules: list[ExtractionRule], text: str) -> Optional[str]:
    for rule in rules:
        match = rule.pattern.search(text)
        if match:
            value = rule.extract(match)
            if value:
                return value
    return None


def sanitize(value: str) -> str:
    """Drop characters outside word, whitespace, hyphen, period and apostrophe."""
    return _UNSAFE_CHARS.sub("", value).strip()


def sanitize_name(name: str) -> str:
    cleaned = _SURROUNDING_QUOTES.sub(r"\1", name.strip())
    return sanitize(cleaned)[:MAX_NAME_LENGTH].strip()


def sanitize_symbol(symbol: str) -> str:
    return sanitize(symbol).upper()


def is_post_mint_request(text: str) -> bool:
    """Whether the text asks to tokenize the post itself rather than an attached image."""
    if not text:
        return False

    lowered = text.lower()
    if any(phrase in lowered for phrase in POST_MINT_PHRASES):
        return True

    return SHORT_FORM_PHRASE in lowered and len(lowered.split()) <= SHORT_FORM_MAX_TOKENS


def extract_explicit_name(text: str) -> Optional[str]:
    """Return a user-stated token name, preserving case and spacing."""
    if not text:
        return None
    raw = _first_match(NAME_RULES, text)
    if raw is None:
        return None
    return sanitize_name(raw) or None


def extract_explicit_symbol(text: str) -> Optional[str]:
    """Return a user-stated ticker, upper-cased."""
    if not text:
        return None
    raw = _first_match(SYMBOL_RULES, text)
    if raw is None:
        return None
    return sanitize_symbol(raw) or None


def generate_symbol_from_name(name: str) -> str:
    """Derive a ticker from a name.

    Multi-word names use their initials (up to 10 characters); single words
    are upper-cased and cut to 4 characters.
    """
    words = sanitize(name).split()
    if not words:
        return ""
    if len(words) > 1:
        return "".join(word[0] for word in words).upper()[:MAX_INITIALS_SYMBOL_LENGTH]
    return words[0].upper()[:MAX_WORD_SYMBOL_LENGTH]
