"""
================================================================================
Kamilist Resolver - Title Normalizer
================================================================================
Display titles arrive full of decoration ("★Oshi no Ko★", "【推しの子】",
"Title: The Long Subtitle (Official)"). Provider search endpoints do
much better with a short, clean keyword.

  normalize()        -> cleaned full title (case preserved, idempotent)
  extract_keyword()  -> 1-2 high-signal words from before the first delimiter
================================================================================
"""

import re


# =============================================================================
# CHARACTER TABLES
# =============================================================================

DECORATIVE_GLYPHS = "★☆♪♫♥♡◆◇▲△●○■□※"

FULL_WIDTH_PUNCTUATION = {
    "！": "!",
    "？": "?",
    "：": ":",
    "；": ";",
    "，": ",",
    "。": ".",
    "（": "(",
    "）": ")",
    "【": "[",
    "】": "]",
    "「": '"',
    "」": '"',
    "『": "'",
    "』": "'",
    "　": " ",
}

_TRANSLATION = str.maketrans(
    {**{glyph: None for glyph in DECORATIVE_GLYPHS}, **FULL_WIDTH_PUNCTUATION}
)

WHITESPACE = re.compile(r"\s+")

# Colon, en/em dash, spaced hyphen, pipe, opening bracket/paren.
# A hyphen inside a word ("Re-Zero") is not a delimiter.
STRONG_DELIMITER = re.compile(r"\s*(?::|–|—|\s-\s|\||\[|\()")

WRAPPING_PAIRS = (('"', '"'), ("'", "'"), ("[", "]"), ("(", ")"), ("<", ">"))
EDGE_QUOTES = "\"'`"
EDGE_PUNCTUATION = ".,!?;:\"'`()[]{}<>"

STOPWORDS = {
    "the", "a", "an", "of", "and", "or", "in", "on", "at", "to", "for",
    "with", "by", "from", "is", "are", "be",
    # romanized Japanese particles
    "no", "wa", "ga", "wo", "ni", "de",
}

NUMERIC_WORD = re.compile(r"^\d+(?:[.,]\d+)*$")


# =============================================================================
# PUBLIC API
# =============================================================================

def normalize(title: str) -> str:
    """
    Remove decorative glyphs, map full-width punctuation to ASCII and
    collapse whitespace. ``normalize(normalize(t)) == normalize(t)``.
    """
    if not title:
        return ""
    cleaned = str(title).translate(_TRANSLATION)
    return WHITESPACE.sub(" ", cleaned).strip()


def _strip_wrapping(text: str) -> str:
    changed = True
    while changed and len(text) >= 2:
        changed = False
        for opening, closing in WRAPPING_PAIRS:
            if text.startswith(opening) and text.endswith(closing):
                text = text[1:-1].strip()
                changed = True
                break
    return text.strip(EDGE_QUOTES).strip()


def _is_meaningful(word: str) -> bool:
    if len(word) < 2:
        return False
    if word.lower() in STOPWORDS:
        return False
    return not NUMERIC_WORD.match(word)


def extract_keyword(title: str) -> str:
    """
    Reduce a display title to a short search keyword.

    "Some Title: Subtitle Extra" -> "Some"
    "Dr. Stone"                  -> "Dr Stone"   (two-letter heads keep the next word)
    "The 100"                    -> "The 100"    (nothing meaningful, normalized title)
    """
    normalized = normalize(title)
    if not normalized:
        return ""

    text = _strip_wrapping(normalized)
    head = STRONG_DELIMITER.split(text, maxsplit=1)[0].strip()
    if not head:
        head = text

    words = []
    for raw_word in head.split(" "):
        word = raw_word.strip(EDGE_PUNCTUATION)
        if _is_meaningful(word):
            words.append(word)

    if not words:
        return normalized
    if len(words[0]) <= 2 and len(words) > 1:
        return f"{words[0]} {words[1]}"
    return words[0]
