"""
================================================================================
Kamilist Resolver - Relevance Scorer
================================================================================
Scores how well a provider's result title matches the user's query (0-100).

Providers rarely agree on title formatting, and a Japanese query will often
only match an English or romanized result. Rules, first match wins:

  1. Exact match (after normalization)           -> 100
  2. Result contains query / query contains result -> 90 / 85
  3. Both sides hit the same equivalence group     -> 80
  4. Token overlap + start/length/script bonuses   -> capped at 100

The scorer is NOT symmetric: the script bonus only rewards a source-script
query that found a Latin-script result.
================================================================================
"""

import re
from collections import namedtuple
from typing import List

from .normalizer import normalize


EquivalenceGroup = namedtuple("EquivalenceGroup", ["source", "latin"])

# Source-script fragments and their known Latin-script renderings
EQUIVALENCE_GROUPS = (
    EquivalenceGroup(("地雷",), ("jirai", "landmine", "dangerous")),
    EquivalenceGroup(("地原",), ("chihara",)),
    EquivalenceGroup(("なんですか",), ("desu ka", "what is", "is it")),
    EquivalenceGroup(("進撃の巨人",), ("attack on titan", "shingeki no kyojin")),
    EquivalenceGroup(("鬼滅の刃",), ("demon slayer", "kimetsu no yaiba")),
)

# Hiragana, Katakana, CJK unified ideographs
SOURCE_SCRIPT = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF]")
SEPARATORS = re.compile(r"[:\-\s]+")

MIN_TOKEN_LENGTH = 3

EXACT_SCORE = 100
RESULT_CONTAINS_QUERY = 90
QUERY_CONTAINS_RESULT = 85
EQUIVALENCE_SCORE = 80
START_BONUS = 10
LENGTH_BONUS_MAX = 20
SCRIPT_BONUS = 15


def contains_source_script(text: str) -> bool:
    return bool(text) and bool(SOURCE_SCRIPT.search(text))


def comparable(title: str) -> str:
    """Normalized, lowercased, with ':' '-' and whitespace runs as one space."""
    return SEPARATORS.sub(" ", normalize(title).lower()).strip()


def _tokens(text: str) -> List[str]:
    return [word for word in text.split(" ") if len(word) >= MIN_TOKEN_LENGTH]


def _hits_group(text: str, group: EquivalenceGroup) -> bool:
    return any(term in text for term in group.source + group.latin)


def score(query_title: str, candidate_title: str) -> float:
    """
    Relevance of ``candidate_title`` for ``query_title`` in [0, 100].

    Example:
        >>> score("One Piece", "One Piece")
        100
        >>> score("One Piece", "One Piece: Strong World")
        90
    """
    query = comparable(query_title)
    candidate = comparable(candidate_title)
    if not query and not candidate:
        # Separator-only titles (":", "--") only match themselves
        plain = normalize(query_title).lower()
        return EXACT_SCORE if plain and plain == normalize(candidate_title).lower() else 0
    if not query or not candidate:
        return 0

    # =========================================================================
    # WHOLE-STRING RULES
    # =========================================================================

    if query == candidate:
        return EXACT_SCORE
    if query in candidate:
        return RESULT_CONTAINS_QUERY
    if candidate in query:
        return QUERY_CONTAINS_RESULT

    for group in EQUIVALENCE_GROUPS:
        if _hits_group(query, group) and _hits_group(candidate, group):
            return EQUIVALENCE_SCORE

    # =========================================================================
    # TOKEN OVERLAP
    # =========================================================================

    query_tokens = _tokens(query)
    candidate_tokens = _tokens(candidate)
    if not query_tokens or not candidate_tokens:
        return 0

    matches = 0
    for query_token in query_tokens:
        for candidate_token in candidate_tokens:
            if query_token in candidate_token or candidate_token in query_token:
                matches += 1
    if matches == 0:
        return 0

    total = matches / len(query_tokens) * 100
    if candidate.startswith(query_tokens[0]):
        total += START_BONUS
    total += max(0, LENGTH_BONUS_MAX - abs(len(candidate) - len(query)))
    if contains_source_script(query) and not contains_source_script(candidate):
        total += SCRIPT_BONUS

    return min(100, total)


def cross_script_variants(query: str) -> List[str]:
    """
    Latin-script search terms for a source-script query.

    "地雷なんですか？地原さん" -> ["jirai", "landmine", "dangerous",
                                  "chihara", "desu ka", "what is", "is it"]
    """
    if not contains_source_script(query):
        return []

    text = normalize(query)
    variants = []
    for group in EQUIVALENCE_GROUPS:
        if any(fragment in text for fragment in group.source):
            for term in group.latin:
                if term not in variants:
                    variants.append(term)
    return variants
