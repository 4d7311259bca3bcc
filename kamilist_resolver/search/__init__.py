"""Title normalization and relevance scoring for provider search results."""

from .normalizer import normalize, extract_keyword
from .matcher import score, cross_script_variants, contains_source_script

__all__ = [
    "normalize", "extract_keyword", "score", "cross_script_variants",
    "contains_source_script",
]
