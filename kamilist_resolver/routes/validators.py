"""Request validation for the resolve API. Every payload field it checks is a string."""

import re
from typing import Any, Dict, List, Tuple, Optional

from sources.base import Provider


# (field name, max length)
FieldRule = Tuple[str, int]

# Safe characters for provider ids (alphanumeric, dash, underscore)
PROVIDER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')
CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]+')
WHITESPACE = re.compile(r'\s+')

MAX_QUERY_LENGTH = 300
MAX_ID_LENGTH = 500
MAX_PROVIDER_LENGTH = 32


def validate_fields(payload: Dict[str, Any], rules: List[FieldRule]) -> Optional[str]:
    """
    Check that each field is present, a non-blank string, and within its length.

    Returns:
        None if valid, or error message string.
    """
    for field, max_len in rules:
        value = payload.get(field)
        if value is None:
            return f"Missing required field: {field}"
        if not isinstance(value, str):
            return f"Field '{field}' must be a string"
        if not sanitize_string(value, max_len):
            return f"Field '{field}' must not be empty"
        if len(value) > max_len:
            return f"Field '{field}' exceeds max length {max_len}"
    return None


def validate_provider(provider_id: Optional[str], allowed: Optional[List[Provider]] = None) -> Optional[str]:
    """
    Validate a provider id against the known providers.

    Returns:
        None if valid, or error message string.
    """
    if not provider_id:
        return "Missing provider"

    if not isinstance(provider_id, str) or not PROVIDER_ID_PATTERN.match(provider_id):
        return "Invalid provider format"

    try:
        provider = Provider.parse(provider_id)
    except ValueError:
        return f"Unknown provider: {provider_id}"

    if allowed is not None and provider not in allowed:
        return f"Provider not configured: {provider_id}"
    return None


def sanitize_string(value: Any, max_length: int = MAX_ID_LENGTH) -> str:
    """Drop control characters, collapse whitespace and cut to ``max_length``."""
    if not isinstance(value, str):
        return ""
    text = CONTROL_CHARS.sub(" ", value)
    return WHITESPACE.sub(" ", text).strip()[:max_length]
