"""Resolution API Blueprint.

JSON endpoints over the ResolutionOrchestrator: search with provider
fallback, then chapter lists and page locations dispatched to the provider
that produced them.
"""

from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from sources.base import Provider
from sources.errors import (
    AllProvidersExhaustedError, ProviderUnavailableError, TransportError
)
from kamilist_resolver.log import logger
from kamilist_resolver.messages import describe_failure
from kamilist_resolver.resolver import ResolutionOrchestrator, ResolutionPreferences
from .validators import (
    MAX_ID_LENGTH, MAX_PROVIDER_LENGTH, MAX_QUERY_LENGTH, sanitize_string, validate_fields, validate_provider
)


resolve_bp = Blueprint('resolve_api', __name__, url_prefix='/api')


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _orchestrator() -> ResolutionOrchestrator:
    return current_app.extensions['kamilist_orchestrator']


def _default_preferences() -> ResolutionPreferences:
    return current_app.extensions['kamilist_config'].default_preferences


def _error(message: str, code: str = 'invalid_request', status: int = 400, **extra):
    payload = {'error': message, 'code': code}
    payload.update(extra)
    return jsonify(payload), status


def _provider_error(provider_id: Optional[str]) -> Optional[str]:
    return validate_provider(provider_id, allowed=list(_orchestrator().connectors))


def _transport_failure(exc: TransportError, provider_id: str):
    logger.warning(f"⚠️ {provider_id} request failed: {exc}")
    return _error(
        describe_failure(provider_id, auto_fallback_enabled=False),
        code='provider_unavailable',
        status=502,
        provider=provider_id
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@resolve_bp.route('/resolve', methods=['POST'])
def resolve():
    """Search for a title, falling back across providers per preferences."""
    data = request.get_json(silent=True) or {}
    error = validate_fields(data, [('query', MAX_QUERY_LENGTH)])
    if error:
        return _error(error)

    query = sanitize_string(data['query'], MAX_QUERY_LENGTH)

    raw_prefs = data.get('preferences') or {}
    if not isinstance(raw_prefs, dict):
        return _error("Field 'preferences' must be dict")
    if raw_prefs.get('defaultProvider'):
        error = validate_provider(raw_prefs['defaultProvider'])
        if error:
            return _error(error)
    preferences = ResolutionPreferences.from_dict(raw_prefs, base=_default_preferences())

    try:
        outcome = _orchestrator().resolve(query, preferences)
    except AllProvidersExhaustedError as exc:
        return _error(
            exc.user_message,
            code='all_providers_failed',
            status=502,
            provider=exc.provider.value if isinstance(exc.provider, Provider) else exc.provider,
            autoFallbackEnabled=exc.auto_fallback
        )

    return jsonify(outcome.to_dict())


@resolve_bp.route('/entries', methods=['POST'])
def entries():
    """Chapter list for a series on a known provider."""
    data = request.get_json(silent=True) or {}
    error = validate_fields(data, [('contentId', MAX_ID_LENGTH), ('provider', MAX_PROVIDER_LENGTH)])
    if error:
        return _error(error)
    error = _provider_error(data['provider'])
    if error:
        return _error(error)

    provider_id = data['provider'].lower()
    cover_image = data.get('coverImage') if isinstance(data.get('coverImage'), str) else None
    language = data.get('language') if isinstance(data.get('language'), str) else None
    language = language or _default_preferences().preferred_language

    try:
        result = _orchestrator().list_entries(
            sanitize_string(data['contentId'], MAX_ID_LENGTH),
            provider_id,
            cover_image=cover_image,
            language=language
        )
    except ProviderUnavailableError as exc:
        return _error(str(exc))
    except TransportError as exc:
        return _transport_failure(exc, provider_id)

    return jsonify({'entries': [e.to_dict() for e in result], 'provider': provider_id})


@resolve_bp.route('/locations', methods=['POST'])
def locations():
    """Page image URLs (with required headers) for a chapter."""
    data = request.get_json(silent=True) or {}
    error = validate_fields(data, [('entryId', MAX_ID_LENGTH), ('provider', MAX_PROVIDER_LENGTH)])
    if error:
        return _error(error)
    error = _provider_error(data['provider'])
    if error:
        return _error(error)

    provider_id = data['provider'].lower()
    try:
        result = _orchestrator().get_content_locations(
            sanitize_string(data['entryId'], MAX_ID_LENGTH),
            provider_id
        )
    except ProviderUnavailableError as exc:
        return _error(str(exc))
    except TransportError as exc:
        return _transport_failure(exc, provider_id)

    return jsonify({'locations': [loc.to_dict() for loc in result], 'provider': provider_id})


@resolve_bp.route('/failure-message')
def failure_message():
    """User-facing message for a failed resolve()."""
    provider_id = request.args.get('provider') or None
    auto = request.args.get('autoFallback', 'true').lower() in ('1', 'true', 'yes', 'on')
    return jsonify({'message': describe_failure(provider_id, auto)})


@resolve_bp.route('/providers')
def providers():
    """Configured providers in fallback order."""
    orchestrator = _orchestrator()
    defaults = _default_preferences()
    return jsonify({
        'providers': [
            {
                'id': provider.value,
                'name': connector.name,
                'primary': connector.endpoint.primary,
                'mirror': connector.endpoint.mirror
            }
            for provider, connector in orchestrator.connectors.items()
        ],
        'order': [p.value for p in orchestrator.provider_order],
        'defaults': defaults.to_dict()
    })
