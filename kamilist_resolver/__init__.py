import time
import uuid
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request

from .config import ResolverConfig, build_orchestrator
from .log import configure_logging, log_event, logger
from .resolver import ResolutionOrchestrator


def create_app(
    orchestrator: Optional[ResolutionOrchestrator] = None,
    config: Optional[ResolverConfig] = None
) -> Flask:
    """Create and configure an instance of the Flask application."""
    # Environment first, so ResolverConfig.from_env() sees .env values
    load_dotenv()

    config = config or ResolverConfig.from_env()
    configure_logging(config.log_level, config.log_file)

    app = Flask(__name__)
    app.config.from_mapping(JSON_SORT_KEYS=False)

    app.extensions['kamilist_config'] = config
    app.extensions['kamilist_orchestrator'] = orchestrator or build_orchestrator(config, logger=logger)

    # =============================================================================
    # REQUEST LOGGING
    # =============================================================================

    @app.before_request
    def assign_request_id():
        g.request_id = uuid.uuid4().hex[:12]
        g.request_start = time.time()

    @app.after_request
    def request_log(response):
        duration_ms = None
        start_time = getattr(g, 'request_start', None)
        if start_time:
            duration_ms = int((time.time() - start_time) * 1000)
        log_event(logger, 'request',
                  request_id=getattr(g, 'request_id', None),
                  method=request.method,
                  path=request.path,
                  status=response.status_code,
                  duration_ms=duration_ms)
        return response

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found', 'code': 'not_found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'code': 'method_not_allowed'}), 405

    # =============================================================================
    # BLUEPRINTS
    # =============================================================================

    from .routes.resolve_api import resolve_bp
    app.register_blueprint(resolve_bp)

    logger.info(f"🚀 Kamilist resolver ready: {', '.join(p.value for p in app.extensions['kamilist_orchestrator'].provider_order)}")
    return app
