"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, jsonify, request


def create_app():
    """Create and configure the Flask application."""
    from leadflow.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # ── Engine settings (providers wired from env once) ─────────────────
    from leadflow.workflow.settings import build_engine_settings
    app.config['ENGINE_SETTINGS'] = build_engine_settings()

    # ── Bearer token auth ───────────────────────────────────────────────
    from leadflow.config import API_TOKEN

    OPEN_PATHS = {'/health', '/api/health'}

    @app.before_request
    def require_token():
        if not API_TOKEN:
            return  # No token set, open access (local dev)
        if request.method == 'OPTIONS' or request.path in OPEN_PATHS:
            return
        if not request.path.startswith('/api/'):
            return
        if request.headers.get('Authorization', '') == f'Bearer {API_TOKEN}':
            return
        return jsonify({'error': 'Unauthorized'}), 401

    # Register blueprints
    from leadflow.routes.workflows import bp as workflows_bp
    from leadflow.routes.health import bp as health_bp

    app.register_blueprint(workflows_bp)
    app.register_blueprint(health_bp)

    # Initialize circuit breakers for the outbound providers
    from leadflow.extensions import redis_client
    from leadflow.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic, no init_db() call.
    import_models()

    return app


def import_models():
    import importlib
    for name in ('lead', 'workflow', 'enrollment', 'step_execution',
                 'task', 'notification', 'communication', 'advisor'):
        importlib.import_module(f'leadflow.models.{name}')
