"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask


def create_app():
    """Create and configure the Flask application."""
    from arc.config import SECRET_KEY
    from arc.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Secret key for the session cookie carrying user_id
    app.secret_key = SECRET_KEY

    # Register blueprints
    from arc.routes.health import bp as health_bp
    from arc.routes.leaderboard import bp as leaderboard_bp
    from arc.routes.admin import bp as admin_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leaderboard_bp)
    app.register_blueprint(admin_bp)

    # Initialize circuit breakers for external API services
    from arc.extensions import redis_client
    from arc.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    import importlib
    for name in ('project', 'arena', 'arena_creator', 'point_adjustment', 'follow_verification',
                 'mention', 'profile', 'campaign', 'access_request', 'user_role'):
        importlib.import_module(f'arc.models.{name}')

    return app
