"""
Radiology research notebook: application factory
"""
from datetime import datetime, timezone

from flask import Flask, jsonify
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

from radnotebook.config import get_config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
}


def create_app(config_name=None, test_config=None):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)

    # Register blueprints
    from radnotebook.auth import users_bp
    from radnotebook.api import API_BLUEPRINTS
    from radnotebook.errors import register_error_handlers

    app.register_blueprint(users_bp)
    for bp in API_BLUEPRINTS:
        app.register_blueprint(bp)

    # Exempt JSON APIs from CSRF (bearer tokens, no cookies)
    csrf.exempt(users_bp)
    for bp in API_BLUEPRINTS:
        csrf.exempt(bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        for key, value in CORS_HEADERS.items():
            response.headers.setdefault(key, value)
        return response

    # Health check endpoint
    @app.route('/healthz')
    def healthz():
        """Health check for load balancers and monitoring"""
        try:
            from sqlalchemy import text
            db.session.execute(text('SELECT 1'))
            db_status = "ok"
        except Exception as e:
            app.logger.exception("Health check database probe failed")
            db_status = f"error: {type(e).__name__}"

        return jsonify({
            "status": "ok" if db_status == "ok" else "degraded",
            "version": app.config["APP_VERSION"],
            "database": db_status,
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    # Version endpoint
    @app.route('/version')
    def version():
        """Version and build info"""
        return jsonify({
            "version": app.config["APP_VERSION"],
            "build_time": app.config["BUILD_TIME"],
            "git_commit": app.config["GIT_COMMIT"],
            "features": {
                "public_sharing": True,
                "report_analysis": bool(app.config.get("AI_GATEWAY_API_KEY")),
                "avatar_upload": bool(app.config.get("AWS_S3_BUCKET")),
                "audit_log": True,
            }
        })

    with app.app_context():
        from sqlalchemy import inspect

        # Only create tables if they don't exist (safe for existing DB)
        inspector = inspect(db.engine)
        if not inspector.get_table_names():
            app.logger.info('No tables found, creating...')
            db.create_all()

    return app
