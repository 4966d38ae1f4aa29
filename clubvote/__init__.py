# clubvote/__init__.py

import logging
import os

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from clubvote.config import Config
from clubvote.extensions import cache, db, jwt, limiter, migrate


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(os.path.dirname(__file__), 'database', 'migrations'))
    jwt.init_app(app)
    limiter.init_app(app)
    cache.init_app(app)

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    # This makes models discoverable by Flask-Migrate / Alembic when running
    # `flask db migrate`.
    from clubvote.database import models  # noqa: F401

    from clubvote.audit.audit_logger import audit_logger
    audit_logger.init_app(app)

    from clubvote.routes import bp as api_bp
    app.register_blueprint(api_bp)

    from clubvote.cli import register_cli_commands
    register_cli_commands(app)

    return app
