"""Blueprint registrations for application routes."""

from flask import Flask

from .allocation import blueprint as allocation_blueprint
from .anomalies import blueprint as anomalies_blueprint
from .config import blueprint as config_blueprint
from .context import blueprint as context_blueprint


def register_routes(app: Flask) -> None:
    """Register all Flask blueprints with the provided application."""

    app.register_blueprint(config_blueprint)
    app.register_blueprint(context_blueprint)
    app.register_blueprint(anomalies_blueprint)
    app.register_blueprint(allocation_blueprint)
