"""Application factory for Kraxler backend services."""

from __future__ import annotations

import logging
import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from pydantic import ValidationError
from sqlalchemy import create_engine
from werkzeug.exceptions import BadRequest

from kraxler.backend.config.schema import KraxlerConfig
from kraxler.backend.services.anomaly_detection import AnomalyDetector
from kraxler.backend.services.vendor_history import (
    InMemoryInvoiceStore,
    InvoiceStore,
    SqlInvoiceStore,
    VendorHistoryAggregator,
)

from .http import problem_response, validation_problem
from .routes import register_routes
from .routes.config import get_configuration_metadata
from .state import EXTENSION_KEY, AppState

_LOGGER = logging.getLogger(__name__)

DATABASE_URL_ENV = "KRAXLER_DATABASE_URL"
ALLOWED_ORIGINS_ENV = "KRAXLER_ALLOWED_ORIGINS"


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def _default_store() -> InvoiceStore:
    database_url = os.getenv(DATABASE_URL_ENV, "").strip()
    if database_url:
        _LOGGER.info("Reading vendor history from %s", database_url.split("://", 1)[0])
        return SqlInvoiceStore(create_engine(database_url))

    warn(
        f"{DATABASE_URL_ENV} is not set; anomaly checks run without vendor history.",
        stacklevel=2,
    )
    return InMemoryInvoiceStore()


def create_app(
    config: KraxlerConfig | None = None,
    store: InvoiceStore | None = None,
) -> Flask:
    """Create and configure the Flask application instance.

    ``config`` pins the configuration used by the context and validation
    endpoints; without it the file named by ``KRAXLER_CONFIG`` is loaded.
    ``store`` supplies previously processed invoices to the anomaly checks.
    """

    app = Flask(__name__)

    allowed_origins = _parse_allowed_origins(os.getenv(ALLOWED_ORIGINS_ENV))
    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=2,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST"],
        allow_headers=["Content-Type"],
    )

    history = VendorHistoryAggregator(store if store is not None else _default_store())
    app.extensions[EXTENSION_KEY] = AppState(detector=AnomalyDetector(history), config=config)

    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(ValidationError)
    def handle_schema_error(error: ValidationError):
        """Report each invalid field of a rejected payload."""

        return validation_problem(error).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Surface invalid dates and configuration errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    @app.errorhandler(FileNotFoundError)
    def handle_missing_configuration(error: FileNotFoundError):
        return problem_response("not_found", status=404, message=str(error)).to_response()

    return app


__all__ = ["create_app"]
