"""Configuration validation endpoints.

The UI posts a draft configuration before saving it so that every problem can
be shown at once; ``GET`` validates the configuration the service runs with.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from kraxler.backend.app.http import parse_json_object
from kraxler.backend.app.state import get_state
from kraxler.backend.config.loader import parse_config
from kraxler.backend.config.schema import ConfigValidationResult
from kraxler.backend.config.validator import validate_config
from kraxler.backend.jurisdictions import supported_jurisdictions
from kraxler.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata shared by the health check and ``/meta``."""

    return {
        "version": get_project_version(),
        "jurisdictions": list(supported_jurisdictions()),
    }


def _report(result: ConfigValidationResult) -> dict[str, Any]:
    return result.model_dump(mode="json", by_alias=True)


@blueprint.get("/meta")
def get_meta() -> Any:
    """Return the project version and registered jurisdictions."""

    return jsonify(get_configuration_metadata())


@blueprint.get("/validate")
def validate_current_configuration() -> Any:
    """Validate the configuration loaded by the service."""

    result = validate_config(get_state().current_config())
    return jsonify(_report(result))


@blueprint.post("/validate")
def validate_submitted_configuration() -> Any:
    """Validate a configuration supplied in the request body."""

    configuration = parse_config(parse_json_object(request))
    return jsonify(_report(validate_config(configuration)))
