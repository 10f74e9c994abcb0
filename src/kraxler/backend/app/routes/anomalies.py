"""Anomaly checks for classified invoices."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request
from pydantic import TypeAdapter
from werkzeug.exceptions import BadRequest

from kraxler.backend.app.http import parse_json_object
from kraxler.backend.app.state import get_state
from kraxler.backend.services.anomaly_detection import (
    AnomalyFlag,
    ClassificationInput,
    summarize_anomalies,
)

blueprint = Blueprint("anomalies", __name__, url_prefix="/api/v1/anomalies")

_FLAGS = TypeAdapter(list[AnomalyFlag])


@blueprint.post("")
def check_classification() -> Any:
    """Run the anomaly checks for one classification result."""

    payload = parse_json_object(request)

    account = payload.get("account")
    if not isinstance(account, str) or not account:
        raise BadRequest("Field 'account' must be a non-empty string")

    sender_domain = payload.get("sender_domain")
    if sender_domain is not None and not isinstance(sender_domain, str):
        raise BadRequest("Field 'sender_domain' must be a string or null")

    classification = ClassificationInput.model_validate(payload.get("classification") or {})
    result = get_state().detector.check(classification, account, sender_domain)
    return jsonify(result.model_dump(mode="json"))


@blueprint.post("/summary")
def summarise_flags() -> Any:
    """Tally a batch of flags by type and severity."""

    payload = parse_json_object(request)
    flags = _FLAGS.validate_python(payload.get("flags") or [])
    return jsonify(summarize_anomalies(flags).model_dump(mode="json"))
