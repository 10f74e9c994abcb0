"""Resolve the invoice context for a date against the loaded configuration."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import BadRequest

from kraxler.backend.app.state import get_state
from kraxler.backend.services.situation_hash import compute_situation_hash
from kraxler.backend.services.situations import (
    build_invoice_context,
    get_effective_internet_percent,
    get_effective_telecom_percent,
    get_effective_vehicle_percent,
)

blueprint = Blueprint("context", __name__, url_prefix="/api/v1")


@blueprint.get("/context")
def get_invoice_context() -> Any:
    """Return the situation, active sources and effective percentages for ``date``."""

    invoice_date = request.args.get("date")
    if not invoice_date:
        raise BadRequest("Query parameter 'date' is required")

    context = build_invoice_context(get_state().current_config(), invoice_date)
    payload = context.model_dump(mode="json", by_alias=True)

    situation = context.situation
    if situation is None:
        payload["situation_hash"] = None
        payload["effective_percentages"] = {}
    else:
        payload["situation_hash"] = compute_situation_hash(
            situation, context.active_sources
        )
        payload["effective_percentages"] = {
            source.id: {
                "telecom": get_effective_telecom_percent(situation, source),
                "internet": get_effective_internet_percent(situation, source),
                "vehicle": get_effective_vehicle_percent(situation, source),
            }
            for source in context.active_sources
        }

    return jsonify(payload)
