"""Allocate a classified invoice to the income sources active on its date."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import BadRequest

from kraxler.backend.app.http import parse_json_object
from kraxler.backend.app.state import get_state
from kraxler.backend.services.allocation import (
    ExpenseDetails,
    allocate_expense,
    validate_allocation,
)
from kraxler.backend.services.situations import build_invoice_context

blueprint = Blueprint("allocation", __name__, url_prefix="/api/v1/allocations")


@blueprint.post("")
def allocate() -> Any:
    """Return the allocation for ``expense`` and any jurisdiction issues it raises."""

    payload = parse_json_object(request)

    invoice_date = payload.get("date")
    if not isinstance(invoice_date, str) or not invoice_date:
        raise BadRequest("Field 'date' must be a YYYY-MM-DD string")

    config = get_state().current_config()
    context = build_invoice_context(config, invoice_date)
    expense = ExpenseDetails.model_validate(payload.get("expense") or {})

    result = allocate_expense(config, context, expense)
    response = result.model_dump(mode="json", by_alias=True)
    response["issues"] = [
        issue.model_dump(mode="json")
        for issue in validate_allocation(context.jurisdiction, result.allocations)
    ]
    return jsonify(response)
