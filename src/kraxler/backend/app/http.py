"""HTTP helper utilities shared across Flask blueprints."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from flask import Request, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import BadRequest


@dataclass(frozen=True)
class ProblemResponse:
    """RFC 7807-style error payload returned by every endpoint."""

    error: str
    status: int
    message: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, **self.extra}
        if self.message:
            payload["message"] = self.message
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), self.status


def problem_response(
    error: str,
    *,
    status: int,
    message: str | None = None,
    **extra: Any,
) -> ProblemResponse:
    return ProblemResponse(error=error, status=status, message=message, extra=extra)


def validation_problem(error: ValidationError) -> ProblemResponse:
    """Describe each pydantic error location so clients can highlight fields."""

    details = [
        {
            "field": ".".join(str(part) for part in item["loc"]),
            "message": item["msg"],
        }
        for item in error.errors()
    ]
    return problem_response(
        "validation_error",
        status=400,
        message="Request payload failed validation",
        details=details,
    )


def parse_json_object(req: Request) -> dict[str, Any]:
    """Extract a JSON object from ``req`` or raise :class:`BadRequest`."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")
    return dict(data)


__all__ = ["ProblemResponse", "parse_json_object", "problem_response", "validation_problem"]
