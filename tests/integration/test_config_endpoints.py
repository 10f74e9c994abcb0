"""Integration tests for the configuration validation endpoints."""

from __future__ import annotations

from http import HTTPStatus
from pathlib import Path

import pytest
from flask.testing import FlaskClient

from kraxler.backend.app import create_app
from kraxler.backend.services.vendor_history import InMemoryInvoiceStore


def _draft(**overrides) -> dict[str, object]:
    draft: dict[str, object] = {
        "version": 2,
        "jurisdiction": "AT",
        "situations": [
            {"id": "1", "from": "2024-01-01", "to": "2024-03-31"},
            {"id": "2", "from": "2024-05-01"},
        ],
        "incomeSources": [
            {"id": "freelance_dev", "name": "Freelance", "validFrom": "2024-01-01"}
        ],
    }
    draft.update(overrides)
    return draft


def test_validate_loaded_configuration(client: FlaskClient) -> None:
    response = client.get("/api/v1/config/validate")

    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"valid": True, "errors": [], "warnings": [], "gaps": []}


def test_validate_draft_reports_gaps_with_aliases(client: FlaskClient) -> None:
    response = client.post("/api/v1/config/validate", json=_draft())

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["valid"] is True
    assert payload["gaps"] == [{"from": "2024-04-01", "to": "2024-04-30"}]
    assert len(payload["warnings"]) == 1


def test_validate_draft_lists_every_error(client: FlaskClient) -> None:
    draft = _draft(
        situations=[
            {"id": "1", "from": "2024-01-01", "to": "2024-06-30", "carBusinessPercent": 40},
            {"id": "2", "from": "2024-06-15"},
        ]
    )

    payload = client.post("/api/v1/config/validate", json=draft).get_json()

    assert payload["valid"] is False
    assert [error["code"] for error in payload["errors"]] == [
        "INVALID_CAR_CONFIG",
        "SITUATION_OVERLAP",
    ]
    assert payload["errors"][0]["field"] == "situations[0].carBusinessPercent"


def test_validate_draft_with_unknown_jurisdiction(client: FlaskClient) -> None:
    payload = client.post(
        "/api/v1/config/validate", json=_draft(jurisdiction="FR")
    ).get_json()

    assert payload["valid"] is False
    assert [error["code"] for error in payload["errors"]] == ["INVALID_JURISDICTION"]


@pytest.mark.parametrize(
    "body",
    [
        _draft(version=1),
        _draft(situations=[{"id": "1"}]),
    ],
)
def test_validate_rejects_malformed_drafts(client: FlaskClient, body) -> None:
    response = client.post("/api/v1/config/validate", json=body)

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"] == "validation_error"


def test_validate_requires_json_object(client: FlaskClient) -> None:
    response = client.post("/api/v1/config/validate", json=[1, 2, 3])

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json() == {
        "error": "bad_request",
        "message": "Request JSON must be an object",
    }


def test_missing_configuration_file_is_not_found(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("KRAXLER_CONFIG", str(tmp_path / "missing.yaml"))
    app = create_app(store=InMemoryInvoiceStore())
    app.config.update(TESTING=True)

    response = app.test_client().get("/api/v1/config/validate")

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.get_json()["error"] == "not_found"
