"""Integration tests for the anomaly endpoints."""

from __future__ import annotations

from http import HTTPStatus

from flask.testing import FlaskClient

ACCOUNT = "me@example.com"


def test_high_value_personal_item_requires_review(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/anomalies",
        json={
            "classification": {"category": "none", "amountCents": 25000},
            "account": ACCOUNT,
            "sender_domain": "shop.example",
        },
    )

    assert response.status_code == HTTPStatus.OK
    payload = response.get_json()
    assert payload["requires_review"] is True
    assert [flag["type"] for flag in payload["flags"]] == ["high_amount_personal"]
    assert payload["flags"][0]["severity"] == "review_required"


def test_history_from_the_store_feeds_the_checks(client: FlaskClient) -> None:
    payload = client.post(
        "/api/v1/anomalies",
        json={
            "classification": {"category": "meals", "amountCents": 4500},
            "account": ACCOUNT,
            "sender_domain": "jetbrains.com",
        },
    ).get_json()

    assert [flag["type"] for flag in payload["flags"]] == ["category_change"]
    assert payload["flags"][0]["context"]["invoiceCount"] == 3
    assert payload["requires_review"] is False


def test_missing_sender_is_allowed(client: FlaskClient) -> None:
    payload = client.post(
        "/api/v1/anomalies",
        json={"classification": {"category": "full", "amountCents": 300000}, "account": ACCOUNT},
    ).get_json()

    assert [flag["type"] for flag in payload["flags"]] == [
        "new_vendor_suspicious",
        "round_amount_high_value",
    ]


def test_account_is_required(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/anomalies", json={"classification": {"category": "full"}}
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["error"] == "bad_request"


def test_unknown_category_is_a_validation_error(client: FlaskClient) -> None:
    response = client.post(
        "/api/v1/anomalies",
        json={"classification": {"category": "luxury"}, "account": ACCOUNT},
    )

    assert response.status_code == HTTPStatus.BAD_REQUEST
    payload = response.get_json()
    assert payload["error"] == "validation_error"
    assert payload["details"][0]["field"] == "category"


def test_summary_of_flags(client: FlaskClient) -> None:
    flags = [
        {"type": "unusual_vat", "severity": "review_required", "message": "a"},
        {"type": "category_change", "severity": "warning", "message": "b"},
    ]

    payload = client.post("/api/v1/anomalies/summary", json={"flags": flags}).get_json()

    assert payload["total_warnings"] == 1
    assert payload["total_review_required"] == 1
    assert payload["by_type"] == {
        "high_amount_personal": 0,
        "new_vendor_suspicious": 0,
        "category_change": 1,
        "unusual_vat": 1,
        "round_amount_high_value": 0,
    }


def test_empty_summary(client: FlaskClient) -> None:
    payload = client.post("/api/v1/anomalies/summary", json={}).get_json()

    assert payload["total_warnings"] == 0
    assert set(payload["by_type"].values()) == {0}
