"""Unit tests for the invoice context fingerprint."""

from __future__ import annotations

from kraxler.backend.config.schema import KraxlerConfig
from kraxler.backend.services.situation_hash import (
    HASH_LENGTH,
    compute_hash_for_date_string,
    compute_situation_hash,
)
from kraxler.backend.services.situations import get_active_income_sources_for_date_string


def test_hash_is_a_short_hex_digest(config: KraxlerConfig) -> None:
    digest = compute_hash_for_date_string(config, "2024-02-01")

    assert digest is not None
    assert len(digest) == HASH_LENGTH
    int(digest, 16)


def test_hash_is_stable_within_an_unchanged_context(config: KraxlerConfig) -> None:
    assert compute_hash_for_date_string(config, "2024-01-05") == compute_hash_for_date_string(
        config, "2024-03-31"
    )


def test_hash_changes_when_income_sources_change(config: KraxlerConfig) -> None:
    # rental_apt_1 becomes active on 2024-04-01 within the same situation.
    assert compute_hash_for_date_string(config, "2024-03-31") != compute_hash_for_date_string(
        config, "2024-04-01"
    )


def test_hash_changes_when_situation_changes(config: KraxlerConfig) -> None:
    assert compute_hash_for_date_string(config, "2024-06-30") != compute_hash_for_date_string(
        config, "2024-07-01"
    )


def test_hash_ignores_source_order(config: KraxlerConfig) -> None:
    situation = config.situations[0]
    sources = get_active_income_sources_for_date_string(config, "2024-05-01")

    assert compute_situation_hash(situation, sources) == compute_situation_hash(
        situation, list(reversed(sources))
    )


def test_hash_tracks_situation_percentages(config: KraxlerConfig) -> None:
    situation = config.situations[0]
    sources = get_active_income_sources_for_date_string(config, "2024-05-01")
    edited = situation.model_copy(update={"telecom_business_percent": 70})

    assert compute_situation_hash(situation, sources) != compute_situation_hash(edited, sources)


def test_no_hash_for_dates_without_situation(config: KraxlerConfig) -> None:
    assert compute_hash_for_date_string(config, "2023-12-31") is None
