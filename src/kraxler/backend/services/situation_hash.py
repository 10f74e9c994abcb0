"""Fingerprint the classification-relevant context of an invoice date.

Stored alongside a classification, the hash changes whenever an edit to the
configuration would change the context the classifier saw, which marks the
invoice for reclassification.
"""

from __future__ import annotations

import hashlib
import json
from typing import Sequence

from kraxler.backend.config.schema import IncomeSource, KraxlerConfig, Situation

from .situations import get_active_income_sources, get_situation_for_date
from .dates import parse_date

HASH_LENGTH = 16


def compute_situation_hash(
    situation: Situation, active_sources: Sequence[IncomeSource]
) -> str:
    payload = {
        "situationId": situation.id,
        "vatStatus": situation.vat_status,
        "hasCompanyCar": situation.has_company_car,
        "companyCarType": situation.company_car_type,
        "carBusinessPercent": situation.car_business_percent,
        "telecomBusinessPercent": situation.telecom_business_percent,
        "internetBusinessPercent": situation.internet_business_percent,
        "homeOffice": situation.home_office,
        "jurisdiction": situation.jurisdiction,
        "incomeSourceIds": sorted(source.id for source in active_sources),
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def compute_hash_for_date_string(config: KraxlerConfig, value: str) -> str | None:
    """Return the context hash for ``value`` or ``None`` when no situation applies."""

    day = parse_date(value)
    situation = get_situation_for_date(config, day)
    if situation is None:
        return None
    return compute_situation_hash(situation, get_active_income_sources(config, day))


__all__ = ["HASH_LENGTH", "compute_hash_for_date_string", "compute_situation_hash"]
