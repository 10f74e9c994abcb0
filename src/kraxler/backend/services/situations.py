"""Resolve which situation and income sources apply on an invoice date.

Situations are expected to be non-overlapping (the validator enforces it),
so a lookup returns the first match in configuration order without sorting.
Income sources may overlap freely; every source covering the date is active.
"""

from __future__ import annotations

from datetime import date

from kraxler.backend.config.schema import (
    IncomeSource,
    InvoiceContext,
    KraxlerConfig,
    Situation,
)

from .dates import is_date_in_range, parse_date


def get_situation_for_date(config: KraxlerConfig, value: date) -> Situation | None:
    """Return the situation covering ``value``, or ``None`` when there is a gap."""

    for situation in config.situations:
        if is_date_in_range(value, situation.start, situation.end):
            return situation
    return None


def get_situation_for_date_string(config: KraxlerConfig, value: str) -> Situation | None:
    return get_situation_for_date(config, parse_date(value))


def get_active_income_sources(config: KraxlerConfig, value: date) -> list[IncomeSource]:
    """Return every income source valid on ``value`` in configuration order."""

    return [
        source
        for source in config.income_sources
        if is_date_in_range(value, source.valid_from, source.valid_to)
    ]


def get_active_income_sources_for_date_string(
    config: KraxlerConfig, value: str
) -> list[IncomeSource]:
    return get_active_income_sources(config, parse_date(value))


def get_income_source_by_id(config: KraxlerConfig, source_id: str) -> IncomeSource | None:
    for source in config.income_sources:
        if source.id == source_id:
            return source
    return None


def build_invoice_context(config: KraxlerConfig, invoice_date: str) -> InvoiceContext:
    """Build the context handed to the classifier for one invoice.

    Raises :class:`~kraxler.backend.config.schema.InvalidDateError` when
    ``invoice_date`` is not a valid ``YYYY-MM-DD`` date.
    """

    value = parse_date(invoice_date)
    situation = get_situation_for_date(config, value)

    return InvoiceContext(
        invoice_date=invoice_date,
        situation=situation,
        active_sources=tuple(get_active_income_sources(config, value)),
        jurisdiction=config.jurisdiction,
        has_gap=situation is None,
    )


# Override presence, not truthiness, decides precedence: an explicit 0% on a
# source must win over the situation default.


def get_effective_telecom_percent(situation: Situation, source: IncomeSource) -> float:
    if source.telecom_percent_override is not None:
        return source.telecom_percent_override
    return situation.telecom_business_percent


def get_effective_internet_percent(situation: Situation, source: IncomeSource) -> float:
    if source.internet_percent_override is not None:
        return source.internet_percent_override
    return situation.internet_business_percent


def get_effective_vehicle_percent(situation: Situation, source: IncomeSource) -> float:
    if source.vehicle_percent_override is not None:
        return source.vehicle_percent_override
    return situation.car_business_percent


__all__ = [
    "build_invoice_context",
    "get_active_income_sources",
    "get_active_income_sources_for_date_string",
    "get_effective_internet_percent",
    "get_effective_telecom_percent",
    "get_effective_vehicle_percent",
    "get_income_source_by_id",
    "get_situation_for_date",
    "get_situation_for_date_string",
]
