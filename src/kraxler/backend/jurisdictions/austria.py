"""Austrian rules for sole proprietors (EStG / UStG, 2025).

Austria applies the "10% rule": a business-use share or an allocation to an
income source must be either 0% or at least 10%. Home office deductions use
the Pauschale amounts; the German daily rate is not available.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping, Sequence

from kraxler.backend.config.schema import (
    Allocation,
    DeductibleCategory,
    HomeOfficeType,
    IncomeSource,
    Situation,
    ValidationIssue,
)

from .base import issue, validate_allocation_total, validate_percent_range

MINIMUM_SHARE_PERCENT = 10

_SOURCE_ID = re.compile(r"[a-z0-9_]+")

HOME_OFFICE_PAUSCHALE_CENTS: Mapping[str, int] = MappingProxyType(
    {
        "pauschale_gross": 1_200_00,
        "pauschale_klein": 300_00,
        "actual": 0,
        "none": 0,
        "daily_rate": 0,
    }
)

FIXED_INCOME_TAX_PERCENT: Mapping[DeductibleCategory, float | None] = MappingProxyType(
    {
        DeductibleCategory.FULL: 100,
        DeductibleCategory.VEHICLE: 100,
        DeductibleCategory.MEALS: 50,
        DeductibleCategory.TELECOM: None,
        DeductibleCategory.PARTIAL: None,
        DeductibleCategory.GIFTS: 100,
        DeductibleCategory.NONE: 0,
        DeductibleCategory.UNCLEAR: None,
    }
)


def _validate_share(field: str, value: float, label: str | None = None) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []
    if 0 < value < MINIMUM_SHARE_PERCENT:
        errors.append(
            issue(
                field,
                (
                    f"{label or field} of {value:g}% violates Austrian 10% rule. "
                    "Must be 0% or at least 10%."
                ),
                "AT_10_PERCENT_RULE",
            )
        )
    errors.extend(validate_percent_range(field, value))
    return errors


class AustrianTaxRules:
    jurisdiction = "AT"
    jurisdiction_name = "Austria"

    def validate_allocations(self, allocations: Sequence[Allocation]) -> list[ValidationIssue]:
        errors = validate_allocation_total(allocations)
        for allocation in allocations:
            errors.extend(
                _validate_share(
                    f"allocations.{allocation.source_id}",
                    allocation.percent,
                    label="Allocation",
                )
            )
        return errors

    def validate_situation(self, situation: Situation) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        for field, value in (
            ("carBusinessPercent", situation.car_business_percent),
            ("telecomBusinessPercent", situation.telecom_business_percent),
            ("internetBusinessPercent", situation.internet_business_percent),
        ):
            errors.extend(_validate_share(field, value))

        if situation.has_company_car and not situation.company_car_type:
            errors.append(
                issue(
                    "companyCarType",
                    "Car type is required when hasCompanyCar is true",
                    "MISSING_CAR_TYPE",
                )
            )

        if not situation.has_company_car and situation.car_business_percent > 0:
            errors.append(
                issue(
                    "carBusinessPercent",
                    "Car business percent should be 0 when no company car",
                    "INVALID_CAR_CONFIG",
                )
            )

        if situation.home_office == "daily_rate":
            errors.append(
                issue(
                    "homeOffice",
                    (
                        'Home office type "daily_rate" is not supported in Austria. '
                        'Use "pauschale_gross" or "pauschale_klein".'
                    ),
                    "INVALID_HOME_OFFICE_TYPE",
                )
            )

        return errors

    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        if not _SOURCE_ID.fullmatch(source.id):
            errors.append(
                issue(
                    "id",
                    "ID must contain only lowercase letters, numbers, and underscores",
                    "INVALID_ID_FORMAT",
                )
            )

        if not source.name.strip():
            errors.append(issue("name", "Name is required", "MISSING_NAME"))

        for field, value in (
            ("telecomPercentOverride", source.telecom_percent_override),
            ("internetPercentOverride", source.internet_percent_override),
            ("vehiclePercentOverride", source.vehicle_percent_override),
        ):
            if value is not None:
                errors.extend(_validate_share(field, value))

        return errors

    def get_fixed_percentages(self) -> Mapping[DeductibleCategory, float | None]:
        return FIXED_INCOME_TAX_PERCENT

    def get_home_office_deduction(self, home_office: HomeOfficeType) -> int:
        return HOME_OFFICE_PAUSCHALE_CENTS.get(home_office, 0)


austrian_tax_rules = AustrianTaxRules()

__all__ = ["AustrianTaxRules", "MINIMUM_SHARE_PERCENT", "austrian_tax_rules"]
