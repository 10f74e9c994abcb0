"""German rules for Einzelunternehmer (EStG / UStG, 2025)."""

from __future__ import annotations

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

# Tagespauschale per home office day; the annual cap is applied by the caller.
HOME_OFFICE_DAILY_RATE_CENTS = 6_00

AUSTRIA_ONLY_HOME_OFFICE = frozenset({"pauschale_gross", "pauschale_klein"})

FIXED_INCOME_TAX_PERCENT: Mapping[DeductibleCategory, float | None] = MappingProxyType(
    {
        DeductibleCategory.FULL: 100,
        DeductibleCategory.VEHICLE: 100,
        DeductibleCategory.MEALS: 70,
        DeductibleCategory.TELECOM: None,
        DeductibleCategory.PARTIAL: None,
        DeductibleCategory.GIFTS: None,
        DeductibleCategory.NONE: 0,
        DeductibleCategory.UNCLEAR: None,
    }
)


class GermanTaxRules:
    jurisdiction = "DE"
    jurisdiction_name = "Germany"

    def validate_allocations(self, allocations: Sequence[Allocation]) -> list[ValidationIssue]:
        errors = validate_allocation_total(allocations)
        for allocation in allocations:
            errors.extend(
                validate_percent_range(
                    f"allocations.{allocation.source_id}", allocation.percent
                )
            )
        return errors

    def validate_situation(self, situation: Situation) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        if situation.home_office in AUSTRIA_ONLY_HOME_OFFICE:
            errors.append(
                issue(
                    "homeOffice",
                    (
                        'Home office type "pauschale_gross/klein" is Austria-specific. '
                        'Use "daily_rate" or "actual" for Germany.'
                    ),
                    "INVALID_HOME_OFFICE_TYPE",
                )
            )

        return errors

    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]:
        errors: list[ValidationIssue] = []

        if not source.name.strip():
            errors.append(issue("name", "Required", "MISSING_NAME"))

        if source.category == "nichtselbstaendige":
            errors.append(
                issue(
                    "category",
                    (
                        "Only self-employment (Freiberufler) and business (Gewerbe) "
                        "income is supported for Germany; employment income is not."
                    ),
                    "DE_EMPLOYMENT_NOT_SUPPORTED",
                )
            )

        return errors

    def get_fixed_percentages(self) -> Mapping[DeductibleCategory, float | None]:
        return FIXED_INCOME_TAX_PERCENT

    def get_home_office_deduction(self, home_office: HomeOfficeType) -> int:
        return HOME_OFFICE_DAILY_RATE_CENTS if home_office == "daily_rate" else 0


german_tax_rules = GermanTaxRules()

__all__ = ["GermanTaxRules", "german_tax_rules"]
