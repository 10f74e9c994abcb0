"""Capability interface implemented by every jurisdiction's tax rules."""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence, runtime_checkable

from kraxler.backend.config.schema import (
    Allocation,
    DeductibleCategory,
    HomeOfficeType,
    IncomeSource,
    Situation,
    ValidationIssue,
)


@runtime_checkable
class TaxRules(Protocol):
    """Validators and constants supplied by a jurisdiction.

    The resolver and the configuration validator only ever talk to this
    interface; they never inspect ``jurisdiction`` to change behaviour.
    """

    jurisdiction: str
    jurisdiction_name: str

    def validate_situation(self, situation: Situation) -> list[ValidationIssue]: ...

    def validate_income_source(self, source: IncomeSource) -> list[ValidationIssue]: ...

    def validate_allocations(
        self, allocations: Sequence[Allocation]
    ) -> list[ValidationIssue]: ...

    def get_fixed_percentages(self) -> Mapping[DeductibleCategory, float | None]: ...

    def get_home_office_deduction(self, home_office: HomeOfficeType) -> int: ...


def issue(field: str, message: str, code: str) -> ValidationIssue:
    return ValidationIssue(field=field, message=message, code=code)


def validate_allocation_total(allocations: Sequence[Allocation]) -> list[ValidationIssue]:
    total = sum(allocation.percent for allocation in allocations)
    if total > 100:
        return [
            issue(
                "allocations",
                f"Total allocation is {total:g}%, cannot exceed 100%",
                "ALLOCATION_EXCEEDS_100",
            )
        ]
    return []


def validate_percent_range(field: str, value: float) -> list[ValidationIssue]:
    if value < 0 or value > 100:
        return [
            issue(
                field,
                f"{field} must be between 0% and 100%, got {value:g}%",
                "INVALID_PERCENT",
            )
        ]
    return []


__all__ = [
    "TaxRules",
    "issue",
    "validate_allocation_total",
    "validate_percent_range",
]
