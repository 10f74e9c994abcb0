"""Route an invoice to the income sources active on its date.

Candidates are tried in a fixed priority order: a confirmed manual
allocation, the first matching allocation rule, the source suggested by the
classifier, the configured category default, and the only active source.
When none of them applies the invoice is left for manual review.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from kraxler.backend.config.schema import (
    Allocation,
    AllocationRule,
    DeductibleCategory,
    IncomeSource,
    InvoiceContext,
    KraxlerConfig,
    ValidationIssue,
)
from kraxler.backend.jurisdictions import get_tax_rules

_LOGGER = logging.getLogger(__name__)


class AllocationMethod(str, Enum):
    MANUAL_OVERRIDE = "manual_override"
    ALLOCATION_RULE = "allocation_rule"
    AI_SUGGESTION = "ai_suggestion"
    CATEGORY_DEFAULT = "category_default"
    HEURISTIC_SINGLE_SOURCE = "heuristic_single_source"
    REVIEW_NEEDED = "review_needed"


CONFIDENCE: Mapping[AllocationMethod, float] = MappingProxyType(
    {
        AllocationMethod.MANUAL_OVERRIDE: 1.0,
        AllocationMethod.ALLOCATION_RULE: 1.0,
        AllocationMethod.AI_SUGGESTION: 0.8,
        AllocationMethod.CATEGORY_DEFAULT: 0.7,
        AllocationMethod.HEURISTIC_SINGLE_SOURCE: 0.9,
        AllocationMethod.REVIEW_NEEDED: 0.0,
    }
)


class ExpenseDetails(BaseModel):
    """What is known about an invoice when it is allocated."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    sender_domain: str | None = Field(default=None, alias="senderDomain")
    sender: str | None = None
    subject: str | None = None
    category: DeductibleCategory | None = None
    amount_cents: StrictInt | None = Field(default=None, alias="amountCents")
    suggested_source_id: str | None = Field(default=None, alias="suggestedSourceId")
    confirmed_allocations: tuple[Allocation, ...] | None = Field(
        default=None, alias="confirmedAllocations"
    )


class AllocationResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    allocations: tuple[Allocation, ...] = ()
    method: AllocationMethod
    confidence: float
    reason: str
    rule_id: str | None = Field(default=None, alias="ruleId")
    alternatives_considered: tuple[str, ...] = Field(
        default=(), alias="alternativesConsidered"
    )


def _result(
    method: AllocationMethod,
    allocations: Iterable[Allocation],
    reason: str,
    **extra,
) -> AllocationResult:
    return AllocationResult(
        allocations=tuple(allocations),
        method=method,
        confidence=CONFIDENCE[method],
        reason=reason,
        **extra,
    )


def _whole(source_id: str) -> tuple[Allocation, ...]:
    return (Allocation(source_id=source_id, percent=100),)


def rule_matches(rule: AllocationRule, expense: ExpenseDetails) -> bool:
    """Return ``True`` when every criterion set on ``rule`` holds for ``expense``.

    A rule without any criterion never matches. Domains match as a
    case-insensitive substring of the sender domain; ``vendor_pattern`` is a
    case-insensitive regular expression searched in the sender domain, the
    subject and the sender joined by spaces.
    """

    has_criteria = False

    if rule.vendor_domain:
        has_criteria = True
        domain = expense.sender_domain
        if not domain or rule.vendor_domain.lower() not in domain.lower():
            return False

    if rule.vendor_pattern:
        has_criteria = True
        text = " ".join(
            part for part in (expense.sender_domain, expense.subject, expense.sender) if part
        )
        if not re.search(rule.vendor_pattern, text, re.IGNORECASE):
            return False

    if rule.deductible_category is not None:
        has_criteria = True
        if expense.category is not rule.deductible_category:
            return False

    if rule.min_amount_cents is not None:
        has_criteria = True
        if not expense.amount_cents or expense.amount_cents < rule.min_amount_cents:
            return False

    return has_criteria


def find_matching_rule(
    rules: Sequence[AllocationRule], expense: ExpenseDetails
) -> AllocationRule | None:
    return next((rule for rule in rules if rule_matches(rule, expense)), None)


def allocate_expense(
    config: KraxlerConfig, context: InvoiceContext, expense: ExpenseDetails
) -> AllocationResult:
    """Allocate ``expense`` across the income sources active in ``context``.

    Rule allocations and suggestions pointing at sources that are not active
    on the invoice date are ignored, so the next candidate gets a chance.
    """

    active = {source.id: source for source in context.active_sources}

    if expense.confirmed_allocations is not None:
        return _result(
            AllocationMethod.MANUAL_OVERRIDE,
            expense.confirmed_allocations,
            "User confirmed allocation",
        )

    rule = find_matching_rule(config.allocation_rules, expense)
    if rule is not None:
        allocations = [a for a in rule.allocations if a.source_id in active]
        if allocations:
            return _result(
                AllocationMethod.ALLOCATION_RULE,
                allocations,
                f"Matched rule: {rule.id}",
                rule_id=rule.id,
            )
        _LOGGER.debug("Rule %s targets no source active on %s", rule.id, context.invoice_date)

    suggested = active.get(expense.suggested_source_id or "")
    if suggested is not None:
        return _result(
            AllocationMethod.AI_SUGGESTION,
            _whole(suggested.id),
            f"AI suggested: {suggested.name}",
            alternatives_considered=tuple(key for key in active if key != suggested.id),
        )

    if expense.category is not None:
        default = active.get(config.category_defaults.get(expense.category.value) or "")
        if default is not None:
            return _result(
                AllocationMethod.CATEGORY_DEFAULT,
                _whole(default.id),
                f"Category default: {expense.category.value} → {default.name}",
                alternatives_considered=tuple(key for key in active if key != default.id),
            )

    if len(active) == 1:
        (only,) = active.values()
        return _result(
            AllocationMethod.HEURISTIC_SINGLE_SOURCE,
            _whole(only.id),
            f"Only one active source: {only.name}",
        )

    if not active:
        reason = "No active income sources for this date"
    else:
        names = ", ".join(source.name for source in active.values())
        reason = f"Multiple sources active, manual review needed: {names}"
    return _result(
        AllocationMethod.REVIEW_NEEDED,
        (),
        reason,
        alternatives_considered=tuple(active),
    )


def validate_allocation(
    jurisdiction: str, allocations: Sequence[Allocation]
) -> list[ValidationIssue]:
    """Check a manual allocation against the rules of ``jurisdiction``."""

    return get_tax_rules(jurisdiction).validate_allocations(allocations)


def normalize_allocations(allocations: Iterable[Allocation]) -> list[Allocation]:
    """Drop empty shares and order the rest by descending percentage."""

    return sorted(
        (allocation for allocation in allocations if allocation.percent > 0),
        key=lambda allocation: allocation.percent,
        reverse=True,
    )


def get_primary_source_id(allocations: Sequence[Allocation]) -> str | None:
    if not allocations:
        return None
    return max(allocations, key=lambda allocation: allocation.percent).source_id


def is_split_allocation(allocations: Iterable[Allocation]) -> bool:
    return sum(1 for allocation in allocations if allocation.percent > 0) > 1


def format_allocations(
    allocations: Sequence[Allocation], sources: Iterable[IncomeSource]
) -> str:
    """Render allocations as ``"Dev / Rental (20%)"`` using source names."""

    names = {source.id: source.name for source in sources}
    parts: list[str] = []
    for allocation in allocations:
        if allocation.percent <= 0:
            continue
        name = names.get(allocation.source_id) or allocation.source_id
        parts.append(name if allocation.percent == 100 else f"{name} ({allocation.percent:g}%)")
    return " / ".join(parts) or "Unassigned"


__all__ = [
    "AllocationMethod",
    "AllocationResult",
    "CONFIDENCE",
    "ExpenseDetails",
    "allocate_expense",
    "find_matching_rule",
    "format_allocations",
    "get_primary_source_id",
    "is_split_allocation",
    "normalize_allocations",
    "rule_matches",
    "validate_allocation",
]
