"""Flag classification results that look suspicious given vendor history.

Each check is an independent rule evaluated in a fixed order; the order only
determines the sequence of emitted flags. Flags are advisory: a
``review_required`` flag routes the invoice into manual review but never
rejects the classification.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from kraxler.backend.config.schema import DeductibleCategory

from .vendor_history import VendorHistory, VendorHistoryAggregator

_LOGGER = logging.getLogger(__name__)

HIGH_AMOUNT_PERSONAL_CENTS = 200_00
FIRST_TIME_HIGH_THRESHOLD_CENTS = 500_00
VERY_HIGH_AMOUNT_CENTS = 2000_00
ROUND_AMOUNT_STEP_CENTS = 100_00
MIN_INVOICES_FOR_PATTERN = 2

# Vendors and products that normally carry no recoverable VAT.
NO_VAT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("insurance", re.compile(r"insurance|versicherung", re.IGNORECASE)),
    ("bank_fees", re.compile(r"bank.*fee|bankgebühr|kontoführung", re.IGNORECASE)),
    ("rent", re.compile(r"rent|miete|pacht", re.IGNORECASE)),
    ("medical", re.compile(r"medical|arzt|apotheke|kranken", re.IGNORECASE)),
    ("tax", re.compile(r"tax|steuer(?!berater)", re.IGNORECASE)),
    ("gym", re.compile(r"membership.*(?:gym|fitness)|fitnessstudio", re.IGNORECASE)),
)


class AnomalyType(str, Enum):
    HIGH_AMOUNT_PERSONAL = "high_amount_personal"
    NEW_VENDOR_SUSPICIOUS = "new_vendor_suspicious"
    CATEGORY_CHANGE = "category_change"
    UNUSUAL_VAT = "unusual_vat"
    ROUND_AMOUNT_HIGH_VALUE = "round_amount_high_value"


class AnomalySeverity(str, Enum):
    WARNING = "warning"
    REVIEW_REQUIRED = "review_required"


class ClassificationInput(BaseModel):
    """Output of the external classifier; amounts are integral cents."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    category: DeductibleCategory
    amount_cents: StrictInt | None = Field(default=None, alias="amountCents")
    vendor_product: str | None = Field(default=None, alias="vendorProduct")
    vat_recoverable: bool | None = Field(default=None, alias="vatRecoverable")


class AnomalyFlag(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AnomalyType
    severity: AnomalySeverity
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


class AnomalyCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    flags: tuple[AnomalyFlag, ...] = ()
    requires_review: bool = False


class AnomalySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    by_type: dict[AnomalyType, int]
    total_warnings: int = 0
    total_review_required: int = 0


def format_euros(amount_cents: int) -> str:
    return f"€{amount_cents / 100:.2f}"


def _check_high_amount_personal(
    classification: ClassificationInput, history: VendorHistory, sender_domain: str | None
) -> AnomalyFlag | None:
    amount = classification.amount_cents
    if (
        classification.category is not DeductibleCategory.NONE
        or amount is None
        or amount <= HIGH_AMOUNT_PERSONAL_CENTS
    ):
        return None

    return AnomalyFlag(
        type=AnomalyType.HIGH_AMOUNT_PERSONAL,
        severity=AnomalySeverity.REVIEW_REQUIRED,
        message=(
            f"High-value item ({format_euros(amount)}) classified as personal. "
            "Verify this is correct."
        ),
        context={
            "amount": amount,
            "vendor": classification.vendor_product,
            "threshold": HIGH_AMOUNT_PERSONAL_CENTS,
        },
    )


def _check_new_vendor(
    classification: ClassificationInput, history: VendorHistory, sender_domain: str | None
) -> AnomalyFlag | None:
    amount = classification.amount_cents
    if (
        not history.is_new_vendor
        or classification.category is not DeductibleCategory.FULL
        or amount is None
        or amount <= FIRST_TIME_HIGH_THRESHOLD_CENTS
    ):
        return None

    return AnomalyFlag(
        type=AnomalyType.NEW_VENDOR_SUSPICIOUS,
        severity=AnomalySeverity.WARNING,
        message=(
            f"First invoice from this vendor with high value ({format_euros(amount)}). "
            "Consider verifying business purpose."
        ),
        context={
            "vendor": sender_domain,
            "amount": amount,
            "threshold": FIRST_TIME_HIGH_THRESHOLD_CENTS,
        },
    )


def _check_category_change(
    classification: ClassificationInput, history: VendorHistory, sender_domain: str | None
) -> AnomalyFlag | None:
    previous = history.last_category
    current = classification.category
    if (
        history.invoice_count < MIN_INVOICES_FOR_PATTERN
        or previous is None
        or previous is current
        or DeductibleCategory.UNCLEAR in (previous, current)
    ):
        return None

    return AnomalyFlag(
        type=AnomalyType.CATEGORY_CHANGE,
        severity=AnomalySeverity.WARNING,
        message=(
            f'Category changed from "{previous.value}" to "{current.value}" '
            "for this vendor."
        ),
        context={
            "previousCategory": previous.value,
            "newCategory": current.value,
            "invoiceCount": history.invoice_count,
        },
    )


def _check_unusual_vat(
    classification: ClassificationInput, history: VendorHistory, sender_domain: str | None
) -> AnomalyFlag | None:
    if classification.vat_recoverable is not True:
        return None

    vendor_text = f"{sender_domain or ''} {classification.vendor_product or ''}"
    matched = next(
        (
            (label, pattern)
            for label, pattern in NO_VAT_PATTERNS
            if pattern.search(vendor_text)
        ),
        None,
    )
    if matched is None:
        return None

    label, pattern = matched
    return AnomalyFlag(
        type=AnomalyType.UNUSUAL_VAT,
        severity=AnomalySeverity.REVIEW_REQUIRED,
        message=(
            "VAT recovery claimed for vendor/product that typically has no VAT "
            "(insurance, rent, medical, bank fees)"
        ),
        context={
            "vendor": vendor_text.strip(),
            "matchedRule": label,
            "matchedPattern": pattern.pattern,
        },
    )


def _check_round_amount(
    classification: ClassificationInput, history: VendorHistory, sender_domain: str | None
) -> AnomalyFlag | None:
    amount = classification.amount_cents
    if (
        amount is None
        or amount <= VERY_HIGH_AMOUNT_CENTS
        or amount % ROUND_AMOUNT_STEP_CENTS != 0
    ):
        return None

    return AnomalyFlag(
        type=AnomalyType.ROUND_AMOUNT_HIGH_VALUE,
        severity=AnomalySeverity.WARNING,
        message=(
            f"Very high round amount ({format_euros(amount)}). "
            "Verify invoice authenticity."
        ),
        context={"amount": amount},
    )


AnomalyCheck = Callable[[ClassificationInput, VendorHistory, str | None], AnomalyFlag | None]

ANOMALY_CHECKS: tuple[AnomalyCheck, ...] = (
    _check_high_amount_personal,
    _check_new_vendor,
    _check_category_change,
    _check_unusual_vat,
    _check_round_amount,
)


def evaluate_anomalies(
    classification: ClassificationInput,
    history: VendorHistory,
    sender_domain: str | None,
) -> AnomalyCheckResult:
    """Run every check against an already resolved vendor history."""

    flags = tuple(
        flag
        for check in ANOMALY_CHECKS
        if (flag := check(classification, history, sender_domain)) is not None
    )
    for flag in flags:
        _LOGGER.debug("Anomaly %s (%s): %s", flag.type.value, flag.severity.value, flag.message)

    return AnomalyCheckResult(
        flags=flags,
        requires_review=any(
            flag.severity is AnomalySeverity.REVIEW_REQUIRED for flag in flags
        ),
    )


def _coerce_classification(
    classification: ClassificationInput | Mapping[str, Any],
) -> ClassificationInput:
    if isinstance(classification, ClassificationInput):
        return classification
    return ClassificationInput.model_validate(classification)


class AnomalyDetector:
    """Anomaly checks bound to a vendor history source."""

    def __init__(self, history: VendorHistoryAggregator) -> None:
        self._history = history

    def check(
        self,
        classification: ClassificationInput | Mapping[str, Any],
        account: str,
        sender_domain: str | None,
    ) -> AnomalyCheckResult:
        resolved = _coerce_classification(classification)
        history = self._history.history_for(account, sender_domain)
        return evaluate_anomalies(resolved, history, sender_domain)


def check_for_anomalies(
    classification: ClassificationInput | Mapping[str, Any],
    account: str,
    sender_domain: str | None,
    history: VendorHistoryAggregator,
) -> AnomalyCheckResult:
    """Query the vendor history once and evaluate all checks."""

    return AnomalyDetector(history).check(classification, account, sender_domain)


def summarize_anomalies(flags: Iterable[AnomalyFlag]) -> AnomalySummary:
    """Tally flags by type and by severity for end-of-run reporting."""

    by_type: Counter[AnomalyType] = Counter({kind: 0 for kind in AnomalyType})
    severities: Counter[AnomalySeverity] = Counter()

    for flag in flags:
        by_type[flag.type] += 1
        severities[flag.severity] += 1

    return AnomalySummary(
        by_type={kind: by_type[kind] for kind in AnomalyType},
        total_warnings=severities[AnomalySeverity.WARNING],
        total_review_required=severities[AnomalySeverity.REVIEW_REQUIRED],
    )


__all__ = [
    "ANOMALY_CHECKS",
    "AnomalyCheckResult",
    "AnomalyDetector",
    "AnomalyFlag",
    "AnomalySeverity",
    "AnomalySummary",
    "AnomalyType",
    "ClassificationInput",
    "FIRST_TIME_HIGH_THRESHOLD_CENTS",
    "HIGH_AMOUNT_PERSONAL_CENTS",
    "MIN_INVOICES_FOR_PATTERN",
    "NO_VAT_PATTERNS",
    "VERY_HIGH_AMOUNT_CENTS",
    "check_for_anomalies",
    "evaluate_anomalies",
    "summarize_anomalies",
]
