"""Utilities for validating Kraxler configurations and surfacing issues."""

from __future__ import annotations

import argparse
import json
import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Sequence

from kraxler.backend.jurisdictions import InvalidJurisdictionError, TaxRules, get_tax_rules
from kraxler.backend.services.dates import (
    format_date,
    is_iso_date,
    next_day,
    parse_date,
    previous_day,
)
from kraxler.backend.services.situations import get_income_source_by_id

from .loader import load_config, resolve_config_path
from .schema import (
    ConfigValidationResult,
    ConfigurationError,
    DateGap,
    KraxlerConfig,
    Situation,
    ValidationIssue,
)

_LOGGER = logging.getLogger(__name__)

OVERLAP_CODE = "SITUATION_OVERLAP"
INVALID_SOURCE_CODE = "INVALID_SOURCE_ID"
INVALID_JURISDICTION_CODE = "INVALID_JURISDICTION"
INVALID_DATE_CODE = "INVALID_DATE"
INVALID_RANGE_CODE = "INVALID_DATE_RANGE"
INVALID_PATTERN_CODE = "INVALID_PATTERN"


@dataclass(frozen=True)
class _Span:
    """A situation with parsed bounds and its position in the configuration."""

    index: int
    situation: Situation
    start: date
    end: date | None

    @classmethod
    def of(cls, index: int, situation: Situation) -> _Span:
        end = parse_date(situation.end) if situation.end is not None else None
        return cls(index, situation, parse_date(situation.start), end)


def _sorted_spans(situations: Sequence[Situation]) -> list[_Span]:
    """Return well-formed situations sorted by start date, stable on ties.

    Situations with malformed or reversed dates are left out;
    :func:`check_intervals` already reports them.
    """

    spans: list[_Span] = []
    for index, situation in enumerate(situations):
        try:
            span = _Span.of(index, situation)
        except ValueError:
            _LOGGER.debug("Skipping situation %s with unparseable dates", situation.id)
            continue
        if span.end is not None and span.end < span.start:
            _LOGGER.debug("Skipping situation %s ending before it starts", situation.id)
            continue
        spans.append(span)
    return sorted(spans, key=lambda span: span.start)


def _check_interval(
    prefix: str, start_field: str, start: str, end_field: str, end: str | None
) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    if not is_iso_date(start):
        errors.append(
            ValidationIssue(
                field=f"{prefix}.{start_field}",
                message=f"Start date '{start}' is not a valid YYYY-MM-DD date",
                code=INVALID_DATE_CODE,
            )
        )
    if end is not None and not is_iso_date(end):
        errors.append(
            ValidationIssue(
                field=f"{prefix}.{end_field}",
                message=f"End date '{end}' is not a valid YYYY-MM-DD date",
                code=INVALID_DATE_CODE,
            )
        )

    if not errors and end is not None and parse_date(end) < parse_date(start):
        errors.append(
            ValidationIssue(
                field=f"{prefix}.{end_field}",
                message=f"End date {end} is before start date {start}",
                code=INVALID_RANGE_CODE,
            )
        )

    return errors


def check_intervals(config: KraxlerConfig) -> list[ValidationIssue]:
    """Report unparseable or reversed bounds on situations and income sources.

    These checks hold in every jurisdiction; the resolver cannot evaluate a
    record whose bounds fail them.
    """

    errors: list[ValidationIssue] = []

    for index, situation in enumerate(config.situations):
        errors.extend(
            _check_interval(
                f"situations[{index}]", "from", situation.start, "to", situation.end
            )
        )

    for index, source in enumerate(config.income_sources):
        errors.extend(
            _check_interval(
                f"incomeSources[{index}]",
                "validFrom",
                source.valid_from,
                "validTo",
                source.valid_to,
            )
        )

    return errors


def _validate_records(config: KraxlerConfig, rules: TaxRules) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    for index, situation in enumerate(config.situations):
        errors.extend(
            error.scoped(f"situations[{index}]")
            for error in rules.validate_situation(situation)
        )

    for index, source in enumerate(config.income_sources):
        errors.extend(
            error.scoped(f"incomeSources[{index}]")
            for error in rules.validate_income_source(source)
        )

    for index, rule in enumerate(config.allocation_rules):
        errors.extend(
            error.scoped(f"allocationRules[{index}]")
            for error in rules.validate_allocations(rule.allocations)
        )

    return errors


def _validate_allocation_sources(config: KraxlerConfig) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    for index, rule in enumerate(config.allocation_rules):
        for allocation in rule.allocations:
            if get_income_source_by_id(config, allocation.source_id) is None:
                errors.append(
                    ValidationIssue(
                        field=f"allocationRules[{index}].allocations",
                        message=f"Income source '{allocation.source_id}' not found",
                        code=INVALID_SOURCE_CODE,
                    )
                )

    return errors


def _validate_rule_patterns(config: KraxlerConfig) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    for index, rule in enumerate(config.allocation_rules):
        if not rule.vendor_pattern:
            continue
        try:
            re.compile(rule.vendor_pattern)
        except re.error as error:
            errors.append(
                ValidationIssue(
                    field=f"allocationRules[{index}].vendorPattern",
                    message=f"Invalid regular expression: {error}",
                    code=INVALID_PATTERN_CODE,
                )
            )

    return errors


def check_situation_overlaps(situations: Sequence[Situation]) -> list[ValidationIssue]:
    """Report situations whose intervals intersect their successor by start date."""

    errors: list[ValidationIssue] = []
    spans = _sorted_spans(situations)

    for current, following in zip(spans, spans[1:]):
        field = f"situations[{current.index}]"
        if current.end is None:
            errors.append(
                ValidationIssue(
                    field=field,
                    message=(
                        f"Situation {current.situation.id} (from {current.situation.start}) "
                        "has no end date but overlaps with situation "
                        f"{following.situation.id} (from {following.situation.start})"
                    ),
                    code=OVERLAP_CODE,
                )
            )
            continue

        if current.end >= following.start:
            errors.append(
                ValidationIssue(
                    field=field,
                    message=(
                        f"Situation {current.situation.id} (ends {current.situation.end}) "
                        f"overlaps with situation {following.situation.id} "
                        f"(starts {following.situation.start})"
                    ),
                    code=OVERLAP_CODE,
                )
            )

    return errors


def find_duplicate_starts(situations: Sequence[Situation]) -> list[str]:
    """Describe situations that share a start date; ordering between them is arbitrary."""

    warnings: list[str] = []
    spans = _sorted_spans(situations)

    for current, following in zip(spans, spans[1:]):
        if current.start == following.start:
            warnings.append(
                f"Situations {current.situation.id} and {following.situation.id} "
                f"both start on {format_date(current.start)}"
            )

    return warnings


def find_situation_gaps(situations: Sequence[Situation]) -> list[DateGap]:
    """Return the uncovered day spans between consecutive situations."""

    gaps: list[DateGap] = []
    spans = _sorted_spans(situations)

    for current, following in zip(spans, spans[1:]):
        if current.end is None:
            continue
        # Compare before stepping so ``date.max`` never overflows.
        if (following.start - current.end).days > 1:
            gaps.append(
                DateGap(
                    start=next_day(current.situation.end),
                    end=previous_day(following.situation.start),
                )
            )

    return gaps


def _format_gap_warning(gap: DateGap) -> str:
    return (
        f"Gap in situations: {gap.start} to {gap.end}. "
        "Consider adding a 'no business activity' situation."
    )


def _validate_category_defaults(config: KraxlerConfig) -> list[ValidationIssue]:
    errors: list[ValidationIssue] = []

    for category, source_id in config.category_defaults.items():
        if source_id and get_income_source_by_id(config, source_id) is None:
            errors.append(
                ValidationIssue(
                    field=f"categoryDefaults.{category}",
                    message=f"Income source '{source_id}' not found",
                    code=INVALID_SOURCE_CODE,
                )
            )

    return errors


def validate_config(config: KraxlerConfig) -> ConfigValidationResult:
    """Run every configuration check and aggregate the findings.

    Only an unknown jurisdiction stops validation early, since no other check
    is meaningful without its rules. Gaps are reported as warnings and never
    make the configuration invalid.
    """

    try:
        rules = get_tax_rules(config.jurisdiction)
    except InvalidJurisdictionError as error:
        return ConfigValidationResult.from_issues(
            [
                ValidationIssue(
                    field="jurisdiction",
                    message=str(error),
                    code=INVALID_JURISDICTION_CODE,
                )
            ]
        )

    errors = check_intervals(config)
    errors.extend(_validate_records(config, rules))
    errors.extend(_validate_allocation_sources(config))
    errors.extend(_validate_rule_patterns(config))
    errors.extend(check_situation_overlaps(config.situations))

    gaps = find_situation_gaps(config.situations)
    warnings = find_duplicate_starts(config.situations)
    warnings.extend(_format_gap_warning(gap) for gap in gaps)

    errors.extend(_validate_category_defaults(config))

    _LOGGER.debug(
        "Validated configuration for %s: %d error(s), %d warning(s)",
        config.jurisdiction,
        len(errors),
        len(warnings),
    )
    return ConfigValidationResult.from_issues(errors, warnings, gaps)


def validate_config_file(path: str | Path | None = None) -> ConfigValidationResult:
    """Load the configuration at ``path`` (or the default location) and validate it."""

    return validate_config(load_config(path))


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate Kraxler configuration files and report issues."
    )
    parser.add_argument(
        "paths",
        nargs="*",
        type=Path,
        help="Configuration files to validate (defaults to $KRAXLER_CONFIG or the sample)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the validation report as JSON",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    paths = args.paths or [resolve_config_path()]

    exit_code = 0

    for path in paths:
        try:
            result = validate_config_file(path)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{path}] failed to load configuration: {error}")
            exit_code = 1
            continue

        if not result.valid:
            exit_code = 1

        if args.json:
            print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
            continue

        if result.errors:
            print(f"[{path}] {len(result.errors)} issue(s) detected:")
            for error in result.errors:
                print(f"  - {error.field}: {error.message} ({error.code})")
        else:
            print(f"[{path}] OK")

        for warning in result.warnings:
            print(f"  ! {warning}")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
