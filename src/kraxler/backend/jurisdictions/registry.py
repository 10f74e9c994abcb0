"""Lookup of tax rules by ISO country code.

AT and DE are registered on import; further jurisdictions can be added at
runtime without touching the resolver or the validator.
"""

from __future__ import annotations

from typing import Iterable

from .austria import austrian_tax_rules
from .base import TaxRules
from .germany import german_tax_rules


class InvalidJurisdictionError(LookupError):
    """Raised when no tax rules are registered for a jurisdiction code."""


class JurisdictionRegistry:
    def __init__(self) -> None:
        self._rules: dict[str, TaxRules] = {}

    def register(self, code: str, rules: TaxRules) -> None:
        if not isinstance(rules, TaxRules):
            raise TypeError(f"Rules for {code!r} do not implement the TaxRules interface")
        self._rules[code.upper()] = rules

    def unregister(self, code: str) -> bool:
        return self._rules.pop(code.upper(), None) is not None

    def get(self, code: str) -> TaxRules:
        rules = self._rules.get(code.upper())
        if rules is None:
            supported = ", ".join(self.codes()) or "none"
            raise InvalidJurisdictionError(
                f"Unsupported jurisdiction: {code}. Supported: {supported}"
            )
        return rules

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.upper() in self._rules

    def codes(self) -> list[str]:
        return list(self._rules)


registry = JurisdictionRegistry()
registry.register("AT", austrian_tax_rules)
registry.register("DE", german_tax_rules)


def get_tax_rules(jurisdiction: str) -> TaxRules:
    """Return the rules registered for ``jurisdiction`` (case-insensitive)."""

    return registry.get(jurisdiction)


def is_jurisdiction_supported(jurisdiction: str) -> bool:
    return jurisdiction in registry


def supported_jurisdictions() -> Iterable[str]:
    return registry.codes()


def register_jurisdiction(code: str, rules: TaxRules) -> None:
    registry.register(code, rules)


def unregister_jurisdiction(code: str) -> bool:
    return registry.unregister(code)
