"""Pluggable per-country tax rules."""

from .base import TaxRules
from .registry import (
    InvalidJurisdictionError,
    JurisdictionRegistry,
    get_tax_rules,
    is_jurisdiction_supported,
    register_jurisdiction,
    supported_jurisdictions,
    unregister_jurisdiction,
)

__all__ = [
    "InvalidJurisdictionError",
    "JurisdictionRegistry",
    "TaxRules",
    "get_tax_rules",
    "is_jurisdiction_supported",
    "register_jurisdiction",
    "supported_jurisdictions",
    "unregister_jurisdiction",
]
