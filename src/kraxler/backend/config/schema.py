"""Pydantic models describing the Kraxler configuration schema."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConfigurationError(ValueError):
    """Raised when a configuration file cannot be read or violates the schema."""


class InvalidDateError(ValueError):
    """Raised when a date string is not a real ``YYYY-MM-DD`` calendar date."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class DeductibleCategory(str, Enum):
    """Tax classification assigned to an invoice by the external classifier."""

    FULL = "full"
    VEHICLE = "vehicle"
    MEALS = "meals"
    TELECOM = "telecom"
    GIFTS = "gifts"
    PARTIAL = "partial"
    NONE = "none"
    UNCLEAR = "unclear"


VatStatus = Literal["kleinunternehmer", "regelbesteuert"]
CompanyCarType = Literal["ice", "electric", "hybrid_plugin", "hybrid"]
HomeOfficeType = Literal[
    "pauschale_gross", "pauschale_klein", "daily_rate", "actual", "none"
]
IncomeCategory = Literal[
    "selbstaendige_arbeit",
    "gewerbebetrieb",
    "nichtselbstaendige",
    "vermietung",
    "land_forstwirtschaft",
]
AllocationStrategy = Literal["exclusive", "split_fixed", "manual"]


class Situation(ImmutableModel):
    """A time-bounded business/tax context carrying default percentages.

    Dates are kept as strings so that jurisdiction validators can report
    malformed values as structured issues rather than failing at load time.
    """

    id: str
    start: str = Field(alias="from")
    end: str | None = Field(default=None, alias="to")
    jurisdiction: str | None = None
    vat_status: VatStatus = Field(default="regelbesteuert", alias="vatStatus")
    has_company_car: bool = Field(default=False, alias="hasCompanyCar")
    company_car_type: CompanyCarType | None = Field(default=None, alias="companyCarType")
    company_car_name: str | None = Field(default=None, alias="companyCarName")
    car_business_percent: float = Field(default=0, alias="carBusinessPercent")
    car_list_price: int | None = Field(default=None, alias="carListPrice")
    car_co2_emission: float | None = Field(default=None, alias="carCo2Emission")
    telecom_business_percent: float = Field(default=0, alias="telecomBusinessPercent")
    internet_business_percent: float = Field(default=0, alias="internetBusinessPercent")
    home_office: HomeOfficeType = Field(default="none", alias="homeOffice")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> str:
        # Older configuration files used numeric situation identifiers.
        if isinstance(value, bool):
            raise ConfigurationError("Situation identifiers must be strings or integers")
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> Any:
        # YAML parses unquoted ISO dates into ``datetime.date`` instances.
        if value is not None and hasattr(value, "isoformat"):
            return value.isoformat()
        return value

    @property
    def is_open_ended(self) -> bool:
        return self.end is None


class IncomeSource(ImmutableModel):
    """An income-generating activity with optional percentage overrides."""

    id: str
    name: str = ""
    category: IncomeCategory = "selbstaendige_arbeit"
    valid_from: str = Field(alias="validFrom")
    valid_to: str | None = Field(default=None, alias="validTo")
    telecom_percent_override: float | None = Field(
        default=None, alias="telecomPercentOverride"
    )
    internet_percent_override: float | None = Field(
        default=None, alias="internetPercentOverride"
    )
    vehicle_percent_override: float | None = Field(
        default=None, alias="vehiclePercentOverride"
    )
    notes: str | None = None

    @field_validator("valid_from", "valid_to", mode="before")
    @classmethod
    def _coerce_dates(cls, value: Any) -> Any:
        if value is not None and hasattr(value, "isoformat"):
            return value.isoformat()
        return value


class Allocation(ImmutableModel):
    """Share of an invoice assigned to an income source."""

    source_id: str = Field(alias="sourceId")
    percent: float


class AllocationRule(ImmutableModel):
    """Maps matching invoices onto a fixed split between income sources."""

    id: str
    vendor_domain: str | None = Field(default=None, alias="vendorDomain")
    vendor_pattern: str | None = Field(default=None, alias="vendorPattern")
    deductible_category: DeductibleCategory | None = Field(
        default=None, alias="deductibleCategory"
    )
    min_amount_cents: int | None = Field(default=None, alias="minAmountCents")
    strategy: AllocationStrategy = "exclusive"
    allocations: tuple[Allocation, ...] = ()


class KraxlerConfig(ImmutableModel):
    """Aggregate root handed read-only into every resolver and validator call."""

    version: int = 2
    jurisdiction: str = "AT"
    situations: tuple[Situation, ...] = ()
    income_sources: tuple[IncomeSource, ...] = Field(default=(), alias="incomeSources")
    allocation_rules: tuple[AllocationRule, ...] = Field(
        default=(), alias="allocationRules"
    )
    category_defaults: Mapping[str, str | None] = Field(
        default_factory=dict, alias="categoryDefaults"
    )
    accounts: tuple[str, ...] = ()
    setup_completed: bool = Field(default=False, alias="setupCompleted")

    @field_validator("category_defaults", mode="before")
    @classmethod
    def _coerce_category_defaults(cls, value: Any) -> Mapping[str, str | None]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {str(key): val for key, val in value.items()}
        raise ConfigurationError("categoryDefaults must be a mapping of category to source id")

    @model_validator(mode="after")
    def _validate_version(self) -> KraxlerConfig:
        if self.version != 2:
            raise ConfigurationError(
                f"Unsupported configuration version {self.version}; expected 2"
            )
        return self


class ValidationIssue(ImmutableModel):
    """A structured configuration problem traceable to its source record."""

    field: str
    message: str
    code: str

    def scoped(self, prefix: str) -> ValidationIssue:
        """Return a copy whose ``field`` is nested below ``prefix``."""

        return self.model_copy(update={"field": f"{prefix}.{self.field}"})


class DateGap(ImmutableModel):
    """Inclusive span of days not covered by any situation."""

    start: str = Field(alias="from")
    end: str = Field(alias="to")


class ConfigValidationResult(ImmutableModel):
    """Complete validation report; warnings never affect ``valid``."""

    valid: bool
    errors: tuple[ValidationIssue, ...] = ()
    warnings: tuple[str, ...] = ()
    gaps: tuple[DateGap, ...] = ()

    @classmethod
    def from_issues(
        cls,
        errors: Sequence[ValidationIssue],
        warnings: Sequence[str] = (),
        gaps: Sequence[DateGap] = (),
    ) -> ConfigValidationResult:
        return cls(
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            gaps=tuple(gaps),
        )


class InvoiceContext(ImmutableModel):
    """Situation and income sources in effect on one invoice date."""

    invoice_date: str
    situation: Situation | None
    active_sources: tuple[IncomeSource, ...] = ()
    jurisdiction: str
    has_gap: bool


__all__ = [
    "Allocation",
    "AllocationRule",
    "AllocationStrategy",
    "CompanyCarType",
    "ConfigValidationResult",
    "ConfigurationError",
    "DateGap",
    "DeductibleCategory",
    "HomeOfficeType",
    "ImmutableModel",
    "IncomeCategory",
    "IncomeSource",
    "InvalidDateError",
    "InvoiceContext",
    "KraxlerConfig",
    "Situation",
    "ValidationIssue",
    "VatStatus",
]
