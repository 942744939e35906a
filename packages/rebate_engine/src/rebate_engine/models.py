"""Core record types: transactions, rate-table rows, and calculated rebates.

Rule rows carry a fixed tuple of eight rebate-level slots instead of
``rebate_<n>_yearly`` style columns; level ``n`` lives at index ``n - 1``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

LEVEL_COUNT = 8
REBATE_LEVELS: tuple[int, ...] = tuple(range(1, LEVEL_COUNT + 1))


class CalculationType(str, Enum):
    """Rule source that produced a calculated rebate."""

    VISA_MCO = "visa_mco"
    PARTNERPAY = "partnerpay"
    REGION_COUNTRY = "region_country"
    VOYAGE_PRIVE = "voyage_prive"


@dataclass(frozen=True)
class LevelRate:
    """Yearly and monthly rate for a single rebate level (percent)."""

    yearly: float | None = None
    monthly: float | None = None

    @property
    def effective(self) -> float | None:
        """Yearly wins whenever it is set, even when it is zero."""
        return self.yearly if self.yearly is not None else self.monthly


EMPTY_LEVELS: tuple[LevelRate, ...] = tuple(LevelRate() for _ in REBATE_LEVELS)
EMPTY_YEARLY: tuple[float | None, ...] = tuple(None for _ in REBATE_LEVELS)


def _slot_values(values: Mapping[int, float | None] | Sequence[float | None] | None) -> list:
    if values is None:
        return [None] * LEVEL_COUNT
    if isinstance(values, Mapping):
        unknown = set(values) - set(REBATE_LEVELS)
        if unknown:
            raise ValueError(f"Rebate levels must be 1-{LEVEL_COUNT}, got {sorted(unknown)}")
        return [values.get(level) for level in REBATE_LEVELS]
    slots = list(values)
    if len(slots) != LEVEL_COUNT:
        raise ValueError(f"Expected {LEVEL_COUNT} rebate levels, got {len(slots)}")
    return slots


def build_levels(
    yearly: Mapping[int, float | None] | Sequence[float | None] | None = None,
    monthly: Mapping[int, float | None] | Sequence[float | None] | None = None,
) -> tuple[LevelRate, ...]:
    """Build the eight level slots from ``{level: rate}`` maps or 8-item sequences."""
    return tuple(
        LevelRate(yearly=y, monthly=m)
        for y, m in zip(_slot_values(yearly), _slot_values(monthly))
    )


def build_yearly(
    yearly: Mapping[int, float | None] | Sequence[float | None] | None = None,
) -> tuple[float | None, ...]:
    """Build yearly-only slots for override tables."""
    return tuple(_slot_values(yearly))


@dataclass(frozen=True)
class Transaction:
    """A normalized payment transaction, immutable once ingested."""

    transaction_id: str
    provider_customer_code: str
    salesforce_product_name: str
    transaction_amount: float = 0.0
    transaction_amount_eur: float = 0.0
    bin_card_number: int | str | None = None
    merchant_name: str = ""
    transaction_merchant_name: str = ""
    transaction_merchant_category_code: int | None = None
    region: str = ""
    region_mc: str = ""
    transaction_merchant_country: str = ""
    transaction_currency: str = ""
    transaction_date: str = ""


@dataclass(frozen=True)
class VisaMcoRow:
    provider_customer_code: str
    product_name: str
    levels: tuple[LevelRate, ...] = EMPTY_LEVELS

    def level(self, level: int) -> LevelRate:
        return self.levels[level - 1]


@dataclass(frozen=True)
class PartnerPayRow:
    provider_customer_code: str
    product_name: str
    partnerpay_bin: str = ""
    partnerpay_airline: str = ""
    levels: tuple[LevelRate, ...] = EMPTY_LEVELS

    def level(self, level: int) -> LevelRate:
        return self.levels[level - 1]


@dataclass(frozen=True)
class RegionCountryRow:
    """Yearly override for a provider/product in a region and merchant country.

    ``region_mc`` and ``transaction_merchant_country`` accept ``"*"`` or
    ``"ALL"`` as wildcards.
    """

    provider_customer_code: str
    product_name: str
    region_mc: str = "*"
    transaction_merchant_country: str = "*"
    yearly: tuple[float | None, ...] = EMPTY_YEARLY

    def yearly_rate(self, level: int) -> float | None:
        return self.yearly[level - 1]


@dataclass(frozen=True)
class VoyagePriveRow:
    provider_customer_code: str
    product_name: str
    yearly: tuple[float | None, ...] = EMPTY_YEARLY

    def yearly_rate(self, level: int) -> float | None:
        return self.yearly[level - 1]


@dataclass(frozen=True)
class AirlineReference:
    """Airline lookup entry used for airline-ticketing merchant names."""

    airline_name: str
    airline_code: str
    mcc_code: str = ""


@dataclass(frozen=True)
class CalculatedRebate:
    """One rebate entitlement for a (transaction, level) pair.

    ``id`` and ``calculated_at`` are assigned by the store on write.
    """

    transaction_id: str
    provider_customer_code: str
    product_name: str
    rebate_level: int
    rebate_percentage: float
    rebate_amount: float
    rebate_amount_eur: float
    calculation_type: CalculationType
    id: int | None = None
    calculated_at: str | None = None

    def with_rate(
        self, rate: float, amount: float, amount_eur: float, calculation_type: CalculationType
    ) -> CalculatedRebate:
        return replace(
            self,
            rebate_percentage=rate,
            rebate_amount=amount,
            rebate_amount_eur=amount_eur,
            calculation_type=calculation_type,
        )

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["calculation_type"] = self.calculation_type.value
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> CalculatedRebate:
        return cls(
            transaction_id=str(record["transaction_id"]),
            provider_customer_code=record.get("provider_customer_code") or "",
            product_name=record.get("product_name") or "",
            rebate_level=int(record["rebate_level"]),
            rebate_percentage=float(record.get("rebate_percentage") or 0.0),
            rebate_amount=float(record.get("rebate_amount") or 0.0),
            rebate_amount_eur=float(record.get("rebate_amount_eur") or 0.0),
            calculation_type=CalculationType(record["calculation_type"]),
            id=record.get("id"),
            calculated_at=record.get("calculated_at"),
        )


@dataclass
class RebateSummary:
    """Aggregate rebate totals for a calculation run (EUR breakdowns)."""

    total_transactions: int = 0
    total_rebate_amount: float = 0.0
    total_rebate_amount_eur: float = 0.0
    by_calculation_type: dict[str, float] = field(default_factory=dict)
    by_provider: dict[str, float] = field(default_factory=dict)
