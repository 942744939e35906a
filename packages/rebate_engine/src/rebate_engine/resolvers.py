"""Per-source rule resolvers.

Each resolver takes a transaction and its rule table and returns one
candidate rebate per level 1-8 where a usable rate exists. Tables may be
passed as plain row sequences or as the lookup mappings built by the
``index_*`` helpers; the engine indexes once per run.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from rebate_engine.matchers import (
    is_airline_match,
    is_bin_match,
    is_product_match,
    is_provider_match,
)
from rebate_engine.models import (
    REBATE_LEVELS,
    CalculatedRebate,
    CalculationType,
    PartnerPayRow,
    RegionCountryRow,
    Transaction,
    VisaMcoRow,
    VoyagePriveRow,
)

WILDCARDS = frozenset({"*", "ALL"})

_HUNDRED = Decimal(100)
_CENT = Decimal("0.01")

VisaMcoTable = Union[Sequence[VisaMcoRow], Mapping[tuple[str, str], VisaMcoRow]]
PartnerPayTable = Union[Sequence[PartnerPayRow], Mapping[str, list[PartnerPayRow]]]
RegionCountryTable = Union[
    Sequence[RegionCountryRow], Mapping[tuple[str, str], list[RegionCountryRow]]
]
VoyagePriveTable = Union[Sequence[VoyagePriveRow], Mapping[tuple[str, str], VoyagePriveRow]]


def rebate_amount(rate: float, amount: float) -> float:
    """``round(rate / 100 * amount, 2)`` with half-up rounding."""
    amount = float(amount)
    if not math.isfinite(amount):
        raise ValueError(f"Transaction amount is not a finite number: {amount!r}")
    value = Decimal(str(rate)) * Decimal(str(amount)) / _HUNDRED
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def _candidate(
    transaction: Transaction, level: int, rate: float, calculation_type: CalculationType
) -> CalculatedRebate:
    return CalculatedRebate(
        transaction_id=transaction.transaction_id,
        provider_customer_code=transaction.provider_customer_code,
        product_name=transaction.salesforce_product_name,
        rebate_level=level,
        rebate_percentage=rate,
        rebate_amount=rebate_amount(rate, transaction.transaction_amount),
        rebate_amount_eur=rebate_amount(rate, transaction.transaction_amount_eur),
        calculation_type=calculation_type,
    )


def _override(
    candidate: CalculatedRebate,
    transaction: Transaction,
    rate: float,
    calculation_type: CalculationType,
) -> CalculatedRebate:
    return candidate.with_rate(
        rate,
        rebate_amount(rate, transaction.transaction_amount),
        rebate_amount(rate, transaction.transaction_amount_eur),
        calculation_type,
    )


def _level_candidates(
    transaction: Transaction,
    row: VisaMcoRow | PartnerPayRow,
    calculation_type: CalculationType,
) -> list[CalculatedRebate]:
    candidates = []
    for level in REBATE_LEVELS:
        rate = row.level(level).effective
        if rate is not None and rate > 0:
            candidates.append(_candidate(transaction, level, rate, calculation_type))
    return candidates


# -- Indexing ------------------------------------------------------------------


def index_visa_mco(rows: Iterable[VisaMcoRow]) -> dict[tuple[str, str], VisaMcoRow]:
    """Key rows by (provider, product); the first row for a key wins."""
    index: dict[tuple[str, str], VisaMcoRow] = {}
    for row in rows:
        index.setdefault((row.provider_customer_code, row.product_name), row)
    return index


def index_partnerpay(rows: Iterable[PartnerPayRow]) -> dict[str, list[PartnerPayRow]]:
    """Group rows by product; provider matching is too loose to key on."""
    index: dict[str, list[PartnerPayRow]] = {}
    for row in rows:
        index.setdefault(row.product_name, []).append(row)
    return index


def index_region_country(
    rows: Iterable[RegionCountryRow],
) -> dict[tuple[str, str], list[RegionCountryRow]]:
    index: dict[tuple[str, str], list[RegionCountryRow]] = {}
    for row in rows:
        index.setdefault((row.provider_customer_code, row.product_name), []).append(row)
    return index


def index_voyage_prive(rows: Iterable[VoyagePriveRow]) -> dict[tuple[str, str], VoyagePriveRow]:
    index: dict[tuple[str, str], VoyagePriveRow] = {}
    for row in rows:
        index.setdefault((row.provider_customer_code, row.product_name), row)
    return index


def _key(transaction: Transaction) -> tuple[str, str]:
    return transaction.provider_customer_code, transaction.salesforce_product_name


# -- Row lookup ----------------------------------------------------------------


def find_visa_mco_row(transaction: Transaction, table: VisaMcoTable) -> VisaMcoRow | None:
    if isinstance(table, Mapping):
        return table.get(_key(transaction))
    return next(
        (
            row
            for row in table
            if row.provider_customer_code == transaction.provider_customer_code
            and row.product_name == transaction.salesforce_product_name
        ),
        None,
    )


def _partnerpay_row_matches(row: PartnerPayRow, transaction: Transaction) -> bool:
    return (
        is_provider_match(row.provider_customer_code, transaction.provider_customer_code)
        and is_product_match(row.product_name, transaction.salesforce_product_name)
        and is_bin_match(row.partnerpay_bin, transaction.bin_card_number)
        and is_airline_match(row.partnerpay_airline, transaction.merchant_name)
    )


def find_partnerpay_row(transaction: Transaction, table: PartnerPayTable) -> PartnerPayRow | None:
    """First row where provider, product, BIN and airline all match."""
    if isinstance(table, Mapping):
        rows: Iterable[PartnerPayRow] = table.get(transaction.salesforce_product_name, ())
    else:
        rows = table
    return next((row for row in rows if _partnerpay_row_matches(row, transaction)), None)


def _field_matches(rule_value: str, transaction_value: str) -> bool:
    return rule_value in WILDCARDS or rule_value == transaction_value


def find_region_country_row(
    transaction: Transaction, table: RegionCountryTable
) -> RegionCountryRow | None:
    """Prefer an exact (region, country) rule, then fall back to wildcards."""
    if isinstance(table, Mapping):
        rules = table.get(_key(transaction), [])
    else:
        rules = [
            rule
            for rule in table
            if rule.provider_customer_code == transaction.provider_customer_code
            and rule.product_name == transaction.salesforce_product_name
        ]
    if not rules:
        return None

    for rule in rules:
        if (
            rule.region_mc == transaction.region_mc
            and rule.transaction_merchant_country == transaction.transaction_merchant_country
        ):
            return rule

    for rule in rules:
        if _field_matches(rule.region_mc, transaction.region_mc) and _field_matches(
            rule.transaction_merchant_country, transaction.transaction_merchant_country
        ):
            return rule
    return None


def find_voyage_prive_row(
    transaction: Transaction, table: VoyagePriveTable
) -> VoyagePriveRow | None:
    if isinstance(table, Mapping):
        return table.get(_key(transaction))
    return next(
        (
            row
            for row in table
            if row.provider_customer_code == transaction.provider_customer_code
            and row.product_name == transaction.salesforce_product_name
        ),
        None,
    )


# -- Resolvers -----------------------------------------------------------------


def resolve_visa_mco(transaction: Transaction, table: VisaMcoTable) -> list[CalculatedRebate]:
    row = find_visa_mco_row(transaction, table)
    if row is None:
        return []
    return _level_candidates(transaction, row, CalculationType.VISA_MCO)


def resolve_partnerpay(
    transaction: Transaction, table: PartnerPayTable
) -> list[CalculatedRebate]:
    row = find_partnerpay_row(transaction, table)
    if row is None:
        return []
    return _level_candidates(transaction, row, CalculationType.PARTNERPAY)


def resolve_region_country(
    transaction: Transaction,
    visa_mco: VisaMcoTable,
    region_country: RegionCountryTable,
    providers: Collection[str] = (),
) -> list[CalculatedRebate]:
    """VisaMCO base with yearly overrides from the matching region rule.

    A rule rate of zero still overrides; only ``None`` leaves the base
    level untouched. Levels missing from the base are not added.
    """
    base = resolve_visa_mco(transaction, visa_mco)
    if transaction.provider_customer_code not in providers:
        return base

    rule = find_region_country_row(transaction, region_country)
    if rule is None:
        return base

    resolved = []
    for candidate in base:
        rate = rule.yearly_rate(candidate.rebate_level)
        if rate is not None:
            candidate = _override(candidate, transaction, rate, CalculationType.REGION_COUNTRY)
        resolved.append(candidate)
    return resolved


def resolve_voyage_prive(
    transaction: Transaction,
    visa_mco: VisaMcoTable,
    voyage_prive: VoyagePriveTable,
    providers: Collection[str] = (),
) -> list[CalculatedRebate]:
    """VisaMCO base with positive yearly overrides, plus VoyagePrive-only levels."""
    base = resolve_visa_mco(transaction, visa_mco)
    if transaction.provider_customer_code not in providers:
        return base

    row = find_voyage_prive_row(transaction, voyage_prive)
    if row is None:
        return base

    by_level: dict[int, CalculatedRebate] = {}
    for candidate in base:
        rate = row.yearly_rate(candidate.rebate_level)
        if rate is not None and rate > 0:
            candidate = _override(candidate, transaction, rate, CalculationType.VOYAGE_PRIVE)
        by_level[candidate.rebate_level] = candidate

    for level in REBATE_LEVELS:
        if level in by_level:
            continue
        rate = row.yearly_rate(level)
        if rate is not None and rate > 0:
            by_level[level] = _candidate(transaction, level, rate, CalculationType.VOYAGE_PRIVE)

    return [by_level[level] for level in sorted(by_level)]
