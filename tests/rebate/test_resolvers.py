"""Tests for rebate_engine.resolvers."""

from __future__ import annotations

import math
from dataclasses import replace

import pytest

from rebate_engine.models import (
    CalculationType,
    PartnerPayRow,
    RegionCountryRow,
    VisaMcoRow,
    VoyagePriveRow,
    build_levels,
    build_yearly,
)
from rebate_engine.resolvers import (
    find_region_country_row,
    index_partnerpay,
    index_region_country,
    index_visa_mco,
    rebate_amount,
    resolve_partnerpay,
    resolve_region_country,
    resolve_visa_mco,
    resolve_voyage_prive,
)

REGION = "amesky#amesky"
VOYAGE = "amvoyageprivefr#amvoyageprivefr"


def _visa(provider: str, yearly=None, monthly=None, product: str = "X") -> VisaMcoRow:
    return VisaMcoRow(
        provider_customer_code=provider,
        product_name=product,
        levels=build_levels(yearly=yearly, monthly=monthly),
    )


def _region(yearly, region_mc="EU", country="FR") -> RegionCountryRow:
    return RegionCountryRow(
        provider_customer_code=REGION,
        product_name="X",
        region_mc=region_mc,
        transaction_merchant_country=country,
        yearly=build_yearly(yearly),
    )


def _by_level(rebates):
    return {r.rebate_level: r for r in rebates}


# -- Rounding ------------------------------------------------------------------


class TestRebateAmount:
    @pytest.mark.parametrize(
        "rate,amount,expected",
        [
            (0.5, 1000.0, 5.0),
            (0.2, 1000.0, 2.0),
            (1.0, 0.5, 0.01),
            (0.125, 100.0, 0.13),
            (1.5, 33.33, 0.5),
            (1.0, -100.0, -1.0),
            (2.0, 0.0, 0.0),
        ],
    )
    def test_half_up(self, rate, amount, expected):
        assert rebate_amount(rate, amount) == expected

    def test_nan_amount_raises(self):
        with pytest.raises(ValueError):
            rebate_amount(1.0, math.nan)


# -- Visa/MCO ------------------------------------------------------------------


class TestResolveVisaMco:
    def test_example_t1(self, transaction, visa_row):
        rebates = resolve_visa_mco(transaction, [visa_row])
        assert [(r.rebate_level, r.rebate_percentage, r.rebate_amount) for r in rebates] == [
            (1, 0.5, 5.0),
            (2, 0.2, 2.0),
        ]
        assert all(r.calculation_type is CalculationType.VISA_MCO for r in rebates)

    def test_yearly_zero_suppresses_monthly(self, transaction, visa_row):
        levels = _by_level(resolve_visa_mco(transaction, [visa_row]))
        assert 3 not in levels

    def test_eur_amount_independent(self, txn_factory, visa_row):
        txn = txn_factory(transaction_amount=1000.0, transaction_amount_eur=900.0)
        level1 = _by_level(resolve_visa_mco(txn, [visa_row]))[1]
        assert level1.rebate_amount == 5.0
        assert level1.rebate_amount_eur == 4.5

    def test_indexed_table(self, transaction, visa_row):
        assert resolve_visa_mco(transaction, index_visa_mco([visa_row])) == resolve_visa_mco(
            transaction, [visa_row]
        )

    def test_no_match(self, txn_factory, visa_row):
        assert resolve_visa_mco(txn_factory(provider_customer_code="Q"), [visa_row]) == []

    def test_first_row_wins_in_index(self, transaction):
        first = _visa("P", yearly={1: 1.0})
        second = _visa("P", yearly={1: 2.0})
        rebates = resolve_visa_mco(transaction, index_visa_mco([first, second]))
        assert rebates[0].rebate_percentage == 1.0

    def test_rebate_carries_transaction_keys(self, transaction, visa_row):
        rebate = resolve_visa_mco(transaction, [visa_row])[0]
        assert rebate.transaction_id == "T1"
        assert rebate.provider_customer_code == "P"
        assert rebate.product_name == "X"


# -- PartnerPay ----------------------------------------------------------------


class TestResolvePartnerPay:
    def test_all_keys_match(self, transaction, partnerpay_row):
        rebates = resolve_partnerpay(transaction, [partnerpay_row])
        assert [(r.rebate_level, r.rebate_amount) for r in rebates] == [(1, 20.0), (4, 15.0)]
        assert all(r.calculation_type is CalculationType.PARTNERPAY for r in rebates)

    def test_provider_wildcard(self, txn_factory, partnerpay_row):
        row = replace(partnerpay_row, provider_customer_code="partnerpay")
        txn = txn_factory(provider_customer_code="amanything#amanything")
        assert len(resolve_partnerpay(txn, [row])) == 2

    def test_bin_mismatch(self, txn_factory, partnerpay_row):
        txn = txn_factory(bin_card_number="411111123456")
        assert resolve_partnerpay(txn, [partnerpay_row]) == []

    def test_airline_must_match_raw_name(self, txn_factory, partnerpay_row):
        txn = txn_factory(merchant_name="SHOP (XX)")
        assert resolve_partnerpay(txn, [partnerpay_row]) == []

    def test_product_mismatch(self, txn_factory, partnerpay_row):
        txn = txn_factory(salesforce_product_name="Y")
        assert resolve_partnerpay(txn, index_partnerpay([partnerpay_row])) == []

    def test_first_matching_row_used(self, transaction, partnerpay_row):
        other = PartnerPayRow(
            provider_customer_code="P",
            product_name="X",
            partnerpay_bin="557062",
            partnerpay_airline="SHOP",
            levels=build_levels(yearly={1: 9.0}),
        )
        rebates = resolve_partnerpay(transaction, index_partnerpay([partnerpay_row, other]))
        assert rebates[0].rebate_percentage == 2.0


# -- RegionCountry -------------------------------------------------------------


class TestFindRegionCountryRow:
    def test_exact_preferred_over_wildcard(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        wildcard = _region({1: 0.1}, region_mc="*", country="*")
        exact = _region({1: 0.9})
        assert find_region_country_row(txn, [wildcard, exact]) is exact
        assert find_region_country_row(txn, index_region_country([wildcard, exact])) is exact

    @pytest.mark.parametrize(
        "region_mc,country",
        [("*", "FR"), ("EU", "ALL"), ("ALL", "*")],
    )
    def test_wildcards(self, txn_factory, region_mc, country):
        txn = txn_factory(provider_customer_code=REGION)
        rule = _region({1: 0.9}, region_mc=region_mc, country=country)
        assert find_region_country_row(txn, [rule]) is rule

    def test_blank_field_is_not_a_wildcard(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        assert find_region_country_row(txn, [_region({1: 0.9}, region_mc="")]) is None

    def test_other_country(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION, transaction_merchant_country="DE")
        assert find_region_country_row(txn, [_region({1: 0.9})]) is None


class TestResolveRegionCountry:
    def test_overrides_supplied_levels_only(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        visa = [_visa(REGION, yearly={1: 0.5, 2: 0.4})]
        levels = _by_level(resolve_region_country(txn, visa, [_region({1: 0.9})], {REGION}))
        assert levels[1].rebate_percentage == 0.9
        assert levels[1].rebate_amount == 9.0
        assert levels[1].calculation_type is CalculationType.REGION_COUNTRY
        assert levels[2].rebate_percentage == 0.4
        assert levels[2].calculation_type is CalculationType.VISA_MCO

    def test_zero_rate_still_overrides(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        visa = [_visa(REGION, yearly={1: 0.5})]
        levels = _by_level(resolve_region_country(txn, visa, [_region({1: 0})], {REGION}))
        assert levels[1].rebate_percentage == 0
        assert levels[1].calculation_type is CalculationType.REGION_COUNTRY

    def test_levels_missing_from_base_not_added(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        visa = [_visa(REGION, yearly={1: 0.5})]
        levels = _by_level(resolve_region_country(txn, visa, [_region({3: 1.0})], {REGION}))
        assert set(levels) == {1}

    def test_provider_outside_set_returns_base(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        visa = [_visa(REGION, yearly={1: 0.5})]
        rebates = resolve_region_country(txn, visa, [_region({1: 0.9})], set())
        assert rebates[0].calculation_type is CalculationType.VISA_MCO

    def test_no_rule_returns_base(self, txn_factory):
        txn = txn_factory(provider_customer_code=REGION)
        visa = [_visa(REGION, yearly={1: 0.5})]
        rebates = resolve_region_country(txn, visa, [], {REGION})
        assert rebates == resolve_visa_mco(txn, visa)


# -- VoyagePrive ---------------------------------------------------------------


class TestResolveVoyagePrive:
    def test_overrides_and_adds_levels(self, txn_factory, voyage_row):
        txn = txn_factory(provider_customer_code=VOYAGE)
        visa = [_visa(VOYAGE, yearly={1: 0.5, 2: 0.4})]
        rebates = resolve_voyage_prive(txn, visa, [voyage_row], {VOYAGE})
        assert [(r.rebate_level, r.rebate_percentage, r.calculation_type) for r in rebates] == [
            (1, 0.5, CalculationType.VISA_MCO),
            (2, 0.7, CalculationType.VOYAGE_PRIVE),
            (5, 0.4, CalculationType.VOYAGE_PRIVE),
        ]

    def test_zero_rate_does_not_override(self, txn_factory):
        txn = txn_factory(provider_customer_code=VOYAGE)
        visa = [_visa(VOYAGE, yearly={1: 0.5})]
        row = VoyagePriveRow(
            provider_customer_code=VOYAGE, product_name="X", yearly=build_yearly({1: 0})
        )
        rebates = resolve_voyage_prive(txn, visa, [row], {VOYAGE})
        assert rebates[0].rebate_percentage == 0.5
        assert rebates[0].calculation_type is CalculationType.VISA_MCO

    def test_without_visa_base(self, txn_factory, voyage_row):
        txn = txn_factory(provider_customer_code=VOYAGE)
        rebates = resolve_voyage_prive(txn, [], [voyage_row], {VOYAGE})
        assert [r.rebate_level for r in rebates] == [2, 5]

    def test_provider_outside_set(self, txn_factory, voyage_row):
        txn = txn_factory(provider_customer_code=VOYAGE)
        assert resolve_voyage_prive(txn, [], [voyage_row], set()) == []
