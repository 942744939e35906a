"""Shared fixtures for rebate_engine tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from rebate_engine.models import (
    AirlineReference,
    PartnerPayRow,
    RegionCountryRow,
    Transaction,
    VisaMcoRow,
    VoyagePriveRow,
    build_levels,
    build_yearly,
)
from rebate_engine.settings import ProviderSets
from rebate_engine.store import ChunkedRebateStore

REGION_PROVIDER = "amesky#amesky"
VOYAGE_PROVIDER = "amvoyageprivefr#amvoyageprivefr"

TRANSACTIONS_CSV = (
    "transaction_id,provider_customer_code,salesforce_product_name,transaction_amount,"
    "transaction_amount_eur,bin_card_number,merchant_name,transaction_merchant_name,"
    "transaction_merchant_category_code,region_mc,transaction_merchant_country\n"
    "T1,P,X,1000.00,1000.00,557062123456,SHOP,,5999,EU,FR\n"
    "T2,P,PP 150,200.00,180.00,557062987654,Air Europa,,4511,EU,ES\n"
    "T3,Q,X,50.00,45.00,,CAFE,,5812,EU,DE\n"
)

VISA_MCO_CSV = (
    "provider_customer_code,product_name,rebate_1_yearly,rebate_1_monthly,"
    "rebate_2_yearly,rebate_2_monthly,rebate_3_yearly,rebate_3_monthly\n"
    "P,X,0.5,0.3,,0.2,0,0.1\n"
)

PARTNERPAY_CSV = (
    "provider_customer_code,product_name,partnerpay_bin,partnerpay_airline,"
    "rebate_1_yearly,rebate_2_yearly\n"
    "partnerpay,PP 150,Tier 1: 557062,Air Europa,1.0,0.25\n"
)


def make_transaction(**overrides) -> Transaction:
    fields = {
        "transaction_id": "T1",
        "provider_customer_code": "P",
        "salesforce_product_name": "X",
        "transaction_amount": 1000.0,
        "transaction_amount_eur": 1000.0,
        "bin_card_number": "557062123456",
        "merchant_name": "SHOP",
        "region_mc": "EU",
        "transaction_merchant_country": "FR",
    }
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture()
def txn_factory():
    """Build a Transaction from the T1 defaults plus keyword overrides."""
    return make_transaction


@pytest.fixture()
def transaction() -> Transaction:
    """The T1 example: provider P, product X, 1000.00 in both currencies."""
    return make_transaction()


@pytest.fixture()
def visa_row() -> VisaMcoRow:
    """Level 1 yearly 0.5/monthly 0.3, level 2 monthly 0.2, level 3 yearly 0/monthly 0.1."""
    return VisaMcoRow(
        provider_customer_code="P",
        product_name="X",
        levels=build_levels(yearly={1: 0.5, 3: 0}, monthly={1: 0.3, 2: 0.2, 3: 0.1}),
    )


@pytest.fixture()
def partnerpay_row() -> PartnerPayRow:
    return PartnerPayRow(
        provider_customer_code="P",
        product_name="X",
        partnerpay_bin="Tier 1: 557062",
        partnerpay_airline="SHOP",
        levels=build_levels(yearly={1: 2.0, 4: 1.5}),
    )


@pytest.fixture()
def region_row() -> RegionCountryRow:
    return RegionCountryRow(
        provider_customer_code=REGION_PROVIDER,
        product_name="X",
        region_mc="EU",
        transaction_merchant_country="FR",
        yearly=build_yearly({1: 0.9}),
    )


@pytest.fixture()
def voyage_row() -> VoyagePriveRow:
    return VoyagePriveRow(
        provider_customer_code=VOYAGE_PROVIDER,
        product_name="X",
        yearly=build_yearly({2: 0.7, 5: 0.4}),
    )


@pytest.fixture()
def airlines() -> list[AirlineReference]:
    return [
        AirlineReference(airline_name="Icelandair", airline_code="FI"),
        AirlineReference(airline_name="Norwegian", airline_code="DY"),
    ]


@pytest.fixture()
def providers() -> ProviderSets:
    return ProviderSets(
        region_country=frozenset({REGION_PROVIDER}),
        voyage_prive=frozenset({VOYAGE_PROVIDER}),
    )


@pytest.fixture()
def store(tmp_path: Path) -> ChunkedRebateStore:
    return ChunkedRebateStore(tmp_path / "store", chunk_size=2, bulk_read_limit=5)


@pytest.fixture()
def input_files(tmp_path: Path) -> dict[str, Path]:
    """Small transaction, Visa/MCO and PartnerPay CSVs on disk."""
    files = {
        "transactions": tmp_path / "transactions.csv",
        "visa_mco": tmp_path / "visa_mco.csv",
        "partnerpay": tmp_path / "partnerpay.csv",
    }
    files["transactions"].write_text(TRANSACTIONS_CSV)
    files["visa_mco"].write_text(VISA_MCO_CSV)
    files["partnerpay"].write_text(PARTNERPAY_CSV)
    return files
