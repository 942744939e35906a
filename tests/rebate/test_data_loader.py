"""Tests for rebate_engine.data_loader."""

from __future__ import annotations

import math
from pathlib import Path

import pandas as pd
import pytest

from rebate_engine.data_loader import (
    load_airlines,
    load_partnerpay,
    load_region_country,
    load_transactions,
    load_visa_mco,
    load_voyage_prive,
)
from rebate_engine.exceptions import ColumnMismatchError, DataLoadError
from rebate_engine.models import LevelRate


class TestLoadTransactions:
    def test_loads_sample(self, input_files):
        transactions = load_transactions(input_files["transactions"])
        assert [t.transaction_id for t in transactions] == ["T1", "T2", "T3"]
        t1 = transactions[0]
        assert t1.provider_customer_code == "P"
        assert t1.salesforce_product_name == "X"
        assert t1.transaction_amount == 1000.0
        assert t1.bin_card_number == "557062123456"
        assert t1.transaction_merchant_category_code == 5999
        assert t1.region_mc == "EU"

    def test_blank_optional_fields(self, input_files):
        t3 = load_transactions(input_files["transactions"])[2]
        assert t3.bin_card_number is None
        assert t3.transaction_merchant_name == ""

    def test_alias_headers(self, tmp_path: Path):
        csv = tmp_path / "aliased.csv"
        csv.write_text(
            "Transaction ID,Provider,Salesforce Product Name,Amount,Amount EUR,BIN,MCC\n"
            "A1,P,X,10.5,9.75,00412345,4511\n"
        )
        txn = load_transactions(csv)[0]
        assert txn.transaction_amount_eur == 9.75
        assert txn.bin_card_number == "00412345"
        assert txn.transaction_merchant_category_code == 4511

    def test_alias_and_canonical_amount_headers(self, tmp_path: Path):
        csv = tmp_path / "both.csv"
        csv.write_text(
            "transaction_id,provider_customer_code,salesforce_product_name,"
            "Amount,transaction_amount,transaction_amount_eur\n"
            "T1,P,X,1000,1000,1000\n"
        )
        txn = load_transactions(csv)[0]
        assert txn.transaction_amount == 1000.0
        assert txn.transaction_amount_eur == 1000.0

    def test_unparseable_amount_is_nan(self, tmp_path: Path):
        csv = tmp_path / "bad_amount.csv"
        csv.write_text(
            "transaction_id,provider_customer_code,salesforce_product_name,"
            "transaction_amount,transaction_amount_eur\n"
            "A1,P,X,n/a,\n"
        )
        txn = load_transactions(csv)[0]
        assert math.isnan(txn.transaction_amount)
        assert math.isnan(txn.transaction_amount_eur)

    def test_missing_columns(self, tmp_path: Path):
        csv = tmp_path / "bad.csv"
        csv.write_text("col_a,col_b\n1,2\n")
        with pytest.raises(ColumnMismatchError):
            load_transactions(csv)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(DataLoadError):
            load_transactions(tmp_path / "missing.csv")

    def test_excel(self, tmp_path: Path):
        xlsx = tmp_path / "transactions.xlsx"
        pd.DataFrame(
            {
                "transaction_id": ["X1"],
                "provider_customer_code": ["P"],
                "salesforce_product_name": ["X"],
                "transaction_amount": ["20"],
                "transaction_amount_eur": ["18"],
            }
        ).to_excel(xlsx, index=False)
        txn = load_transactions(xlsx)[0]
        assert txn.transaction_id == "X1"
        assert txn.transaction_amount == 20.0


class TestLoadVisaMco:
    def test_levels(self, input_files):
        row = load_visa_mco(input_files["visa_mco"])[0]
        assert row.level(1) == LevelRate(yearly=0.5, monthly=0.3)
        assert row.level(2) == LevelRate(yearly=None, monthly=0.2)
        assert row.level(3) == LevelRate(yearly=0.0, monthly=0.1)
        assert row.level(8) == LevelRate()

    def test_percent_and_comma_rates(self, tmp_path: Path):
        csv = tmp_path / "visa.csv"
        csv.write_text(
            'provider_customer_code,product_name,rebate_1_yearly,rebate_2_yearly\n'
            'P,X,0.5%,"0,25"\n'
        )
        row = load_visa_mco(csv)[0]
        assert row.level(1).yearly == 0.5
        assert row.level(2).yearly == 0.25

    def test_invalid_rate(self, tmp_path: Path):
        csv = tmp_path / "visa.csv"
        csv.write_text("provider_customer_code,product_name,rebate_1_yearly\nP,X,abc\n")
        with pytest.raises(DataLoadError, match="Row 2"):
            load_visa_mco(csv)


class TestLoadPartnerPay:
    def test_keys(self, input_files):
        row = load_partnerpay(input_files["partnerpay"])[0]
        assert row.provider_customer_code == "partnerpay"
        assert row.partnerpay_bin == "Tier 1: 557062"
        assert row.partnerpay_airline == "Air Europa"
        assert row.level(1).yearly == 1.0
        assert row.level(1).monthly is None


class TestLoadOverrides:
    def test_region_country(self, tmp_path: Path):
        csv = tmp_path / "region.csv"
        csv.write_text(
            "provider_customer_code,product_name,region_mc,transaction_merchant_country,"
            "rebate_1_yearly,rebate_2_yearly\n"
            "amesky#amesky,X,EU,*,0.9,0\n"
            "amesky#amesky,X,,FR,,0.3\n"
        )
        rows = load_region_country(csv)
        assert rows[0].transaction_merchant_country == "*"
        assert rows[0].yearly_rate(1) == 0.9
        assert rows[0].yearly_rate(2) == 0.0
        assert rows[1].region_mc == ""
        assert rows[1].yearly_rate(1) is None

    def test_voyage_prive(self, tmp_path: Path):
        csv = tmp_path / "voyage.csv"
        csv.write_text(
            "provider_customer_code,product_name,rebate_5_yearly\n"
            "amvoyageprivefr#amvoyageprivefr,X,0.4\n"
        )
        row = load_voyage_prive(csv)[0]
        assert row.yearly_rate(5) == 0.4
        assert row.yearly_rate(1) is None


class TestLoadAirlines:
    def test_skips_blank_names(self, tmp_path: Path):
        csv = tmp_path / "airlines.csv"
        csv.write_text("airline_name,airline_code,mcc_code\nIcelandair,FI,3050\n,XX,\n")
        airlines = load_airlines(csv)
        assert len(airlines) == 1
        assert airlines[0].airline_code == "FI"
        assert airlines[0].mcc_code == "3050"
