"""Load transactions and rule tables from CSV/Excel into model objects.

Cells are read as text so identifiers and BINs keep their leading zeros;
amounts and rates are converted explicitly. Blank rate cells become None.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import pandas as pd

from rebate_engine.column_map import (
    AIRLINES,
    PARTNERPAY,
    REGION_COUNTRY,
    TRANSACTIONS,
    VISA_MCO,
    VOYAGE_PRIVE,
    rate_column,
    resolve_columns,
)
from rebate_engine.exceptions import DataLoadError
from rebate_engine.models import (
    REBATE_LEVELS,
    AirlineReference,
    LevelRate,
    PartnerPayRow,
    RegionCountryRow,
    Transaction,
    VisaMcoRow,
    VoyagePriveRow,
)

logger = logging.getLogger(__name__)


def _read_file(path: Path) -> pd.DataFrame:
    """Read a CSV or Excel file into a DataFrame of strings."""
    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            return pd.read_csv(path, dtype=str, keep_default_na=True)
        return pd.read_excel(path, dtype=str)
    except Exception as e:
        raise DataLoadError(f"Failed to read {path}: {e}") from e


def _load_table(path: str | Path, kind: str) -> pd.DataFrame:
    path = Path(path)
    df = resolve_columns(_read_file(path), kind)
    logger.info("Loaded %d %s rows from %s", len(df), kind, path.name)
    return df


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _text(value: object) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _number(value: object) -> float:
    """Parse an amount; unparseable cells become NaN and fail at calculation."""
    if _is_blank(value):
        return math.nan
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return math.nan


def _rate(value: object, column: str, row_number: int) -> float | None:
    if _is_blank(value):
        return None
    text = str(value).strip().rstrip("%").replace(",", ".")
    try:
        return float(text)
    except ValueError as e:
        raise DataLoadError(f"Row {row_number}: invalid rate {value!r} in {column}") from e


def _category_code(value: object) -> int | None:
    number = _number(value)
    if math.isnan(number):
        return None
    return int(number)


def _row_value(row: pd.Series, column: str) -> object:
    return row[column] if column in row.index else None


def _levels(row: pd.Series, row_number: int) -> tuple[LevelRate, ...]:
    return tuple(
        LevelRate(
            yearly=_rate(_row_value(row, rate_column(level)), rate_column(level), row_number),
            monthly=_rate(
                _row_value(row, rate_column(level, "monthly")),
                rate_column(level, "monthly"),
                row_number,
            ),
        )
        for level in REBATE_LEVELS
    )


def _yearly(row: pd.Series, row_number: int) -> tuple[float | None, ...]:
    return tuple(
        _rate(_row_value(row, rate_column(level)), rate_column(level), row_number)
        for level in REBATE_LEVELS
    )


def _rows(df: pd.DataFrame):
    # Spreadsheet row numbers: header is row 1.
    for position, (_, row) in enumerate(df.iterrows(), start=2):
        yield position, row


def load_transactions(path: str | Path) -> list[Transaction]:
    df = _load_table(path, TRANSACTIONS)
    return [
        Transaction(
            transaction_id=_text(row["transaction_id"]),
            provider_customer_code=_text(row["provider_customer_code"]),
            salesforce_product_name=_text(row["salesforce_product_name"]),
            transaction_amount=_number(row["transaction_amount"]),
            transaction_amount_eur=_number(row["transaction_amount_eur"]),
            bin_card_number=_text(_row_value(row, "bin_card_number")) or None,
            merchant_name=_text(_row_value(row, "merchant_name")),
            transaction_merchant_name=_text(_row_value(row, "transaction_merchant_name")),
            transaction_merchant_category_code=_category_code(
                _row_value(row, "transaction_merchant_category_code")
            ),
            region=_text(_row_value(row, "region")),
            region_mc=_text(_row_value(row, "region_mc")),
            transaction_merchant_country=_text(_row_value(row, "transaction_merchant_country")),
            transaction_currency=_text(_row_value(row, "transaction_currency")),
            transaction_date=_text(_row_value(row, "transaction_date")),
        )
        for _, row in _rows(df)
    ]


def load_visa_mco(path: str | Path) -> list[VisaMcoRow]:
    df = _load_table(path, VISA_MCO)
    return [
        VisaMcoRow(
            provider_customer_code=_text(row["provider_customer_code"]),
            product_name=_text(row["product_name"]),
            levels=_levels(row, number),
        )
        for number, row in _rows(df)
    ]


def load_partnerpay(path: str | Path) -> list[PartnerPayRow]:
    df = _load_table(path, PARTNERPAY)
    return [
        PartnerPayRow(
            provider_customer_code=_text(row["provider_customer_code"]),
            product_name=_text(row["product_name"]),
            partnerpay_bin=_text(row["partnerpay_bin"]),
            partnerpay_airline=_text(row["partnerpay_airline"]),
            levels=_levels(row, number),
        )
        for number, row in _rows(df)
    ]


def load_region_country(path: str | Path) -> list[RegionCountryRow]:
    df = _load_table(path, REGION_COUNTRY)
    return [
        RegionCountryRow(
            provider_customer_code=_text(row["provider_customer_code"]),
            product_name=_text(row["product_name"]),
            region_mc=_text(row["region_mc"]),
            transaction_merchant_country=_text(row["transaction_merchant_country"]),
            yearly=_yearly(row, number),
        )
        for number, row in _rows(df)
    ]


def load_voyage_prive(path: str | Path) -> list[VoyagePriveRow]:
    df = _load_table(path, VOYAGE_PRIVE)
    return [
        VoyagePriveRow(
            provider_customer_code=_text(row["provider_customer_code"]),
            product_name=_text(row["product_name"]),
            yearly=_yearly(row, number),
        )
        for number, row in _rows(df)
    ]


def load_airlines(path: str | Path) -> list[AirlineReference]:
    df = _load_table(path, AIRLINES)
    return [
        AirlineReference(
            airline_name=_text(row["airline_name"]),
            airline_code=_text(row["airline_code"]),
            mcc_code=_text(_row_value(row, "mcc_code")),
        )
        for _, row in _rows(df)
        if _text(row["airline_name"])
    ]
