"""Column alias resolution and required column definitions per input table."""

from __future__ import annotations

import logging
import re

import pandas as pd

from rebate_engine.exceptions import ColumnMismatchError
from rebate_engine.models import REBATE_LEVELS

logger = logging.getLogger(__name__)

TRANSACTIONS = "transactions"
VISA_MCO = "visa_mco"
PARTNERPAY = "partnerpay"
REGION_COUNTRY = "region_country"
VOYAGE_PRIVE = "voyage_prive"
AIRLINES = "airlines"

REQUIRED_COLUMNS: dict[str, set[str]] = {
    TRANSACTIONS: {
        "transaction_id",
        "provider_customer_code",
        "salesforce_product_name",
        "transaction_amount",
        "transaction_amount_eur",
    },
    VISA_MCO: {"provider_customer_code", "product_name"},
    PARTNERPAY: {"provider_customer_code", "product_name", "partnerpay_bin", "partnerpay_airline"},
    REGION_COUNTRY: {
        "provider_customer_code",
        "product_name",
        "region_mc",
        "transaction_merchant_country",
    },
    VOYAGE_PRIVE: {"provider_customer_code", "product_name"},
    AIRLINES: {"airline_name", "airline_code"},
}

OPTIONAL_COLUMNS: dict[str, set[str]] = {
    TRANSACTIONS: {
        "bin_card_number",
        "merchant_name",
        "transaction_merchant_name",
        "transaction_merchant_category_code",
        "region",
        "region_mc",
        "transaction_merchant_country",
        "transaction_currency",
        "transaction_date",
    },
    AIRLINES: {"mcc_code"},
}

# Maps normalized header variations -> canonical name.
COLUMN_ALIASES: dict[str, str] = {
    # transaction_id
    "transaction_id": "transaction_id",
    "transactionid": "transaction_id",
    "txn_id": "transaction_id",
    # provider_customer_code
    "provider_customer_code": "provider_customer_code",
    "provider_customer_code_c": "provider_customer_code",
    "providercustomercode": "provider_customer_code",
    "provider": "provider_customer_code",
    # product names
    "salesforce_product_name": "salesforce_product_name",
    "salesforceproductname": "salesforce_product_name",
    "product_name": "product_name",
    "productname": "product_name",
    "product": "product_name",
    # amounts
    "transaction_amount": "transaction_amount",
    "transactionamount": "transaction_amount",
    "amount": "transaction_amount",
    "transaction_amount_eur": "transaction_amount_eur",
    "transactionamounteur": "transaction_amount_eur",
    "amount_eur": "transaction_amount_eur",
    # BIN
    "bin_card_number": "bin_card_number",
    "bincardnumber": "bin_card_number",
    "bin": "bin_card_number",
    "partnerpay_bin": "partnerpay_bin",
    "partner_pay_bin": "partnerpay_bin",
    "partnerpay_partnerdirect_bin": "partnerpay_bin",
    # merchant names
    "merchant_name": "merchant_name",
    "merchantname": "merchant_name",
    "transaction_merchant_name": "transaction_merchant_name",
    "transactionmerchantname": "transaction_merchant_name",
    "partnerpay_airline": "partnerpay_airline",
    "partner_pay_airline": "partnerpay_airline",
    "partner_pay_airline_account_name": "partnerpay_airline",
    # category code
    "transaction_merchant_category_code": "transaction_merchant_category_code",
    "transactionmerchantcategorycode": "transaction_merchant_category_code",
    "mcc": "transaction_merchant_category_code",
    "mcc_code": "mcc_code",
    # geography
    "region": "region",
    "region_mc": "region_mc",
    "regionmc": "region_mc",
    "transaction_merchant_country": "transaction_merchant_country",
    "transactionmerchantcountry": "transaction_merchant_country",
    "merchant_country": "transaction_merchant_country",
    # misc transaction fields
    "transaction_currency": "transaction_currency",
    "currency": "transaction_currency",
    "transaction_date": "transaction_date",
    "date": "transaction_date",
    # airlines
    "airline_name": "airline_name",
    "airline_code": "airline_code",
}

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_RATE_COLUMN = re.compile(r"^rebate_?([1-8])(?:_?(yearly|monthly))?$")


def normalize_header(col: object) -> str:
    """Lowercase and collapse punctuation/whitespace runs to underscores."""
    return _NON_ALNUM.sub("_", str(col).strip().lower()).strip("_")


def rate_column(level: int, period: str = "yearly") -> str:
    return f"rebate_{level}_{period}"


RATE_COLUMNS: tuple[str, ...] = tuple(
    rate_column(level, period) for level in REBATE_LEVELS for period in ("yearly", "monthly")
)


def canonical_name(col: object) -> str | None:
    key = normalize_header(col)
    if key in COLUMN_ALIASES:
        return COLUMN_ALIASES[key]
    match = _RATE_COLUMN.match(key)
    if match:
        return rate_column(int(match.group(1)), match.group(2) or "yearly")
    return None


def resolve_columns(df: pd.DataFrame, kind: str) -> pd.DataFrame:
    """Rename columns to canonical names for table *kind*.

    Returns a new DataFrame with resolved column names. The first column
    resolving to a canonical name claims it; a later column already spelled
    that way is dropped so every canonical name appears once.
    Raises ColumnMismatchError if required columns are missing after resolution.
    """
    if kind not in REQUIRED_COLUMNS:
        raise ValueError(f"Unknown table kind: {kind}")

    rename_map: dict[str, str] = {}
    shadowed: list[str] = []
    for col in df.columns:
        canonical = canonical_name(col)
        if not canonical:
            continue
        if canonical not in rename_map.values():
            rename_map[col] = canonical
        elif col == canonical:
            shadowed.append(col)

    if shadowed:
        logger.warning("Ignoring duplicate %s columns: %s", kind, ", ".join(shadowed))
    result = df.drop(columns=shadowed).rename(columns=rename_map)

    resolved = set(result.columns)
    missing = REQUIRED_COLUMNS[kind] - resolved
    if missing:
        raise ColumnMismatchError(missing=missing, available=resolved, kind=kind)

    return result
