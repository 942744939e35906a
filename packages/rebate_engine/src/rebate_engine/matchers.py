"""Key-matching predicates shared by the rule resolvers.

Upstream rule tables are maintained by hand, so provider codes and BIN
labels do not always line up with the transaction feed. These predicates
encode the tolerated variations; product and airline keys stay exact.
"""

from __future__ import annotations

import re

# Rule-side provider value that matches any transaction provider.
PROVIDER_WILDCARD = "partnerpay"

BIN_LENGTH = 6

_BIN_TRAILING = re.compile(r"(?::\s*)?(\d{6})\s*$")
_BIN_ANYWHERE = re.compile(r"\d{6}")
_NON_DIGIT = re.compile(r"\D")


def is_provider_match(rule_provider: str | None, transaction_provider: str | None) -> bool:
    """Exact, case-insensitive, or the ``partnerpay`` catch-all."""
    if not rule_provider or not transaction_provider:
        return False
    if rule_provider == transaction_provider:
        return True
    rule_lower = rule_provider.lower()
    if rule_lower == PROVIDER_WILDCARD:
        return True
    return rule_lower == transaction_provider.lower()


def is_product_match(rule_product: str | None, transaction_product: str | None) -> bool:
    """Exact equality; tiered names like "Partner Pay 150" and "100" differ."""
    if not rule_product or not transaction_product:
        return False
    return rule_product == transaction_product


def extract_bin(label: str | None) -> str:
    """Pull the 6-digit BIN out of a rule label such as ``"Tier 1: 557062"``.

    Tries a trailing (optionally colon-prefixed) 6-digit group, then the
    first 6-digit run, then every digit in the label.
    """
    if not label:
        return ""
    text = str(label)
    match = _BIN_TRAILING.search(text)
    if match:
        return match.group(1)
    match = _BIN_ANYWHERE.search(text)
    if match:
        return match.group(0)
    return _NON_DIGIT.sub("", text)


def _digits(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return _NON_DIGIT.sub("", str(value))


def is_bin_match(rule_bin_label: str | None, transaction_bin: object) -> bool:
    """Compare a rule BIN label against a transaction BIN on leading digits."""
    rule_bin = _digits(extract_bin(rule_bin_label))
    txn_bin = _digits(transaction_bin)
    if not rule_bin or not txn_bin:
        return False

    rule_bin6 = rule_bin[:BIN_LENGTH]
    txn_bin6 = txn_bin[:BIN_LENGTH]
    return txn_bin.startswith(rule_bin6) or txn_bin6 in rule_bin or txn_bin6 == rule_bin6


def is_airline_match(rule_airline: str | None, raw_merchant_name: str | None) -> bool:
    """Exact match against the raw merchant name, never the enhanced one."""
    if not rule_airline or not raw_merchant_name:
        return False
    return rule_airline == raw_merchant_name
