"""Airline merchant-name enhancement for airline-ticketing transactions.

The enhanced name is a display/reporting value only. PartnerPay matching
always uses the raw merchant name.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from rebate_engine.models import AirlineReference, Transaction

DEFAULT_AIRLINE_MCC = 4511


@dataclass(frozen=True)
class AirlineFallback:
    """Hardcoded airline rule applied when the reference table has no match.

    contains: lowercase substring searched in the merchant name.
    canonical: enhanced name returned on match.
    """

    contains: str
    canonical: str


# Ordered -- first match wins. Predates the airline reference table.
AIRLINE_FALLBACKS: tuple[AirlineFallback, ...] = (
    AirlineFallback(contains="air europa", canonical="Air Europa (UX)"),
    AirlineFallback(contains="air greenland", canonical="Air Greenland (GL)"),
    AirlineFallback(contains="latam", canonical="LATAM Airlines Group"),
)

# Enhanced airline name -> carrier-specific category code.
AIRLINE_MCC_CODES: dict[str, str] = {
    "Air Europa (UX)": "1419",
    "Air Greenland": "39GL",
    "Air Greenland (GL)": "39GL",
    "Icelandair (FI)": "3050",
    "LATAM": "3052",
    "LATAM Airlines Group": "3052",
    "Norwegian (DY)": "3211",
    "ROYAL AIR MAROC": "3048",
    "Thai Airways": "3077",
    "TURKISH AIRLINES": "3047",
    "United Airlines": "3000",
}


def _is_airline_ticketing(transaction: Transaction, airline_mcc: int) -> bool:
    code = transaction.transaction_merchant_category_code
    if code is None:
        return False
    try:
        return int(code) == int(airline_mcc)
    except (TypeError, ValueError):
        return False


def enhance_merchant_name(
    transaction: Transaction,
    airlines: Iterable[AirlineReference] = (),
    airline_mcc: int = DEFAULT_AIRLINE_MCC,
) -> str:
    """Return ``"{airline} ({code})"`` for airline tickets, else the raw name."""
    if not _is_airline_ticketing(transaction, airline_mcc):
        return transaction.merchant_name

    names = (
        (transaction.merchant_name or "").lower(),
        (transaction.transaction_merchant_name or "").lower(),
    )
    for airline in airlines:
        airline_lower = (airline.airline_name or "").lower()
        if not airline_lower:
            continue
        if any(airline_lower in name for name in names):
            return f"{airline.airline_name} ({airline.airline_code})"

    for name in names:
        for rule in AIRLINE_FALLBACKS:
            if rule.contains in name:
                return rule.canonical

    return transaction.merchant_name


def enhanced_mcc(
    transaction: Transaction,
    airlines: Iterable[AirlineReference] = (),
    airline_mcc: int = DEFAULT_AIRLINE_MCC,
) -> str:
    """Carrier-specific category code for mapped airlines, else the original code."""
    if _is_airline_ticketing(transaction, airline_mcc):
        enhanced = enhance_merchant_name(transaction, airlines, airline_mcc)
        if enhanced in AIRLINE_MCC_CODES:
            return AIRLINE_MCC_CODES[enhanced]

    code = transaction.transaction_merchant_category_code
    return "" if code is None else str(code)
