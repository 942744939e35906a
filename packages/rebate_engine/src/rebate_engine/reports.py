"""Read models built from the rebate store for downstream reporting.

All functions stream the store chunk by chunk, so they work for result
sets above the bulk-read limit.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field

import numpy as np
import pandas as pd

from rebate_engine.merchant_names import DEFAULT_AIRLINE_MCC, enhance_merchant_name, enhanced_mcc
from rebate_engine.models import REBATE_LEVELS, AirlineReference, CalculatedRebate, Transaction
from rebate_engine.resolvers import rebate_amount
from rebate_engine.store import ChunkedRebateStore

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01


@dataclass
class CalculationStats:
    total_transactions: int = 0
    total_rebates: int = 0
    average_rebate_amount: float = 0.0
    average_rebate_amount_eur: float = 0.0
    by_calculation_type: dict[str, int] = field(default_factory=dict)
    by_level: dict[int, int] = field(default_factory=dict)


@dataclass
class ValidationReport:
    transaction_id: str
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    rebate_count: int = 0
    total_rebate_amount: float = 0.0
    total_rebate_amount_eur: float = 0.0


def build_master_table(
    transactions: Sequence[Transaction],
    store: ChunkedRebateStore,
    airlines: Iterable[AirlineReference] = (),
    airline_mcc: int = DEFAULT_AIRLINE_MCC,
) -> pd.DataFrame:
    """One row per transaction with its per-level rates and amounts.

    Adds the enhanced merchant name and category code columns. Levels with
    no rebate have a NaN rate and zero amounts.
    """
    airlines = list(airlines)
    df = pd.DataFrame([asdict(t) for t in transactions])
    if df.empty:
        return df

    df["merchant_name_new"] = [
        enhance_merchant_name(t, airlines, airline_mcc) for t in transactions
    ]
    df["transaction_merchant_category_code_2"] = [
        enhanced_mcc(t, airlines, airline_mcc) for t in transactions
    ]

    positions: dict[str, int] = {}
    for i, t in enumerate(transactions):
        positions.setdefault(t.transaction_id, i)

    n = len(transactions)
    rates = {level: np.full(n, np.nan) for level in REBATE_LEVELS}
    amounts = {level: np.zeros(n) for level in REBATE_LEVELS}
    amounts_eur = {level: np.zeros(n) for level in REBATE_LEVELS}

    def fill(chunk: list[CalculatedRebate], index: int, chunk_count: int) -> None:
        for rebate in chunk:
            pos = positions.get(rebate.transaction_id)
            if pos is None or rebate.rebate_level not in rates:
                continue
            rates[rebate.rebate_level][pos] = rebate.rebate_percentage
            amounts[rebate.rebate_level][pos] = rebate.rebate_amount
            amounts_eur[rebate.rebate_level][pos] = rebate.rebate_amount_eur

    store.for_each_chunk(fill)

    for level in REBATE_LEVELS:
        df[f"rebate_{level}_yearly"] = rates[level]
    for level in REBATE_LEVELS:
        df[f"rebate_amount_{level}"] = amounts[level]
    for level in REBATE_LEVELS:
        df[f"rebate_amount_eur_{level}"] = amounts_eur[level]

    total_eur = sum(amounts_eur[level].sum() for level in REBATE_LEVELS)
    logger.info("Master table: %d rows, EUR %.2f across all levels", len(df), total_eur)
    return df


def calculation_stats(store: ChunkedRebateStore, total_transactions: int = 0) -> CalculationStats:
    """Counts and averages over every stored rebate."""
    by_type: Counter[str] = Counter()
    by_level: Counter[int] = Counter()
    totals = {"count": 0, "amount": 0.0, "amount_eur": 0.0}

    def tally(chunk: list[CalculatedRebate], index: int, chunk_count: int) -> None:
        for rebate in chunk:
            totals["count"] += 1
            totals["amount"] += rebate.rebate_amount
            totals["amount_eur"] += rebate.rebate_amount_eur
            by_type[rebate.calculation_type.value] += 1
            by_level[rebate.rebate_level] += 1

    store.for_each_chunk(tally)

    count = totals["count"]
    return CalculationStats(
        total_transactions=total_transactions,
        total_rebates=count,
        average_rebate_amount=round(totals["amount"] / count, 2) if count else 0.0,
        average_rebate_amount_eur=round(totals["amount_eur"] / count, 2) if count else 0.0,
        by_calculation_type=dict(by_type),
        by_level=dict(sorted(by_level.items())),
    )


def validate_transaction(
    transaction: Transaction, store: ChunkedRebateStore
) -> ValidationReport:
    """Recompute stored amounts for one transaction and flag mismatches."""
    report = ValidationReport(transaction_id=transaction.transaction_id)
    rebates: list[CalculatedRebate] = []

    def collect(chunk: list[CalculatedRebate], index: int, chunk_count: int) -> None:
        rebates.extend(r for r in chunk if r.transaction_id == transaction.transaction_id)

    store.for_each_chunk(collect)

    report.rebate_count = len(rebates)
    report.total_rebate_amount = round(sum(r.rebate_amount for r in rebates), 2)
    report.total_rebate_amount_eur = round(sum(r.rebate_amount_eur for r in rebates), 2)

    for rebate in rebates:
        try:
            expected = rebate_amount(rebate.rebate_percentage, transaction.transaction_amount)
            expected_eur = rebate_amount(
                rebate.rebate_percentage, transaction.transaction_amount_eur
            )
        except ValueError as e:
            report.is_valid = False
            report.errors.append(f"Level {rebate.rebate_level}: {e}")
            continue
        if abs(rebate.rebate_amount - expected) > AMOUNT_TOLERANCE:
            report.is_valid = False
            report.errors.append(
                f"Rebate amount mismatch for level {rebate.rebate_level}: "
                f"expected {expected}, got {rebate.rebate_amount}"
            )
        if abs(rebate.rebate_amount_eur - expected_eur) > AMOUNT_TOLERANCE:
            report.is_valid = False
            report.errors.append(
                f"Rebate amount EUR mismatch for level {rebate.rebate_level}: "
                f"expected {expected_eur}, got {rebate.rebate_amount_eur}"
            )
    return report
