"""Rebate calculation over a batch of transactions."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from rebate_engine.exceptions import TransactionError
from rebate_engine.models import (
    AirlineReference,
    CalculatedRebate,
    PartnerPayRow,
    RebateSummary,
    RegionCountryRow,
    Transaction,
    VisaMcoRow,
    VoyagePriveRow,
)
from rebate_engine.priority import RuleSet, resolve_transaction
from rebate_engine.settings import ProviderSets
from rebate_engine.store import ChunkedRebateStore, ChunkMetadata

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 1000

ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True)
class ReferenceTables:
    """Secondary rule tables the engine looks up itself."""

    region_country: Sequence[RegionCountryRow] = ()
    voyage_prive: Sequence[VoyagePriveRow] = ()
    airlines: Sequence[AirlineReference] = ()


@dataclass
class CalculationResult:
    """Outcome of one calculation run."""

    success: bool = False
    transactions_processed: int = 0
    rebates_calculated: int = 0
    rebates: list[CalculatedRebate] = field(default_factory=list)
    summary: RebateSummary = field(default_factory=RebateSummary)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    processing_time: float = 0.0
    metadata: ChunkMetadata | None = None


def summarize(rebates: Iterable[CalculatedRebate], total_transactions: int = 0) -> RebateSummary:
    """Total amounts plus EUR totals by calculation type and provider."""
    total = 0.0
    total_eur = 0.0
    by_type: dict[str, float] = defaultdict(float)
    by_provider: dict[str, float] = defaultdict(float)
    for rebate in rebates:
        total += rebate.rebate_amount
        total_eur += rebate.rebate_amount_eur
        by_type[rebate.calculation_type.value] += rebate.rebate_amount_eur
        by_provider[rebate.provider_customer_code] += rebate.rebate_amount_eur

    return RebateSummary(
        total_transactions=total_transactions,
        total_rebate_amount=round(total, 2),
        total_rebate_amount_eur=round(total_eur, 2),
        by_calculation_type={k: round(v, 2) for k, v in by_type.items()},
        by_provider={k: round(v, 2) for k, v in by_provider.items()},
    )


class RebateCalculationEngine:
    """Resolve every transaction, persist the rebates, and summarize them.

    Row-level failures are collected in ``CalculationResult.errors``.
    Store failures raise ``StoreError``.
    """

    def __init__(
        self,
        reference: ReferenceTables | None = None,
        providers: ProviderSets | None = None,
        store: ChunkedRebateStore | None = None,
    ) -> None:
        self.reference = reference or ReferenceTables()
        self.providers = providers or ProviderSets()
        self.store = store

    def build_rules(
        self, visa_mco: Sequence[VisaMcoRow], partnerpay: Sequence[PartnerPayRow]
    ) -> RuleSet:
        return RuleSet.indexed(
            visa_mco=visa_mco,
            partnerpay=partnerpay,
            region_country=self.reference.region_country,
            voyage_prive=self.reference.voyage_prive,
        )

    def calculate_transaction(
        self, transaction: Transaction, rules: RuleSet
    ) -> list[CalculatedRebate]:
        try:
            return resolve_transaction(transaction, rules, self.providers)
        except Exception as e:
            transaction_id = getattr(transaction, "transaction_id", "<unknown>")
            raise TransactionError(transaction_id, e) from e

    def calculate(
        self,
        transactions: Sequence[Transaction],
        visa_mco: Sequence[VisaMcoRow],
        partnerpay: Sequence[PartnerPayRow],
        on_progress: ProgressCallback | None = None,
    ) -> CalculationResult:
        """Calculate rebates for *transactions* and write them to the store.

        Args:
            transactions: Normalized transactions for this run.
            visa_mco: VisaMCO rule rows.
            partnerpay: PartnerPay rule rows.
            on_progress: Optional callback(processed, total, message).
        """
        start = time.perf_counter()
        result = CalculationResult(transactions_processed=len(transactions))
        total = len(transactions)
        logger.info(
            "Calculating rebates: %d transactions, %d Visa/MCO rows, %d PartnerPay rows",
            total,
            len(visa_mco),
            len(partnerpay),
        )
        if not visa_mco and not partnerpay:
            result.warnings.append("No Visa/MCO or PartnerPay rebate rows loaded")

        rules = self.build_rules(visa_mco, partnerpay)
        seen_ids: set[str] = set()
        duplicates: set[str] = set()

        for processed, transaction in enumerate(transactions, start=1):
            try:
                rebates = self.calculate_transaction(transaction, rules)
            except TransactionError as e:
                logger.warning("%s", e)
                result.errors.append(str(e))
                continue

            if transaction.transaction_id in seen_ids:
                duplicates.add(transaction.transaction_id)
            seen_ids.add(transaction.transaction_id)
            result.rebates.extend(rebates)

            if on_progress and processed % PROGRESS_EVERY == 0:
                on_progress(processed, total, f"Processing transaction {processed} of {total}...")

        if duplicates:
            result.warnings.append(
                f"{len(duplicates)} duplicate transaction ids, e.g. {sorted(duplicates)[:5]}"
            )

        if self.store is not None:
            if on_progress:
                on_progress(total, total, "Storing calculated rebates...")
            result.metadata = self.store.write_all(result.rebates)

        result.summary = summarize(result.rebates, total)
        result.rebates_calculated = len(result.rebates)
        result.success = True
        result.processing_time = time.perf_counter() - start

        logger.info(
            "Calculated %d rebates (EUR %.2f) in %.2fs, %d errors",
            result.rebates_calculated,
            result.summary.total_rebate_amount_eur,
            result.processing_time,
            len(result.errors),
        )
        if on_progress:
            on_progress(total, total, "Rebate calculation complete")
        return result
