"""Pipeline orchestrator shared by CLI and run_calculation()."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from rebate_engine.data_loader import (
    load_airlines,
    load_partnerpay,
    load_region_country,
    load_transactions,
    load_visa_mco,
    load_voyage_prive,
)
from rebate_engine.engine import CalculationResult, RebateCalculationEngine, ReferenceTables
from rebate_engine.exceptions import ConfigError
from rebate_engine.models import PartnerPayRow, Transaction, VisaMcoRow
from rebate_engine.reports import build_master_table
from rebate_engine.settings import Settings
from rebate_engine.store import ChunkedRebateStore

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Container for all pipeline outputs."""

    settings: Settings
    store: ChunkedRebateStore
    calculation: CalculationResult
    transactions: list[Transaction] = field(default_factory=list)
    reference: ReferenceTables = field(default_factory=ReferenceTables)


def _load_reference(settings: Settings) -> ReferenceTables:
    return ReferenceTables(
        region_country=(
            load_region_country(settings.region_country_file)
            if settings.region_country_file
            else []
        ),
        voyage_prive=(
            load_voyage_prive(settings.voyage_prive_file) if settings.voyage_prive_file else []
        ),
        airlines=load_airlines(settings.airlines_file) if settings.airlines_file else [],
    )


def run_pipeline(
    settings: Settings,
    on_progress: Callable[[int, int, str], None] | None = None,
) -> PipelineResult:
    """Execute the full calculation: load -> resolve -> store.

    Args:
        settings: Application configuration.
        on_progress: Optional callback(step, total, message) for UI progress.
    """
    if settings.transactions_file is None:
        raise ConfigError("No transactions file configured")

    # Step 1: Load data
    if on_progress:
        on_progress(0, 3, "Loading data...")
    transactions = load_transactions(settings.transactions_file)
    visa_mco: list[VisaMcoRow] = (
        load_visa_mco(settings.visa_mco_file) if settings.visa_mco_file else []
    )
    partnerpay: list[PartnerPayRow] = (
        load_partnerpay(settings.partnerpay_file) if settings.partnerpay_file else []
    )
    reference = _load_reference(settings)

    # Step 2: Calculate and store
    if on_progress:
        on_progress(1, 3, "Calculating rebates...")
    store = ChunkedRebateStore.from_config(settings.store)
    engine = RebateCalculationEngine(reference=reference, providers=settings.providers, store=store)
    calculation = engine.calculate(transactions, visa_mco, partnerpay)

    for warning in calculation.warnings:
        logger.warning("%s", warning)
    if calculation.errors:
        logger.warning("%d transactions failed", len(calculation.errors))

    if on_progress:
        on_progress(2, 3, "Done")

    return PipelineResult(
        settings=settings,
        store=store,
        calculation=calculation,
        transactions=transactions,
        reference=reference,
    )


def export_master_table(result: PipelineResult, path: str | Path) -> Path:
    """Write the per-transaction master table as CSV or Excel."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = build_master_table(
        result.transactions,
        result.store,
        result.reference.airlines,
        result.settings.airline_mcc,
    )
    if path.suffix.lower() in (".xlsx", ".xls"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)
    logger.info("Master table written to %s", path)
    return path
