"""Rebate matching and priority resolution for card transactions."""

from __future__ import annotations

from pathlib import Path

__version__ = "1.0.0"


def run_calculation(
    transactions_file: str | Path,
    visa_mco_file: str | Path | None = None,
    partnerpay_file: str | Path | None = None,
    **kwargs,
):
    """Convenience entry-point for Jupyter / REPL usage.

    Usage::

        from rebate_engine import run_calculation
        result = run_calculation(
            "data/transactions.csv",
            visa_mco_file="data/visa_mco.xlsx",
            partnerpay_file="data/partnerpay.xlsx",
        )
    """
    from rebate_engine.pipeline import run_pipeline
    from rebate_engine.settings import Settings

    settings = Settings.from_args(
        transactions_file=transactions_file,
        visa_mco_file=visa_mco_file,
        partnerpay_file=partnerpay_file,
        **kwargs,
    )
    return run_pipeline(settings)
