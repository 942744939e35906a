"""Typer CLI for rebate_engine."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from rebate_engine.exceptions import ConfigError, DataLoadError, StoreError
from rebate_engine.models import RebateSummary
from rebate_engine.pipeline import export_master_table, run_pipeline
from rebate_engine.reports import calculation_stats
from rebate_engine.settings import DEFAULT_STORE_DIR, Settings
from rebate_engine.store import ChunkedRebateStore

app = typer.Typer(
    name="rebate-engine",
    help="Rebate matching and priority resolution for card transactions.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


def _display_error(title: str, exc: Exception) -> None:
    console.print(
        Panel(f"[bold red]{title}[/bold red]\n\n{exc}", title="Error", border_style="red")
    )


def _display_summary(summary: RebateSummary) -> None:
    table = Table(title="Rebate Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Transactions", f"{summary.total_transactions:,}")
    table.add_row("Total rebate", f"{summary.total_rebate_amount:,.2f}")
    table.add_row("Total rebate (EUR)", f"{summary.total_rebate_amount_eur:,.2f}")
    for calc_type, amount in sorted(summary.by_calculation_type.items()):
        table.add_row(f"  {calc_type} (EUR)", f"{amount:,.2f}")
    console.print(table)

    if summary.by_provider:
        providers = Table(title="EUR by Provider")
        providers.add_column("Provider", style="cyan")
        providers.add_column("EUR", justify="right")
        for provider, amount in sorted(
            summary.by_provider.items(), key=lambda item: item[1], reverse=True
        ):
            providers.add_row(provider, f"{amount:,.2f}")
        console.print(providers)


@app.command()
def calculate(
    transactions_file: Path = typer.Argument(..., help="Path to CSV/Excel transactions file."),
    visa_mco: Path = typer.Option(None, "--visa-mco", help="Visa/MCO rebate table"),
    partnerpay: Path = typer.Option(None, "--partnerpay", help="PartnerPay rebate table"),
    region_country: Path = typer.Option(None, "--region-country", help="Region/country overrides"),
    voyage_prive: Path = typer.Option(None, "--voyage-prive", help="Voyage Prive overrides"),
    airlines: Path = typer.Option(None, "--airlines", help="Airline reference table"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    store_dir: Path = typer.Option(None, "--store-dir", "-o", help="Rebate store directory"),
    chunk_size: int = typer.Option(None, "--chunk-size", help="Rebates per chunk file"),
    master_table: Path = typer.Option(
        None, "--master-table", help="Also write the per-transaction master table (CSV/XLSX)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Calculate rebates for a transaction file and store them in chunks."""
    _setup_logging(verbose)

    store_overrides = {}
    if store_dir:
        store_overrides["store_dir"] = store_dir
    if chunk_size:
        store_overrides["chunk_size"] = chunk_size

    overrides = {
        "transactions_file": transactions_file,
        "visa_mco_file": visa_mco,
        "partnerpay_file": partnerpay,
        "region_country_file": region_country,
        "voyage_prive_file": voyage_prive,
        "airlines_file": airlines,
        "store": store_overrides or None,
    }

    def on_progress(step: int, total: int, msg: str) -> None:
        console.print(f"  [{step + 1}/{total}] {msg}")

    try:
        if config and config.exists():
            settings = Settings.from_yaml(config, **overrides)
        else:
            settings = Settings.from_args(**overrides)

        console.print(f"[bold]Rebate Calculation[/bold] -- {transactions_file.name}")
        result = run_pipeline(settings, on_progress=on_progress)
    except ConfigError as e:
        _display_error("Configuration error", e)
        raise typer.Exit(1)
    except DataLoadError as e:
        _display_error("Could not load input data", e)
        raise typer.Exit(1)
    except StoreError as e:
        _display_error("Could not store calculated rebates", e)
        raise typer.Exit(1)

    calculation = result.calculation
    console.print(f"  {calculation.transactions_processed:,} transactions processed")
    console.print(f"  {calculation.rebates_calculated:,} rebates calculated")
    if calculation.metadata is not None:
        console.print(
            f"  {calculation.metadata.chunk_count} chunks written to {settings.store.store_dir}"
        )
    _display_summary(calculation.summary)

    for warning in calculation.warnings:
        console.print(f"  [yellow]Warning:[/yellow] {warning}")
    if calculation.errors:
        console.print(f"  [red]{len(calculation.errors)} transactions failed[/red]")
        for error in calculation.errors[:10]:
            console.print(f"    {error}")

    if master_table:
        path = export_master_table(result, master_table)
        console.print(f"  Output: {path}")

    console.print("[bold green]Done.[/bold green]")


@app.command()
def stats(
    store_dir: Path = typer.Option(
        DEFAULT_STORE_DIR, "--store-dir", "-o", help="Rebate store directory"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show metadata and counts for a stored calculation."""
    _setup_logging(verbose)

    store = ChunkedRebateStore(store_dir)
    try:
        metadata = store.read_metadata()
        if metadata is None:
            console.print(f"[yellow]No calculated rebates found in {store_dir}[/yellow]")
            raise typer.Exit(1)
        result = calculation_stats(store)
    except StoreError as e:
        _display_error("Could not read rebate store", e)
        raise typer.Exit(1)

    table = Table(title="Rebate Store")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total rebates", f"{metadata.total_rebates:,}")
    table.add_row("Chunks", str(metadata.chunk_count))
    table.add_row("Chunk size", f"{metadata.chunk_size:,}")
    table.add_row("Created", metadata.created_at)
    table.add_row("Average rebate", f"{result.average_rebate_amount:,.2f}")
    table.add_row("Average rebate (EUR)", f"{result.average_rebate_amount_eur:,.2f}")
    console.print(table)

    counts = Table(title="Rebates by Type and Level")
    counts.add_column("Group", style="cyan")
    counts.add_column("Count", justify="right")
    for calc_type, count in sorted(result.by_calculation_type.items()):
        counts.add_row(calc_type, f"{count:,}")
    for level, count in result.by_level.items():
        counts.add_row(f"level {level}", f"{count:,}")
    console.print(counts)
