"""Exception hierarchy for rebate_engine."""


class RebateError(Exception):
    """Base exception for all rebate_engine errors."""


class ConfigError(RebateError):
    """Invalid or missing configuration."""


class DataLoadError(RebateError):
    """Failed to load or parse an input file."""


class ColumnMismatchError(DataLoadError):
    """Required columns missing from an input table."""

    def __init__(self, missing: set[str], available: set[str], kind: str = "") -> None:
        self.missing = missing
        self.available = available
        self.kind = kind
        prefix = f"{kind}: " if kind else ""
        super().__init__(f"{prefix}Missing required columns: {sorted(missing)}")


class TransactionError(RebateError):
    """Rebate resolution failed for a single transaction."""

    def __init__(self, transaction_id: str, cause: Exception) -> None:
        self.transaction_id = transaction_id
        self.cause = cause
        super().__init__(f"Error processing transaction {transaction_id}: {cause}")


class StoreError(RebateError):
    """Writing calculated rebates to the chunk store failed."""
