"""Pydantic configuration for rebate_engine."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from rebate_engine.exceptions import ConfigError
from rebate_engine.merchant_names import DEFAULT_AIRLINE_MCC


DEFAULT_CONFIG_PATH = Path("config.yaml")
DEFAULT_STORE_DIR = Path("rebate-data/")

REGION_COUNTRY_PROVIDERS = frozenset(
    {
        "ama1inclimited#ama1inclimited",
        "amesky#amesky",
        "amjttravelhk#amjttravel",
        "amjttravelhk#amjttravelhk",
        "amletsflyhk#amletsflyhk",
        "amletsflylimited#amletsflylimited",
        "amqiyoujihk#amqiyoujihk",
        "amtttlimited#amtttlimited",
        "amtttlimitedhk#amtttlimitedhk",
    }
)

VOYAGE_PRIVE_PROVIDERS = frozenset(
    {
        "amvoyageprivefr#amvoyageprivefr",
        "amvoyagepriveit#amvoyagepriveit",
        "amvoyagepriveuk#amvoyagepriveuk",
    }
)

TABLE_SUFFIXES = (".csv", ".xlsx", ".xls")


class ProviderSets(BaseModel):
    """Providers whose rebates are overridden by a secondary rule table."""

    model_config = {"frozen": True}

    region_country: frozenset[str] = Field(default_factory=lambda: REGION_COUNTRY_PROVIDERS)
    voyage_prive: frozenset[str] = Field(default_factory=lambda: VOYAGE_PRIVE_PROVIDERS)

    @model_validator(mode="after")
    def reject_overlap(self) -> ProviderSets:
        overlap = self.region_country & self.voyage_prive
        if overlap:
            raise ValueError(
                "Providers listed as both region_country and voyage_prive: "
                f"{sorted(overlap)}"
            )
        return self


class StoreConfig(BaseModel):
    """Chunked rebate store settings."""

    model_config = {"frozen": True}

    store_dir: Path = DEFAULT_STORE_DIR
    chunk_size: int = Field(default=50_000, gt=0)
    bulk_read_limit: int = Field(default=100_000, gt=0)

    @field_validator("store_dir", mode="before")
    @classmethod
    def expand_store_dir(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


def _validate_table_path(v: str | Path | None, label: str) -> Path | None:
    if v is None:
        return None
    p = Path(v).expanduser().resolve()
    if not p.exists():
        raise ValueError(f"{label} file not found: {p}")
    if p.suffix.lower() not in TABLE_SUFFIXES:
        raise ValueError(f"Unsupported file type for {label}: {p.suffix}")
    return p


class Settings(BaseModel):
    """Application configuration -- immutable after creation."""

    model_config = {"frozen": True, "extra": "forbid"}

    transactions_file: Path | None = None
    visa_mco_file: Path | None = None
    partnerpay_file: Path | None = None
    region_country_file: Path | None = None
    voyage_prive_file: Path | None = None
    airlines_file: Path | None = None
    providers: ProviderSets = ProviderSets()
    store: StoreConfig = StoreConfig()
    airline_mcc: int = DEFAULT_AIRLINE_MCC

    @field_validator(
        "transactions_file",
        "visa_mco_file",
        "partnerpay_file",
        "region_country_file",
        "voyage_prive_file",
        "airlines_file",
        mode="before",
    )
    @classmethod
    def expand_and_validate_table(cls, v: str | Path | None, info: ValidationInfo) -> Path | None:
        return _validate_table_path(v, info.field_name.removesuffix("_file"))

    @classmethod
    def from_yaml(cls, config_path: Path = DEFAULT_CONFIG_PATH, **cli_overrides) -> Settings:
        """Load from YAML, merge CLI overrides (highest priority)."""
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            data = {}
        for key, value in cli_overrides.items():
            if value is None:
                continue
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        try:
            return cls(**data)
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e

    @classmethod
    def from_args(cls, **kwargs) -> Settings:
        """Create settings directly from arguments (no YAML needed)."""
        try:
            return cls(**{k: v for k, v in kwargs.items() if v is not None})
        except Exception as e:
            raise ConfigError(f"Configuration error: {e}") from e
