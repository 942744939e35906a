"""Per-transaction merge of resolver outputs.

Stages run in a fixed order. VisaMCO and PartnerPay insert a level only
when it is still empty, so VisaMCO wins ties. RegionCountry and
VoyagePrive overwrite every level they return.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from rebate_engine.models import CalculatedRebate, CalculationType, Transaction
from rebate_engine.resolvers import (
    PartnerPayTable,
    RegionCountryTable,
    VisaMcoTable,
    VoyagePriveTable,
    index_partnerpay,
    index_region_country,
    index_visa_mco,
    index_voyage_prive,
    resolve_partnerpay,
    resolve_region_country,
    resolve_visa_mco,
    resolve_voyage_prive,
)
from rebate_engine.settings import ProviderSets


class MergeMode(Enum):
    INSERT_IF_ABSENT = "insert_if_absent"
    OVERWRITE = "overwrite"


@dataclass(frozen=True)
class RuleSet:
    """The four rule tables used for one calculation run."""

    visa_mco: VisaMcoTable = ()
    partnerpay: PartnerPayTable = ()
    region_country: RegionCountryTable = ()
    voyage_prive: VoyagePriveTable = ()

    @classmethod
    def indexed(cls, visa_mco=(), partnerpay=(), region_country=(), voyage_prive=()) -> RuleSet:
        """Build a rule set with lookup indexes instead of row lists."""
        return cls(
            visa_mco=index_visa_mco(visa_mco),
            partnerpay=index_partnerpay(partnerpay),
            region_country=index_region_country(region_country),
            voyage_prive=index_voyage_prive(voyage_prive),
        )


Resolve = Callable[[Transaction, RuleSet, ProviderSets], list[CalculatedRebate]]
Applies = Callable[[Transaction, ProviderSets], bool]


@dataclass(frozen=True)
class ResolutionStage:
    source: CalculationType
    mode: MergeMode
    resolve: Resolve
    applies: Applies = lambda transaction, providers: True


RESOLUTION_STAGES: tuple[ResolutionStage, ...] = (
    ResolutionStage(
        source=CalculationType.VISA_MCO,
        mode=MergeMode.INSERT_IF_ABSENT,
        resolve=lambda txn, rules, providers: resolve_visa_mco(txn, rules.visa_mco),
    ),
    ResolutionStage(
        source=CalculationType.PARTNERPAY,
        mode=MergeMode.INSERT_IF_ABSENT,
        resolve=lambda txn, rules, providers: resolve_partnerpay(txn, rules.partnerpay),
    ),
    ResolutionStage(
        source=CalculationType.REGION_COUNTRY,
        mode=MergeMode.OVERWRITE,
        resolve=lambda txn, rules, providers: resolve_region_country(
            txn, rules.visa_mco, rules.region_country, providers.region_country
        ),
        applies=lambda txn, providers: txn.provider_customer_code in providers.region_country,
    ),
    ResolutionStage(
        source=CalculationType.VOYAGE_PRIVE,
        mode=MergeMode.OVERWRITE,
        resolve=lambda txn, rules, providers: resolve_voyage_prive(
            txn, rules.visa_mco, rules.voyage_prive, providers.voyage_prive
        ),
        applies=lambda txn, providers: txn.provider_customer_code in providers.voyage_prive,
    ),
)


def merge_stage(
    merged: dict[int, CalculatedRebate],
    candidates: list[CalculatedRebate],
    mode: MergeMode,
) -> dict[int, CalculatedRebate]:
    for candidate in candidates:
        if mode is MergeMode.OVERWRITE or candidate.rebate_level not in merged:
            merged[candidate.rebate_level] = candidate
    return merged


def resolve_transaction(
    transaction: Transaction,
    rules: RuleSet,
    providers: ProviderSets | None = None,
    stages: tuple[ResolutionStage, ...] = RESOLUTION_STAGES,
) -> list[CalculatedRebate]:
    """Fold all stages into at most one rebate per level, ordered by level.

    A zero rate left by an override suppresses the level.
    """
    providers = providers or ProviderSets()
    merged: dict[int, CalculatedRebate] = {}
    for stage in stages:
        if not stage.applies(transaction, providers):
            continue
        merge_stage(merged, stage.resolve(transaction, rules, providers), stage.mode)
    return [
        merged[level] for level in sorted(merged) if merged[level].rebate_percentage > 0
    ]
