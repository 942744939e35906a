"""Chunked JSON persistence for calculated rebates.

A write splits the rebates into fixed-size chunk files and finishes with a
metadata file describing them::

    <store_dir>/calculated_rebates_0.json
    <store_dir>/calculated_rebates_1.json
    ...
    <store_dir>/calculated_rebates_meta.json

Every write replaces the previous set. The store assumes a single writer;
readers should only run once a write has returned.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterable, Iterator
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Any

from rebate_engine.exceptions import StoreError
from rebate_engine.models import CalculatedRebate
from rebate_engine.settings import StoreConfig

logger = logging.getLogger(__name__)

CHUNK_PREFIX = "calculated_rebates_"
META_FILENAME = f"{CHUNK_PREFIX}meta.json"
DEFAULT_CHUNK_SIZE = 50_000
DEFAULT_BULK_READ_LIMIT = 100_000

ChunkCallback = Callable[[list[CalculatedRebate], int, int], None]


@dataclass(frozen=True)
class ChunkMetadata:
    """Manifest for one completed write."""

    total_rebates: int
    chunk_count: int
    chunk_size: int
    created_at: str

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ChunkMetadata:
        return cls(
            total_rebates=int(record["total_rebates"]),
            chunk_count=int(record["chunk_count"]),
            chunk_size=int(record["chunk_size"]),
            created_at=str(record.get("created_at", "")),
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChunkedRebateStore:
    """Size-bounded rebate storage with manifest-driven reads."""

    def __init__(
        self,
        store_dir: str | Path,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        bulk_read_limit: int = DEFAULT_BULK_READ_LIMIT,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.store_dir = Path(store_dir)
        self.chunk_size = chunk_size
        self.bulk_read_limit = bulk_read_limit

    @classmethod
    def from_config(cls, config: StoreConfig) -> ChunkedRebateStore:
        return cls(config.store_dir, config.chunk_size, config.bulk_read_limit)

    @property
    def meta_path(self) -> Path:
        return self.store_dir / META_FILENAME

    def chunk_path(self, index: int) -> Path:
        return self.store_dir / f"{CHUNK_PREFIX}{index}.json"

    # -- Write ------------------------------------------------------------------

    def _write_json(self, path: Path, payload: Any) -> None:
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        os.replace(tmp, path)

    def clear(self) -> None:
        """Delete the metadata file first, then every chunk file."""
        if not self.store_dir.exists():
            return
        try:
            self.meta_path.unlink(missing_ok=True)
            removed = 0
            for path in self.store_dir.glob(f"{CHUNK_PREFIX}*.json*"):
                path.unlink()
                removed += 1
        except OSError as e:
            raise StoreError(f"Failed to clear rebate store {self.store_dir}: {e}") from e
        logger.debug("Cleared %d chunk files from %s", removed, self.store_dir)

    def write_all(self, rebates: Iterable[CalculatedRebate]) -> ChunkMetadata:
        """Replace the stored set with *rebates*, one chunk at a time.

        Rows get sequential ids starting at 1 and a per-chunk timestamp.
        Any failure raises ``StoreError``; no metadata is written in that case.
        """
        self.clear()
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            iterator = iter(rebates)
            total = 0
            chunk_count = 0
            while True:
                batch = list(islice(iterator, self.chunk_size))
                if not batch:
                    break
                stamp = _now()
                records = []
                for offset, rebate in enumerate(batch):
                    record = rebate.to_record()
                    record["id"] = total + offset + 1
                    record["calculated_at"] = stamp
                    records.append(record)
                self._write_json(self.chunk_path(chunk_count), records)
                total += len(batch)
                chunk_count += 1
                logger.debug("Saved chunk %d (%d rebates)", chunk_count, len(batch))

            metadata = ChunkMetadata(
                total_rebates=total,
                chunk_count=chunk_count,
                chunk_size=self.chunk_size,
                created_at=_now(),
            )
            self._write_json(self.meta_path, asdict(metadata))
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Failed to store calculated rebates: {e}") from e

        logger.info("Saved %d rebates in %d chunks to %s", total, chunk_count, self.store_dir)
        return metadata

    # -- Read -------------------------------------------------------------------

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def read_metadata(self) -> ChunkMetadata | None:
        """Manifest of the last completed write, or None if there is none."""
        if not self.meta_path.exists():
            return None
        return ChunkMetadata.from_record(self._read_json(self.meta_path))

    def _load_chunk(self, index: int) -> list[CalculatedRebate]:
        path = self.chunk_path(index)
        if not path.exists():
            return []
        return [CalculatedRebate.from_record(r) for r in self._read_json(path)]

    def read_chunk(self, index: int) -> list[CalculatedRebate]:
        """Rows of a single chunk listed in the manifest.

        A missing chunk, an index outside the manifest or a store without
        metadata (nothing written, or the last write failed) yields an empty list.
        """
        metadata = self.read_metadata()
        if metadata is None or not 0 <= index < metadata.chunk_count:
            return []
        return self._load_chunk(index)

    def iter_chunks(self) -> Iterator[tuple[int, list[CalculatedRebate]]]:
        """Yield ``(index, rows)`` in index order, skipping empty chunks."""
        metadata = self.read_metadata()
        if metadata is None:
            return
        for index in range(metadata.chunk_count):
            chunk = self._load_chunk(index)
            if chunk:
                yield index, chunk

    def for_each_chunk(self, callback: ChunkCallback) -> int:
        """Call ``callback(rows, index, chunk_count)`` per chunk; returns chunks visited."""
        metadata = self.read_metadata()
        if metadata is None:
            logger.info("No rebate metadata found in %s", self.store_dir)
            return 0
        logger.info(
            "Processing %d rebates in %d chunks", metadata.total_rebates, metadata.chunk_count
        )
        visited = 0
        for index, chunk in self.iter_chunks():
            callback(chunk, index, metadata.chunk_count)
            visited += 1
        return visited

    def read_all(self) -> list[CalculatedRebate]:
        """All stored rows, or an empty list above ``bulk_read_limit``.

        Large sets must be read with ``iter_chunks``/``for_each_chunk``.
        """
        metadata = self.read_metadata()
        if metadata is None:
            return []
        if metadata.total_rebates > self.bulk_read_limit:
            logger.info(
                "Dataset too large for bulk read (%d rebates > %d); use chunked reads",
                metadata.total_rebates,
                self.bulk_read_limit,
            )
            return []
        rebates: list[CalculatedRebate] = []
        for _, chunk in self.iter_chunks():
            rebates.extend(chunk)
        return rebates
