"""Local store — the satellite collection and id counter in the SQLite namespace.

Used whenever no SharePoint site is configured. All calls are synchronous and
never suspend; the ``async`` backend methods exist only to share the
:class:`SatelliteBackend` interface.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from satsurvey.db import close_db, kv_get, kv_set_many
from satsurvey.errors import StorageError, StorageQuotaError, StorageSerializationError
from satsurvey.records import SatelliteDraft, SatelliteRecord, SensorRecord, sample_satellite
from satsurvey.storage.backends import (
    ImportOutcome,
    SatelliteBackend,
    WriteOutcome,
    merge_update,
    without,
)

logger = logging.getLogger(__name__)

RECORDS_KEY = "satellites_data"
COUNTER_KEY = "nextId"
MIN_COUNTER_BASE = 1000
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024


def next_id_for(records: list[SatelliteRecord], stored: int | None = None) -> int:
    """Counter value strictly greater than every id in *records*."""
    floor = max([MIN_COUNTER_BASE, *(r.id for r in records)]) + 1
    if stored is None:
        return floor
    highest = max((r.id for r in records), default=0)
    return stored if stored > highest else highest + 1


def _is_disk_full(exc: sqlite3.Error) -> bool:
    if getattr(exc, "sqlite_errorname", "") == "SQLITE_FULL":
        return True
    return "full" in str(exc).lower()


class LocalStore:
    """Serialize the collection and counter under two keys of a string namespace."""

    def __init__(self, conn: sqlite3.Connection, quota_bytes: int | None = DEFAULT_QUOTA_BYTES) -> None:
        self._conn = conn
        self.quota_bytes = quota_bytes

    def has_saved_data(self) -> bool:
        try:
            return kv_get(self._conn, RECORDS_KEY) is not None
        except sqlite3.Error:
            return False

    def load(self) -> tuple[list[SatelliteRecord], int]:
        """Return ``(records, next_id)``; missing or corrupt data loads as empty."""
        records = self._load_records()
        stored_counter: int | None = None
        try:
            raw_counter = kv_get(self._conn, COUNTER_KEY)
            if raw_counter is not None:
                stored_counter = int(raw_counter)
        except (sqlite3.Error, ValueError) as exc:
            logger.warning("Stored id counter unreadable, recomputing: %s", exc)
        next_id = next_id_for(records, stored_counter)
        logger.info("Local store loaded %d satellites (next id %d)", len(records), next_id)
        return records, next_id

    def close(self) -> None:
        close_db(self._conn)

    def save(self, records: list[SatelliteRecord], next_id: int) -> None:
        """Persist *records* and *next_id*.

        Raises :class:`StorageQuotaError` when the payload exceeds the quota or
        the database is full, :class:`StorageSerializationError` when the
        collection cannot be encoded.
        """
        try:
            payload = json.dumps([r.to_dict() for r in records], ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageSerializationError(f"Could not serialize satellites: {exc}") from exc
        counter = str(next_id)

        size = len(payload.encode("utf-8")) + len(counter)
        if self.quota_bytes and size > self.quota_bytes:
            raise StorageQuotaError(
                f"Local storage quota exceeded ({size} > {self.quota_bytes} bytes)"
            )

        try:
            kv_set_many(self._conn, {RECORDS_KEY: payload, COUNTER_KEY: counter})
        except sqlite3.Error as exc:
            if _is_disk_full(exc):
                raise StorageQuotaError(f"Local storage is full: {exc}") from exc
            raise StorageError(f"Could not write local storage: {exc}") from exc
        logger.debug("Local store saved %d satellites (%d bytes)", len(records), size)

    def _load_records(self) -> list[SatelliteRecord]:
        try:
            raw = kv_get(self._conn, RECORDS_KEY)
        except sqlite3.Error as exc:
            logger.error("Local store unreadable: %s", exc)
            return []
        if raw is None:
            return []
        try:
            items: Any = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("stored satellites are not a list")
            records = [SatelliteRecord.from_dict(item) for item in items]
        except (TypeError, ValueError, KeyError) as exc:
            logger.error("Stored satellites are corrupt, starting empty: %s", exc)
            return []

        seen: set[int] = set()
        unique: list[SatelliteRecord] = []
        for record in records:
            if record.id in seen:
                logger.warning("Dropping duplicate stored satellite id %d", record.id)
                continue
            seen.add(record.id)
            unique.append(record)
        return unique


class LocalBackend(SatelliteBackend):
    name = "local"

    def __init__(self, store: LocalStore, *, seed_sample: bool = False) -> None:
        self.store = store
        self.seed_sample = seed_sample
        self._next_id = MIN_COUNTER_BASE + 1

    @property
    def next_id(self) -> int:
        return self._next_id

    async def aclose(self) -> None:
        self.store.close()

    async def load(self) -> list[SatelliteRecord]:
        records, self._next_id = self.store.load()
        if not records and self.seed_sample:
            records = [sample_satellite()]
            self._next_id = next_id_for(records)
            warning = self._persist(records)
            if warning:
                logger.warning(warning)
            logger.info("Seeded empty local store with sample satellite")
        return records

    async def load_sensors(self) -> list[SensorRecord]:
        logger.info("No sensors available in local mode")
        return []

    async def create(self, records: list[SatelliteRecord], draft: SatelliteDraft) -> WriteOutcome:
        record = SatelliteRecord.from_draft(self._allocate_id(records), draft)
        updated = [*records, record]
        return WriteOutcome(records=updated, record=record, warning=self._persist(updated))

    async def update(
        self, records: list[SatelliteRecord], record_id: int, draft: SatelliteDraft
    ) -> WriteOutcome:
        updated, record = merge_update(records, record_id, draft)
        return WriteOutcome(records=updated, record=record, warning=self._persist(updated))

    async def delete(self, records: list[SatelliteRecord], record_id: int) -> WriteOutcome:
        updated = without(records, record_id)
        return WriteOutcome(records=updated, warning=self._persist(updated))

    async def bulk_import(
        self, records: list[SatelliteRecord], drafts: list[SatelliteDraft]
    ) -> ImportOutcome:
        updated = list(records)
        for draft in drafts:
            updated.append(SatelliteRecord.from_draft(self._allocate_id(updated), draft))
        return ImportOutcome(
            records=updated,
            imported=len(drafts),
            warning=self._persist(updated),
        )

    def _allocate_id(self, records: list[SatelliteRecord]) -> int:
        self._next_id = next_id_for(records, self._next_id)
        record_id = self._next_id
        self._next_id += 1
        return record_id

    def _persist(self, records: list[SatelliteRecord]) -> str:
        """Save, returning a user-facing warning instead of raising."""
        try:
            self.store.save(records, self._next_id)
        except StorageQuotaError as exc:
            logger.error("Storage quota exceeded: %s", exc)
            return "Storage full: changes are kept in memory but may not persist."
        except StorageError as exc:
            logger.error("Local save error: %s", exc)
            return f"Could not save locally: {exc}. Changes may not persist."
        return ""
