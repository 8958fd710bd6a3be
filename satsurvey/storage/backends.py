"""Satellite backend abstraction — the capability set both stores implement.

Backends never mutate the collection they are handed. Each write returns the
new collection and the façade swaps it in only once the whole chain for that
call has succeeded.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field

from satsurvey.records import SatelliteDraft, SatelliteRecord, SensorRecord


@dataclass
class WriteOutcome:
    """New collection after a single-record write."""
    records: list[SatelliteRecord]
    record: SatelliteRecord | None = None
    #: Non-empty when the write was applied in memory but not persisted
    warning: str = ""


@dataclass
class ImportOutcome:
    """New collection after a bulk import plus per-row bookkeeping."""
    #: ``None`` when the rows were written but the new collection is unknown
    records: list[SatelliteRecord] | None
    imported: int = 0
    failures: list[str] = field(default_factory=list)
    warning: str = ""


class SatelliteBackend(abc.ABC):
    #: Short backend name, e.g. ``"local"`` or ``"sharepoint"``
    name: str = ""

    @abc.abstractmethod
    async def load(self) -> list[SatelliteRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    async def load_sensors(self) -> list[SensorRecord]:
        raise NotImplementedError

    @abc.abstractmethod
    async def create(
        self, records: list[SatelliteRecord], draft: SatelliteDraft
    ) -> WriteOutcome:
        raise NotImplementedError

    @abc.abstractmethod
    async def update(
        self, records: list[SatelliteRecord], record_id: int, draft: SatelliteDraft
    ) -> WriteOutcome:
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, records: list[SatelliteRecord], record_id: int) -> WriteOutcome:
        raise NotImplementedError

    @abc.abstractmethod
    async def bulk_import(
        self, records: list[SatelliteRecord], drafts: list[SatelliteDraft]
    ) -> ImportOutcome:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources (no-op for local stores)."""


def merge_update(
    records: list[SatelliteRecord], record_id: int, draft: SatelliteDraft
) -> tuple[list[SatelliteRecord], SatelliteRecord | None]:
    """Return a copy of *records* with *record_id* merged with *draft*."""
    updated: SatelliteRecord | None = None
    result: list[SatelliteRecord] = []
    for record in records:
        if record.id == record_id:
            updated = record.merged(draft)
            result.append(updated)
        else:
            result.append(record)
    return result, updated


def without(records: list[SatelliteRecord], record_id: int) -> list[SatelliteRecord]:
    return [record for record in records if record.id != record_id]
