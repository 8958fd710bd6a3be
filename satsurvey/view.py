"""View projection — filtered, searched and sorted satellites for display.

Pure recompute over the in-memory collection; never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from satsurvey.records import SATELLITE_COLUMNS, SatelliteRecord, SensorRecord

FILTER_ALL = "all"
FILTER_OPERATIONAL = "sat-operational"
FILTER_LEO = "sat-leo"
FILTER_GEO = "sat-geo"
FILTERS = (FILTER_ALL, FILTER_OPERATIONAL, FILTER_LEO, FILTER_GEO)

SORT_ASC = "asc"
SORT_DESC = "desc"


@dataclass
class SurveyStatistics:
    total: int = 0
    sensors: int = 0
    operational: int = 0


@dataclass
class ViewSnapshot:
    """What the presenter renders after every recompute."""
    satellites: list[SatelliteRecord]
    statistics: SurveyStatistics
    selected: SatelliteRecord | None = None
    sort_column: str = "Title"
    sort_direction: str = SORT_ASC
    filter: str = FILTER_ALL
    search_term: str = ""

    @property
    def count(self) -> int:
        return len(self.satellites)


def _matches_filter(record: SatelliteRecord, name: str) -> bool:
    if name == FILTER_OPERATIONAL:
        return record.status == "Operational"
    if name == FILTER_LEO:
        return record.orbit_type == "LEO"
    if name == FILTER_GEO:
        return record.orbit_type == "GEO"
    return True


def _sort_key(value: Any) -> tuple:
    if value is None or value == "":
        return (2, 0, "")
    text = str(value)
    if text.isdigit():
        return (0, int(text), "")
    return (1, 0, text.lower())


def statistics(records: list[SatelliteRecord], sensors: list[SensorRecord]) -> SurveyStatistics:
    """Aggregate counts over the unfiltered collection."""
    return SurveyStatistics(
        total=len(records),
        sensors=len(sensors),
        operational=sum(1 for r in records if r.is_operational),
    )


@dataclass
class SurveyView:
    search_term: str = ""
    filter: str = FILTER_ALL
    sort_column: str = "Title"
    sort_direction: str = SORT_ASC
    selected_id: int | None = None

    def set_search(self, term: str) -> None:
        self.search_term = (term or "").strip().lower()

    def set_filter(self, name: str) -> None:
        if name not in FILTERS:
            raise ValueError(f"Unknown filter {name!r}; expected one of {', '.join(FILTERS)}")
        self.filter = name

    def toggle_sort(self, column: str) -> None:
        """Select *column*; re-selecting the current column flips direction."""
        if column not in SATELLITE_COLUMNS:
            raise ValueError(f"Unknown sort column {column!r}")
        if column == self.sort_column:
            self.sort_direction = SORT_DESC if self.sort_direction == SORT_ASC else SORT_ASC
        else:
            self.sort_column = column
            self.sort_direction = SORT_ASC

    def project(self, records: list[SatelliteRecord]) -> list[SatelliteRecord]:
        term = self.search_term.lower()
        subset = [
            r
            for r in records
            if (not term or term in r.title.lower() or term in r.norad_id.lower())
            and _matches_filter(r, self.filter)
        ]
        attr = SATELLITE_COLUMNS[self.sort_column]
        return sorted(
            subset,
            key=lambda r: _sort_key(getattr(r, attr)),
            reverse=self.sort_direction == SORT_DESC,
        )

    def snapshot(
        self, records: list[SatelliteRecord], sensors: list[SensorRecord]
    ) -> ViewSnapshot:
        visible = self.project(records)
        selected = next((r for r in records if r.id == self.selected_id), None)
        return ViewSnapshot(
            satellites=visible,
            statistics=statistics(records, sensors),
            selected=selected,
            sort_column=self.sort_column,
            sort_direction=self.sort_direction,
            filter=self.filter,
            search_term=self.search_term,
        )
