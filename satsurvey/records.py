"""Satellite and sensor record schema.

Every field default is resolved here, at the ingestion boundary (form
mapping, CSV row, local payload or remote list item), so the rest of the
package never re-checks for absent values.

Column names match the SharePoint internal field names; they double as the
CSV header and the local JSON keys.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Mapping

DEFAULT_STATUS = "Operational"
DEFAULT_CONSTELLATION_ID = 1

# column name → attribute name
SATELLITE_COLUMNS: dict[str, str] = {
    "ID": "id",
    "Title": "title",
    "NORAD_ID": "norad_id",
    "COSPAR_ID": "cospar_id",
    "Mission_Type": "mission_type",
    "Status": "status",
    "Orbit_Type": "orbit_type",
    "Launch_Date": "launch_date",
    "Expected_Lifetime": "expected_lifetime",
    "Constellation_ID": "constellation_id",
    "Sensor_Names": "sensor_names",
    "Primary_Sensor": "primary_sensor",
}

DRAFT_COLUMNS: tuple[str, ...] = (
    "Title",
    "NORAD_ID",
    "COSPAR_ID",
    "Mission_Type",
    "Status",
    "Orbit_Type",
    "Launch_Date",
    "Sensor_Names",
)

SENSOR_COLUMNS: dict[str, str] = {
    "ID": "id",
    "Title": "title",
    "Sensor_Type": "sensor_type",
    "Description": "description",
    "Satellite_Names": "satellite_names",
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or an ISO datetime into a UTC calendar date.

    Raises ``ValueError`` if *value* is not ISO formatted.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if "T" not in text and " " not in text:
        return date.fromisoformat(text)
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def normalize_date(value: Any) -> str:
    """Return *value* as ``YYYY-MM-DD``, or stripped as-is if it won't parse."""
    text = _text(value).strip()
    if not text:
        return ""
    try:
        return parse_iso_date(text).isoformat()
    except ValueError:
        return text


@dataclass
class SatelliteDraft:
    """Unvalidated satellite fields as entered on the form or read from CSV."""

    title: str = ""
    norad_id: str = ""
    cospar_id: str = ""
    mission_type: str = ""
    status: str = DEFAULT_STATUS
    orbit_type: str = ""
    launch_date: str = ""
    sensor_names: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SatelliteDraft:
        """Build a draft from a mapping keyed by column or attribute name.

        A missing status falls back to ``"Operational"``; an explicitly blank
        one is kept so the validator can flag it.
        """
        values: dict[str, str] = {}
        for column in DRAFT_COLUMNS:
            attr = SATELLITE_COLUMNS[column]
            raw = data.get(column, data.get(attr))
            if raw is None:
                continue
            values[attr] = _text(raw)
        return cls(**values)

    def trimmed(self) -> SatelliteDraft:
        return SatelliteDraft(
            **{f.name: getattr(self, f.name).strip() for f in dataclasses.fields(self)}
        )

    def to_mapping(self) -> dict[str, str]:
        return {column: getattr(self, SATELLITE_COLUMNS[column]) for column in DRAFT_COLUMNS}


@dataclass
class SatelliteRecord:
    """One satellite inventory entry."""

    id: int
    title: str
    norad_id: str
    cospar_id: str = ""
    mission_type: str = ""
    status: str = DEFAULT_STATUS
    orbit_type: str = ""
    launch_date: str = ""
    expected_lifetime: str = ""
    constellation_id: int | None = None
    sensor_names: str = ""
    primary_sensor: str = ""

    @property
    def sensors(self) -> list[str]:
        """Sensor names split out of the comma-delimited field."""
        return [name.strip() for name in self.sensor_names.split(",") if name.strip()]

    @property
    def is_operational(self) -> bool:
        return self.status == DEFAULT_STATUS

    def to_dict(self) -> dict[str, Any]:
        return {column: getattr(self, attr) for column, attr in SATELLITE_COLUMNS.items()}

    def merged(self, draft: SatelliteDraft) -> SatelliteRecord:
        """Return a copy with the draft's fields applied; other fields are kept."""
        return dataclasses.replace(
            self,
            title=draft.title,
            norad_id=draft.norad_id,
            cospar_id=draft.cospar_id,
            mission_type=draft.mission_type,
            status=draft.status,
            orbit_type=draft.orbit_type,
            launch_date=normalize_date(draft.launch_date),
            sensor_names=draft.sensor_names,
        )

    @classmethod
    def from_draft(
        cls,
        record_id: int,
        draft: SatelliteDraft,
        *,
        constellation_id: int | None = DEFAULT_CONSTELLATION_ID,
    ) -> SatelliteRecord:
        return cls(
            id=record_id,
            title=draft.title,
            norad_id=draft.norad_id,
            cospar_id=draft.cospar_id,
            mission_type=draft.mission_type,
            status=draft.status or DEFAULT_STATUS,
            orbit_type=draft.orbit_type,
            launch_date=normalize_date(draft.launch_date),
            constellation_id=constellation_id,
            sensor_names=draft.sensor_names,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SatelliteRecord:
        """Rebuild a record from the local JSON payload.

        Raises ``ValueError``/``TypeError`` when ``ID`` is missing or not an int.
        """
        return cls(
            id=int(data["ID"]),
            title=_text(data.get("Title")),
            norad_id=_text(data.get("NORAD_ID")),
            cospar_id=_text(data.get("COSPAR_ID")),
            mission_type=_text(data.get("Mission_Type")),
            status=_text(data.get("Status")) or DEFAULT_STATUS,
            orbit_type=_text(data.get("Orbit_Type")),
            launch_date=_text(data.get("Launch_Date")),
            expected_lifetime=_text(data.get("Expected_Lifetime")),
            constellation_id=_optional_int(data.get("Constellation_ID")),
            sensor_names=_text(data.get("Sensor_Names")),
            primary_sensor=_text(data.get("Primary_Sensor")),
        )

    @classmethod
    def from_list_item(cls, item: Mapping[str, Any], position: int) -> SatelliteRecord:
        """Normalize one SharePoint list item.

        Missing titles become ``"Satellite {position}"``, missing status
        ``"Operational"``; dates are cut to ``YYYY-MM-DD``.
        """
        raw_id = item.get("ID", item.get("Id"))
        if raw_id is None:
            raise ValueError(f"list item at position {position} has no ID")
        title = item.get("Title")
        return cls(
            id=int(raw_id),
            title=_text(title) if title is not None else f"Satellite {position}",
            norad_id=_text(item.get("NORAD_ID")),
            cospar_id=_text(item.get("COSPAR_ID")),
            mission_type=_text(item.get("Mission_Type")),
            status=_text(item.get("Status")) or DEFAULT_STATUS,
            orbit_type=_text(item.get("Orbit_Type")),
            launch_date=normalize_date(item.get("Launch_Date")),
            expected_lifetime=_text(item.get("Expected_Lifetime")),
            constellation_id=_optional_int(item.get("Constellation_ID")),
            sensor_names=_text(item.get("Sensor_Names")),
            primary_sensor=_text(item.get("Primary_Sensor")),
        )


@dataclass
class SensorRecord:
    """Read-only sensor entry cross-referenced to satellites by name."""

    id: int
    title: str = "Unknown"
    sensor_type: str = ""
    description: str = ""
    satellite_names: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {column: getattr(self, attr) for column, attr in SENSOR_COLUMNS.items()}

    @classmethod
    def from_list_item(cls, item: Mapping[str, Any]) -> SensorRecord:
        raw_id = item.get("ID", item.get("Id"))
        if raw_id is None:
            raise ValueError("sensor list item has no ID")
        return cls(
            id=int(raw_id),
            title=_text(item.get("Title")) or "Unknown",
            sensor_type=_text(item.get("Sensor_Type")),
            description=_text(item.get("Description")),
            satellite_names=_text(item.get("Satellite_Names")),
        )


def sample_satellite() -> SatelliteRecord:
    """The record a fresh local store is seeded with."""
    return SatelliteRecord(
        id=1,
        title="Landsat 8",
        norad_id="39084",
        cospar_id="2013-008A",
        mission_type="Earth Observation",
        status=DEFAULT_STATUS,
        orbit_type="SSO",
        launch_date="2013-02-11",
        constellation_id=DEFAULT_CONSTELLATION_ID,
        sensor_names="Multispectral Imager",
    )
