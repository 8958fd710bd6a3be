"""Bulk CSV import/export for satellite records.

Import splits on the delimiter with no quote handling, so a field that
contains a comma cannot be imported intact. Export wraps such fields in double
quotes, so a round-trip is lossy for those values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from satsurvey.records import DEFAULT_STATUS, SATELLITE_COLUMNS, SatelliteDraft, SatelliteRecord

logger = logging.getLogger(__name__)

DELIMITER = ","
EXPORT_COLUMNS: tuple[str, ...] = (
    "Title",
    "NORAD_ID",
    "COSPAR_ID",
    "Mission_Type",
    "Status",
    "Orbit_Type",
    "Launch_Date",
    "Sensor_Names",
)
PREVIEW_ROWS = 5


@dataclass
class ParsedTable:
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, str]] = field(default_factory=list)


def parse_csv(text: str) -> ParsedTable:
    """Split *text* into a header row and positional row dicts.

    Blank lines are dropped; values are trimmed; short rows are padded with
    empty strings.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return ParsedTable()

    headers = [h.strip() for h in lines[0].split(DELIMITER)]
    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        values = [v.strip() for v in line.split(DELIMITER)]
        rows.append(
            {header: values[idx] if idx < len(values) else "" for idx, header in enumerate(headers)}
        )
    return ParsedTable(headers=headers, rows=rows)


def draft_from_row(row: dict[str, str]) -> SatelliteDraft | None:
    """Return a draft for *row*, or ``None`` if it lacks a title or NORAD id."""
    title = row.get("Title", "").strip()
    norad = row.get("NORAD_ID", "").strip()
    if not title or not norad:
        return None
    return SatelliteDraft(
        title=title,
        norad_id=norad,
        cospar_id=row.get("COSPAR_ID", "").strip(),
        mission_type=row.get("Mission_Type", "").strip(),
        status=row.get("Status", "").strip() or DEFAULT_STATUS,
        orbit_type=row.get("Orbit_Type", "").strip(),
        launch_date=row.get("Launch_Date", "").strip(),
        sensor_names=row.get("Sensor_Names", "").strip(),
    )


def drafts_from_text(text: str) -> tuple[list[SatelliteDraft], int]:
    """Parse *text* and return ``(accepted drafts, skipped row count)``."""
    table = parse_csv(text)
    drafts: list[SatelliteDraft] = []
    skipped = 0
    for position, row in enumerate(table.rows, start=2):
        draft = draft_from_row(row)
        if draft is None:
            logger.debug("Skipping CSV line %d: missing Title or NORAD_ID", position)
            skipped += 1
            continue
        drafts.append(draft)
    logger.info("CSV parsed: %d rows accepted, %d skipped", len(drafts), skipped)
    return drafts, skipped


def preview(text: str, limit: int = PREVIEW_ROWS) -> ParsedTable:
    """First *limit* rows of *text*, for confirmation before importing."""
    table = parse_csv(text)
    return ParsedTable(headers=table.headers, rows=table.rows[:limit])


def _cell(value: object) -> str:
    text = "" if value is None else str(value)
    if DELIMITER in text:
        return f'"{text}"'
    return text


def export_csv(records: list[SatelliteRecord]) -> str:
    """Serialize *records* using the fixed export column order."""
    lines = [DELIMITER.join(EXPORT_COLUMNS)]
    for record in records:
        lines.append(
            DELIMITER.join(_cell(getattr(record, SATELLITE_COLUMNS[c])) for c in EXPORT_COLUMNS)
        )
    return "\n".join(lines)


def export_filename(today: date | None = None) -> str:
    return f"satellites_{(today or date.today()).isoformat()}.csv"
