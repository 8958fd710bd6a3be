"""Tests for CSV import parsing and export."""

from __future__ import annotations

from datetime import date

from satsurvey.csv_io import (
    EXPORT_COLUMNS,
    drafts_from_text,
    export_csv,
    export_filename,
    parse_csv,
    preview,
)
from satsurvey.records import SatelliteRecord


class TestParse:
    def test_blank_lines_dropped_and_values_trimmed(self):
        table = parse_csv("Title , NORAD_ID\n\n Aqua , 27424 \n   \n")
        assert table.headers == ["Title", "NORAD_ID"]
        assert table.rows == [{"Title": "Aqua", "NORAD_ID": "27424"}]

    def test_short_rows_padded(self):
        table = parse_csv("Title,NORAD_ID,Status\nAqua")
        assert table.rows == [{"Title": "Aqua", "NORAD_ID": "", "Status": ""}]

    def test_empty_text(self):
        assert parse_csv("").headers == []

    def test_quotes_are_not_unescaped(self):
        table = parse_csv('Title,NORAD_ID,Sensor_Names\nAqua,27424,"MODIS,AMSR-E"')
        assert table.rows[0]["Sensor_Names"] == '"MODIS'


class TestDrafts:
    def test_rows_without_title_or_norad_skipped(self):
        drafts, skipped = drafts_from_text(
            "Title,NORAD_ID,Status\nAqua,27424,\n,1,Operational\nTerra,,Operational\n"
        )
        assert [d.title for d in drafts] == ["Aqua"]
        assert drafts[0].status == "Operational"
        assert skipped == 2

    def test_columns_by_header_name(self):
        drafts, _ = drafts_from_text("NORAD_ID,Orbit_Type,Title\n25994,LEO,Terra")
        assert drafts[0].title == "Terra"
        assert drafts[0].orbit_type == "LEO"

    def test_preview_limited(self):
        text = "Title,NORAD_ID\n" + "\n".join(f"S{i},{i}" for i in range(12))
        table = preview(text)
        assert len(table.rows) == 5
        assert table.rows[0] == {"Title": "S0", "NORAD_ID": "0"}


class TestExport:
    def test_column_order_and_quoting(self):
        record = SatelliteRecord(
            id=1001,
            title="Aqua",
            norad_id="27424",
            status="Operational",
            sensor_names="MODIS, AMSR-E",
            primary_sensor="MODIS",
        )
        lines = export_csv([record]).split("\n")
        assert lines[0] == ",".join(EXPORT_COLUMNS)
        assert lines[0] == (
            "Title,NORAD_ID,COSPAR_ID,Mission_Type,Status,Orbit_Type,Launch_Date,Sensor_Names"
        )
        assert lines[1] == 'Aqua,27424,,,Operational,,,"MODIS, AMSR-E"'

    def test_filename(self):
        assert export_filename(date(2026, 10, 18)) == "satellites_2026-10-18.csv"
