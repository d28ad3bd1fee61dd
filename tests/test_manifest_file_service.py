"""
Tests for flight manifest file rendering and parsing
"""

import io
import pandas as pd
from datetime import datetime, date

from app.schemas.travel import MANIFEST_HEADERS, ManifestRow
from app.services.manifest_file_service import ManifestFileService

def create_test_excel(data):
    """Helper function to create Excel bytes from data"""
    df = pd.DataFrame(data)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, index=False)
    return buffer.getvalue()

def sample_rows():
    return [
        ManifestRow(
            guest_name="Priya Shah",
            email="priya@example.com",
            travel_mode="air",
            preferred_arrival_date=date(2025, 6, 1),
            flight_number="AI101",
            airline="Air India",
            arrival_time=datetime(2025, 6, 1, 10, 0),
            origin_airport="DEL",
            destination_airport="GOI"
        ),
        ManifestRow(guest_name="Rahul Mehta", email="rahul@example.com"),
    ]

def test_create_template():
    """Template carries every manifest column"""
    template_bytes = ManifestFileService.create_template()

    assert template_bytes is not None
    assert len(template_bytes) > 0

    df = pd.read_excel(io.BytesIO(template_bytes))
    assert list(df.columns) == list(MANIFEST_HEADERS.values())
    assert len(df) == 2

def test_export_manifest_xlsx():
    """Excel export has one row per guest under the manifest headers"""
    content = ManifestFileService.export_manifest(sample_rows(), 'xlsx')

    df = pd.read_excel(io.BytesIO(content), sheet_name='Flight List', dtype=str, keep_default_na=False)
    assert list(df.columns) == list(MANIFEST_HEADERS.values())
    assert df.loc[0, 'Flight Number'] == 'AI101'
    assert df.loc[0, 'Arrival Time'] == '2025-06-01 10:00:00'
    assert df.loc[1, 'Flight Number'] == ''

def test_export_manifest_csv():
    """CSV export uses the same columns"""
    content = ManifestFileService.export_manifest(sample_rows(), 'csv')

    df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
    assert df.loc[0, 'Guest Name'] == 'Priya Shah'
    assert df.loc[0, 'Preferred Arrival Date'] == '2025-06-01'

def test_parse_manifest_round_trip():
    """An exported file parses back into equal rows"""
    rows = sample_rows()

    for file_format in ('xlsx', 'csv'):
        content = ManifestFileService.export_manifest(rows, file_format)
        parsed, errors = ManifestFileService.parse_manifest(content, f"flights.{file_format}")

        assert errors == []
        assert [r.model_dump() for r in parsed] == [r.model_dump() for r in rows]

def test_parse_manifest_case_insensitive_headers():
    """Agents may change header casing"""
    content = create_test_excel({
        'guest name': ['Priya Shah'],
        'FLIGHT NUMBER': ['AI555'],
        'arrival time': ['2025-06-01 14:30:00'],
    })

    parsed, errors = ManifestFileService.parse_manifest(content, "flights.xlsx")

    assert errors == []
    assert parsed[0].flight_number == 'AI555'
    assert parsed[0].arrival_time == datetime(2025, 6, 1, 14, 30)

def test_parse_manifest_missing_columns():
    """Files without a Guest Name column are rejected"""
    content = create_test_excel({'Flight Number': ['AI1']})

    parsed, errors = ManifestFileService.parse_manifest(content, "flights.xlsx")

    assert parsed == []
    assert "Missing required columns" in errors[0]

def test_parse_manifest_reports_bad_rows():
    """Invalid rows are reported by spreadsheet row number; the rest parse"""
    content = create_test_excel({
        'Guest Name': ['Good Guest', 'Bad Guest', ''],
        'Travel Mode': ['air', 'boat', ''],
        'Arrival Time': ['2025-06-01 10:00:00', '', ''],
    })

    parsed, errors = ManifestFileService.parse_manifest(content, "flights.xlsx")

    assert [r.guest_name for r in parsed] == ['Good Guest']
    assert len(errors) == 1
    assert errors[0].startswith("Row 3:")
