"""
Flight manifest spreadsheet rendering and parsing
"""

import io
from datetime import date, datetime
from typing import Any, Dict, List, Tuple

import pandas as pd
from pydantic import ValidationError

from app.schemas.travel import MANIFEST_HEADERS, ManifestRow

class ManifestFileService:
    """Service for manifest Excel/CSV files"""

    SHEET_NAME = 'Flight List'
    REQUIRED_COLUMNS = ['guest name']

    @staticmethod
    def _cell(value: Any) -> Any:
        if value is None:
            return ''
        if isinstance(value, datetime):
            return value.strftime('%Y-%m-%d %H:%M:%S')
        if isinstance(value, date):
            return value.isoformat()
        return value

    @staticmethod
    def rows_to_dataframe(rows: List[ManifestRow]) -> pd.DataFrame:
        data = []
        for row in rows:
            values = row.model_dump()
            data.append({
                header: ManifestFileService._cell(values[field])
                for field, header in MANIFEST_HEADERS.items()
            })
        return pd.DataFrame(data, columns=list(MANIFEST_HEADERS.values()))

    @staticmethod
    def export_manifest(rows: List[ManifestRow], file_format: str = 'xlsx') -> bytes:
        """Render manifest rows as an .xlsx workbook or a CSV file"""
        df = ManifestFileService.rows_to_dataframe(rows)

        if file_format == 'csv':
            return df.to_csv(index=False).encode('utf-8')

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=ManifestFileService.SHEET_NAME)

        return buffer.getvalue()

    @staticmethod
    def create_template() -> bytes:
        """Create Excel template with the manifest columns"""
        df = pd.DataFrame(columns=list(MANIFEST_HEADERS.values()))

        # Add sample data for guidance
        sample_data = [
            ['Sample Guest 1', 'guest1@example.com', '+1 555 0100', 'air', '2025-06-01', '2025-06-03',
             'Hotel', 'none', '', 'AI101', 'Air India', '2025-06-01 10:00:00', '', '2025-06-03 18:00:00',
             'DEL', 'GOI'],
            ['Sample Guest 2', 'guest2@example.com', '', 'rail', '2025-06-01', '2025-06-02',
             '', 'vegetarian', 'Wheelchair at platform', '12051', '', '2025-06-01 12:30:00', '', '',
             'Mumbai CST', 'Madgaon'],
        ]

        for row in sample_data:
            df.loc[len(df)] = row

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=ManifestFileService.SHEET_NAME)

        return buffer.getvalue()

    @staticmethod
    def read_upload(file_content: bytes, filename: str) -> pd.DataFrame:
        if filename.lower().endswith('.csv'):
            return pd.read_csv(io.BytesIO(file_content), dtype=str, keep_default_na=False)
        return pd.read_excel(io.BytesIO(file_content), dtype=str, keep_default_na=False)

    @staticmethod
    def validate_structure(df: pd.DataFrame) -> Tuple[bool, List[str]]:
        """Validate manifest file structure"""
        errors = []

        # Normalize column names for case-insensitive comparison
        normalized_columns = [str(col).lower().strip() for col in df.columns]
        missing_columns = [
            col for col in ManifestFileService.REQUIRED_COLUMNS if col not in normalized_columns
        ]
        if missing_columns:
            errors.append(f"Missing required columns: {', '.join(missing_columns)}")

        return len(errors) == 0, errors

    @staticmethod
    def parse_manifest(file_content: bytes, filename: str) -> Tuple[List[ManifestRow], List[str]]:
        """Parse an uploaded manifest into rows.

        Returns the rows that validated and one error message per rejected row.
        """
        df = ManifestFileService.read_upload(file_content, filename)

        valid, errors = ManifestFileService.validate_structure(df)
        if not valid:
            return [], errors

        # Map whatever casing the agent used back to the canonical headers
        header_lookup = {header.lower(): header for header in MANIFEST_HEADERS.values()}
        column_mapping: Dict[str, str] = {}
        for col in df.columns:
            canonical = header_lookup.get(str(col).lower().strip())
            if canonical:
                column_mapping[col] = canonical

        rows: List[ManifestRow] = []
        for index, record in df.iterrows():
            values = {
                column_mapping[col]: '' if pd.isna(record[col]) else str(record[col]).strip()
                for col in column_mapping
            }
            # Skip empty rows
            if not any(values.values()):
                continue
            try:
                rows.append(ManifestRow.model_validate(values))
            except ValidationError as e:
                # +2: header row and 1-based numbering
                problems = "; ".join(err["msg"] for err in e.errors())
                errors.append(f"Row {index + 2}: {problems}")

        return rows, errors
