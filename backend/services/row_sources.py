"""
Row sources for lead imports.

Every source answers ``fetch_rows(start_row)``: the rows strictly after sheet
row ``start_row``, as dicts of normalized column name -> string. Sheet row 1 is
the header, so data row k (0-based) is sheet row k + 2.

A source that cannot be read raises ``SourceUnreachable``; it never returns an
empty list in place of a failure.
"""

import io
import json
import logging
import os
from typing import Dict, List, Optional

import gspread
import pandas as pd
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from backend.services.exceptions import SourceUnreachable
from backend.services.lead_mapping import normalize_header


logger = logging.getLogger(__name__)

RawRow = Dict[str, str]

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

HEADER_ROWS = 1


class RowSource:
    """Base class for row sources."""

    name = "source"

    def fetch_rows(self, start_row: int) -> List[RawRow]:
        raise NotImplementedError

    def count_rows(self) -> int:
        """Total sheet rows, header included."""
        raise NotImplementedError


# ─────────────────────────────────────────────
# Spreadsheet files (pandas)
# ─────────────────────────────────────────────

def _frame_to_rows(df: pd.DataFrame) -> List[RawRow]:
    df = df.fillna("")
    df.columns = [normalize_header(c) for c in df.columns]

    rows = []
    for record in df.to_dict(orient="records"):
        row = {k: str(v).strip() for k, v in record.items() if k}
        if any(row.values()):
            rows.append(row)
    return rows


def read_spreadsheet(handle, filename: str) -> List[RawRow]:
    """Read the first sheet of an .xlsx/.xls/.csv file (path or file-like)."""

    ext = os.path.splitext(filename or "")[1].lower()

    try:
        if ext == ".csv":
            df = pd.read_csv(handle, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(handle, sheet_name=0, dtype=str, keep_default_na=False)
    except FileNotFoundError as e:
        raise SourceUnreachable(f"Spreadsheet not found: {filename}") from e
    except Exception as e:
        # pandas/openpyxl raise a wide variety of parser errors
        raise SourceUnreachable(f"Could not read spreadsheet {filename}: {e}") from e

    return _frame_to_rows(df)


def _slice_after(rows: List[RawRow], start_row: int) -> List[RawRow]:
    # File sources drop fully blank rows (csv and excel alike), so row N is
    # the (N-1)th non-blank data row. Google Sheets keeps sheet numbering.
    skip = max(start_row - HEADER_ROWS, 0)
    return rows[skip:]


class ExcelFileSource(RowSource):
    """A spreadsheet file on local disk, re-read in full on each fetch."""

    name = "excel_file"

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> List[RawRow]:
        if not os.path.exists(self.path):
            raise SourceUnreachable(f"Excel file not found at: {self.path}")
        logger.info(f"Reading spreadsheet | path={self.path}")
        return read_spreadsheet(self.path, self.path)

    def fetch_rows(self, start_row: int) -> List[RawRow]:
        return _slice_after(self._read(), start_row)

    def count_rows(self) -> int:
        return len(self._read()) + HEADER_ROWS


class UploadedSpreadsheetSource(RowSource):
    """Spreadsheet bytes from a manual upload."""

    name = "upload"

    def __init__(self, content: bytes, filename: str):
        self.content = content
        self.filename = filename
        self._rows: Optional[List[RawRow]] = None

    def _read(self) -> List[RawRow]:
        if self._rows is None:
            if not self.content:
                raise SourceUnreachable("Uploaded file is empty")
            self._rows = read_spreadsheet(io.BytesIO(self.content), self.filename)
        return self._rows

    def fetch_rows(self, start_row: int) -> List[RawRow]:
        return _slice_after(self._read(), start_row)

    def count_rows(self) -> int:
        return len(self._read()) + HEADER_ROWS


# ─────────────────────────────────────────────
# Google Sheets (gspread)
# ─────────────────────────────────────────────

def load_service_account(
    credentials_json: Optional[str] = None,
    credentials_file: Optional[str] = None,
) -> Credentials:
    try:
        if credentials_json:
            return Credentials.from_service_account_info(
                json.loads(credentials_json), scopes=SCOPES
            )
        if credentials_file:
            return Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    except (ValueError, OSError, GoogleAuthError) as e:
        raise SourceUnreachable(f"Invalid Google service account credentials: {e}") from e

    raise SourceUnreachable("Google service account credentials are not configured")


class GoogleSheetSource(RowSource):
    """One worksheet of a Google spreadsheet, fetched by row range."""

    name = "google_sheet"

    def __init__(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        credentials_json: Optional[str] = None,
        credentials_file: Optional[str] = None,
        client=None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.credentials_json = credentials_json
        self.credentials_file = credentials_file
        self._client = client

    def _worksheet(self):
        if self._client is None:
            creds = load_service_account(self.credentials_json, self.credentials_file)
            self._client = gspread.authorize(creds)
        return self._client.open_by_key(self.spreadsheet_id).worksheet(self.sheet_name)

    def fetch_rows(self, start_row: int) -> List[RawRow]:
        logger.info(
            f"Fetching sheet | sheet={self.sheet_name} start_row={start_row + 1}"
        )

        try:
            ws = self._worksheet()
            header = [normalize_header(h) for h in ws.row_values(1)]

            first = start_row + 1
            if not header or first > ws.row_count:
                return []

            start_cell = gspread.utils.rowcol_to_a1(first, 1)
            end_cell = gspread.utils.rowcol_to_a1(ws.row_count, len(header))
            values = ws.get_values(f"{start_cell}:{end_cell}")

        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError) as e:
            raise SourceUnreachable(f"Failed to fetch Google Sheets data: {e}") from e

        rows = []
        for raw in values:
            cells = list(raw) + [""] * (len(header) - len(raw))
            rows.append({
                col: str(cell).strip()
                for col, cell in zip(header, cells)
                if col
            })

        # Trailing blank rows inside the grid are not data
        while rows and not any(rows[-1].values()):
            rows.pop()

        logger.info(f"Fetched sheet rows | sheet={self.sheet_name} rows={len(rows)}")
        return rows

    def count_rows(self) -> int:
        try:
            return len(self._worksheet().col_values(1))
        except (gspread.exceptions.GSpreadException, GoogleAuthError, OSError) as e:
            raise SourceUnreachable(f"Failed to count Google Sheets rows: {e}") from e
