"""
Google Sheets Remote Store

DESIGN DECISION: Google Sheets serves as the remote document store because:
1. Users can look at their ledger directly in Sheets
2. No server to run
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No push notifications: live subscription is implemented by polling
  the worksheet and emitting a snapshot whenever its contents change
- No transactions (the ledger tolerates this; writes are sequential)
- Limited query capabilities (we read whole collections)

Each collection is one worksheet whose first row is the header.
Every failure is reported as RemoteUnavailableError so the ledger can
fall back to its local copy. gspread is blocking, so every call runs in
a worker thread and the event loop keeps serving other tasks meanwhile.
"""

import asyncio
from typing import AsyncIterator, List, Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from piggy.config import GoogleSheetsSettings, get_settings
from piggy.services.storage.interface import (
    NotFoundError,
    RemoteConfigurationError,
    RemoteExpenseStoreInterface,
    RemoteUnavailableError,
)


# Column mappings for expense worksheets (camelCase, as stored records)
EXPENSE_COLUMNS = [
    "id",
    "title",
    "amount",
    "paymentMethod",
    "category",
    "userId",
    "createdAt",
    "timestamp",
]

# Misconfiguration is never retried
_transient = retry(
    retry=(
        retry_if_exception_type(RemoteUnavailableError)
        & retry_if_not_exception_type(RemoteConfigurationError)
    ),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup. Blocking; callers in
    async code run it through asyncio.to_thread.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication. Retries are
        left to the store, which backs off without blocking the loop.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise RemoteConfigurationError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except ValueError as e:
                # Malformed service account file
                raise RemoteConfigurationError(f"Invalid Google credentials: {e}")
            except Exception as e:
                raise RemoteUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise RemoteConfigurationError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def sheet_name_for(self, collection: str) -> str:
        if collection == "expenses":
            return self._settings.expenses_sheet_name
        return collection

    def get_collection_sheet(self, collection: str) -> gspread.Worksheet:
        """Get or create the worksheet backing a collection."""
        spreadsheet = self.get_spreadsheet()
        title = self.sheet_name_for(collection)
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(EXPENSE_COLUMNS),
            )
            sheet.append_row(EXPENSE_COLUMNS)
        return sheet


class GoogleSheetsExpenseStore(RemoteExpenseStoreInterface):
    """
    Google Sheets implementation of the remote document store.

    One document per row. Ids are generated here on write, the way a
    document database assigns them.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self._client.settings.poll_interval_seconds
        )

    def _record_to_row(self, record_id: str, record: dict) -> list:
        """Convert a record to a spreadsheet row."""
        row = []
        for column in EXPENSE_COLUMNS:
            value = record_id if column == "id" else record.get(column)
            row.append("" if value is None else str(value))
        return row

    def _row_to_record(self, row: list) -> dict:
        """
        Convert a spreadsheet row to a record.

        Cells come back as text. The amount stays text so that the exact
        decimal typed in is what the ledger parses.
        """
        # Handle missing columns gracefully
        def safe_get(index: int) -> Optional[str]:
            try:
                return row[index] if row[index] else None
            except IndexError:
                return None

        return {column: safe_get(idx) for idx, column in enumerate(EXPENSE_COLUMNS)}

    def _collection_sheet(self, collection: str) -> gspread.Worksheet:
        try:
            return self._client.get_collection_sheet(collection)
        except RemoteUnavailableError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to open '{collection}': {e}")

    def _read_records(self, collection: str) -> list[dict]:
        sheet = self._collection_sheet(collection)
        try:
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to read '{collection}': {e}")
        return [self._row_to_record(row) for row in all_rows if row and row[0]]

    def _find_row(self, sheet: gspread.Worksheet, record_id: str) -> Optional[int]:
        """1-based row index of a document, header included."""
        ids = sheet.col_values(1)
        for idx, value in enumerate(ids[1:], start=2):  # Row 1 is the header
            if value == record_id:
                return idx
        return None

    def _append_row(self, collection: str, record_id: str, record: dict) -> None:
        sheet = self._collection_sheet(collection)
        try:
            sheet.append_row(self._record_to_row(record_id, record), value_input_option="RAW")
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to write to '{collection}': {e}")

    def _replace_row(self, collection: str, record_id: str, record: dict) -> None:
        sheet = self._collection_sheet(collection)
        try:
            row_idx = self._find_row(sheet, record_id)
            if row_idx is None:
                raise NotFoundError(f"Document not found: {collection}/{record_id}")

            new_row = self._record_to_row(record_id, record)
            for col_idx, value in enumerate(new_row, start=1):
                sheet.update_cell(row_idx, col_idx, value)
        except NotFoundError:
            raise
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to update '{collection}/{record_id}': {e}")

    def _delete_row(self, collection: str, record_id: str) -> None:
        sheet = self._collection_sheet(collection)
        try:
            row_idx = self._find_row(sheet, record_id)
            if row_idx is not None:
                sheet.delete_rows(row_idx)
        except Exception as e:
            raise RemoteUnavailableError(f"Failed to delete '{collection}/{record_id}': {e}")

    @_transient
    async def write(self, collection: str, record: dict) -> str:
        """Append a new document and return its generated id."""
        record_id = uuid4().hex
        await asyncio.to_thread(self._append_row, collection, record_id, record)
        return record_id

    @_transient
    async def update(self, collection: str, record_id: str, record: dict) -> None:
        """Replace the row holding this document."""
        await asyncio.to_thread(self._replace_row, collection, record_id, record)

    @_transient
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete the row holding this document, if any."""
        await asyncio.to_thread(self._delete_row, collection, record_id)

    async def list(self, collection: str) -> list[dict]:
        return await asyncio.to_thread(self._read_records, collection)

    async def subscribe(self, collection: str) -> AsyncIterator[List[dict]]:
        """Poll the worksheet and yield the collection whenever it changes."""
        previous: Optional[list[dict]] = None
        while True:
            records = await asyncio.to_thread(self._read_records, collection)
            if records != previous:
                previous = records
                yield [dict(r) for r in records]
            await asyncio.sleep(self._poll_interval)
