"""
Google Sheets State Backend

DESIGN DECISION: Google Sheets can stand in for the document server:
1. No database setup required
2. The owner can inspect (and back up) every user's document directly
3. Sheet version history doubles as a backup

One row per user:

    user_id | updated_at | schema_version | state_json

TRADEOFFS:
- A cell holds at most 50,000 characters, so very long histories
  do not fit (DocumentTooLargeError)
- No transactions; a row is overwritten as a whole, last write wins
"""

import asyncio
import json
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from finflow.config import get_settings
from finflow.models.ledger import AppState, utcnow
from finflow.services.storage.interface import (
    ConnectionError,
    DocumentTooLargeError,
    StateStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

STATE_COLUMNS = [
    "user_id",
    "updated_at",
    "schema_version",
    "state_json",
]

# Google Sheets hard limit per cell
MAX_CELL_CHARS = 50_000


class GoogleSheetsClient:
    """
    Lazily authorised gspread handle for the configured spreadsheet.

    Connecting is retried; individual sheet calls are not.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorise with the service account (once per instance).
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
                raise ConnectionError(
                    f"No service account file at {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Google Sheets authorisation failed: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Spreadsheet named by GOOGLE_SHEETS_SPREADSHEET_ID."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"No access to spreadsheet {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_state_sheet(self) -> gspread.Worksheet:
        """Get or create the state worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.state_sheet_name)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=self._settings.state_sheet_name,
                rows=1000,
                cols=len(STATE_COLUMNS),
            )
            sheet.append_row(STATE_COLUMNS)
        return sheet


class GoogleSheetsStateStorage(StateStorageInterface):
    """
    Google Sheets implementation of the state document store.

    gspread is blocking, so every sheet call runs in a worker thread.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def state_to_row(user_id: str, state: AppState) -> list[str]:
        """Convert a state document to a spreadsheet row."""
        state_json = json.dumps(state.to_document(), ensure_ascii=False)
        if len(state_json) > MAX_CELL_CHARS:
            raise DocumentTooLargeError(
                f"State for {user_id} is {len(state_json)} characters, "
                f"a sheet cell holds at most {MAX_CELL_CHARS}"
            )
        return [
            str(user_id),
            utcnow().isoformat(),
            str(state.schema_version),
            state_json,
        ]

    @staticmethod
    def row_to_state(row: list[str]) -> Optional[AppState]:
        """Convert a spreadsheet row back to a state document."""
        if len(row) < len(STATE_COLUMNS) or not row[3]:
            return None
        try:
            return AppState.from_document(json.loads(row[3]))
        except (ValueError, ValidationError) as e:
            raise StorageError(f"Stored state is invalid: {e}") from e

    def _find_row(self, sheet: gspread.Worksheet, user_id: str) -> Optional[int]:
        cell = sheet.find(str(user_id), in_column=1)
        return cell.row if cell else None

    def _load_sync(self, user_id: str) -> Optional[AppState]:
        try:
            sheet = self._client.get_state_sheet()
            row_number = self._find_row(sheet, user_id)
            if row_number is None:
                return None
            row = sheet.row_values(row_number)
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to read state: {e}") from e
        return self.row_to_state(row)

    def _save_sync(self, user_id: str, state: AppState) -> bool:
        row = self.state_to_row(user_id, state)
        try:
            sheet = self._client.get_state_sheet()
            row_number = self._find_row(sheet, user_id)
            if row_number is None:
                sheet.append_row(row)
            else:
                sheet.update(
                    values=[row],
                    range_name=f"A{row_number}:D{row_number}",
                )
        except gspread.exceptions.APIError as e:
            raise StorageError(f"Failed to save state: {e}") from e

        logger.debug("state_row_written", user_id=user_id, chars=len(row[3]))
        return True

    async def load_state(self, user_id: str) -> Optional[AppState]:
        return await asyncio.to_thread(self._load_sync, user_id)

    async def save_state(self, user_id: str, state: AppState) -> bool:
        return await asyncio.to_thread(self._save_sync, user_id, state)
