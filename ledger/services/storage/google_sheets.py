"""
Google Sheets Remote Source

DESIGN DECISION: The ledger lives in a Google Sheets document that the
household edits directly, one worksheet per month. We read it with the
signed-in user's own OAuth token rather than a service account, so the
sheet's sharing settings decide who may see it.

TRADEOFFS:
- The Sheets API has a per-user read quota (bulk loads are paced by the
  synchronizer, transient 429/5xx are retried here)
- gspread is synchronous; calls run in a worker thread so the event loop
  keeps serving other work while a request is in flight
- No transactions: appends and deletes are fire-and-forget

Each monthly worksheet holds a summary block at the top and the ledger
table below it; the table's header row is GoogleSheetsSettings.header_row.
"""

import asyncio
from typing import Any, Callable, Optional, Sequence

import gspread
from google.auth import exceptions as google_auth_exceptions
from google.oauth2.credentials import Credentials
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.logs import get_logger
from ledger.models.ledger import Partition, PartitionRef, SpreadsheetInfo
from ledger.services.storage.interface import (
    AccessDeniedError,
    NetworkOrServerError,
    ScopeError,
    StorageError,
    TabularSourceInterface,
)


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
]

_SCOPE_MARKERS = ("insufficient", "scope")

logger = get_logger(__name__)


def classify_http_error(status: Optional[int], message: str = "") -> StorageError:
    """
    Map an HTTP failure to the storage error taxonomy.

    401 and scope-related 403s need a fresh sign-in; other 403s and 404s
    mean the user cannot see the spreadsheet; everything else is worth
    retrying.
    """
    lower = message.lower()
    if status == 401:
        return ScopeError(message or "Credential rejected")
    if status == 403:
        if any(marker in lower for marker in _SCOPE_MARKERS):
            return ScopeError(message)
        return AccessDeniedError(message or "Access denied")
    if status == 404:
        return AccessDeniedError(message or "Spreadsheet not found")
    return NetworkOrServerError(message or f"Request failed with status {status}")


def _status_of(error: Exception) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def quote_title(title: str) -> str:
    """Quote a worksheet title for A1 notation."""
    return "'" + title.replace("'", "''") + "'"


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Authorizes gspread with a bearer token and caches the opened
    spreadsheet per token. A new token (after re-authentication) gets a
    fresh client.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    def connect(self, credential: str) -> gspread.Client:
        """Authorize a gspread client with the user's access token."""
        credentials = Credentials(token=credential, scopes=SCOPES)
        return gspread.authorize(credentials)

    def get_spreadsheet(self, credential: str) -> gspread.Spreadsheet:
        """Get the configured spreadsheet for this credential."""
        if credential not in self._spreadsheets:
            # Drop spreadsheets opened with tokens that have since been replaced
            self._spreadsheets.clear()
            client = self.connect(credential)
            try:
                self._spreadsheets[credential] = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise AccessDeniedError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheets[credential]

    def rows_range(self, title: str) -> str:
        s = self._settings
        return f"{quote_title(title)}!{s.first_column}{s.header_row}:{s.last_column}"

    def append_range(self, title: str) -> str:
        s = self._settings
        return f"{quote_title(title)}!{s.first_column}:{s.append_last_column}"

    def cell_range(self, title: str, address: str) -> str:
        return f"{quote_title(title)}!{address}"


class GoogleSheetsTabularSource(TabularSourceInterface):
    """
    Google Sheets implementation of the remote tabular source.

    Reads are retried on transient failures with exponential backoff.
    Writes are not retried: a timed-out append may still have landed.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        retry_attempts: Optional[int] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._retry_attempts = retry_attempts or get_settings().sync.retry_attempts

    def _translate(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking gspread call, converting failures to StorageError."""
        try:
            return func(*args, **kwargs)
        except StorageError:
            raise
        except gspread.exceptions.APIError as e:
            raise classify_http_error(_status_of(e), str(e)) from e
        except PermissionError as e:
            # gspread 6 raises PermissionError from the underlying 403
            cause = e.__cause__
            message = str(cause) if cause else "Permission denied"
            raise classify_http_error(403, message) from e
        except google_auth_exceptions.RefreshError as e:
            raise ScopeError(f"Credential could not be refreshed: {e}") from e
        except (google_auth_exceptions.TransportError, OSError) as e:
            raise NetworkOrServerError(f"Network failure: {e}") from e

    async def _call(self, func: Callable[..., Any], *args, retry: bool = True, **kwargs) -> Any:
        if not retry:
            return await asyncio.to_thread(self._translate, func, *args, **kwargs)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(NetworkOrServerError),
            reraise=True,
        ):
            with attempt:
                return await asyncio.to_thread(self._translate, func, *args, **kwargs)

    def _values(self, credential: str, a1_range: str) -> list[list[str]]:
        spreadsheet = self._client.get_spreadsheet(credential)
        response = spreadsheet.values_get(a1_range)
        return response.get("values", [])

    async def get_spreadsheet_info(self, credential: str) -> SpreadsheetInfo:
        """List the spreadsheet's worksheets."""

        def fetch() -> SpreadsheetInfo:
            spreadsheet = self._client.get_spreadsheet(credential)
            return SpreadsheetInfo(
                title=spreadsheet.title,
                sheets=tuple(
                    PartitionRef(sheet_id=ws.id, title=ws.title)
                    for ws in spreadsheet.worksheets()
                ),
            )

        info = await self._call(fetch)
        logger.info("spreadsheet_loaded", title=info.title, sheets=len(info.sheets))
        return info

    async def get_rows(self, credential: str, title: str) -> Partition:
        """Read the ledger table of one monthly worksheet."""
        values = await self._call(self._values, credential, self._client.rows_range(title))
        if not values:
            return Partition(title=title)
        return Partition(title=title, headers=values[0], rows=values[1:])

    async def get_cell(self, credential: str, title: str, address: str) -> Optional[str]:
        """Read one formatted cell value."""
        values = await self._call(
            self._values, credential, self._client.cell_range(title, address)
        )
        if not values or not values[0]:
            return None
        return str(values[0][0])

    async def append_row(self, credential: str, title: str, values: Sequence[str]) -> bool:
        """Append a ledger row; the sheet parses it as if typed by the user."""

        def append() -> None:
            spreadsheet = self._client.get_spreadsheet(credential)
            spreadsheet.values_append(
                self._client.append_range(title),
                params={"valueInputOption": "USER_ENTERED"},
                body={"values": [list(values)]},
            )

        await self._call(append, retry=False)
        return True

    async def delete_row(self, credential: str, sheet_id: int, index: int) -> bool:
        """Delete the index-th data row below the header row."""
        # Zero-based sheet row of the first data row equals the 1-based header row
        start = self._client.settings.header_row + index

        def delete() -> None:
            spreadsheet = self._client.get_spreadsheet(credential)
            spreadsheet.batch_update({
                "requests": [{
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": start,
                            "endIndex": start + 1,
                        }
                    }
                }]
            })

        await self._call(delete, retry=False)
        return True
