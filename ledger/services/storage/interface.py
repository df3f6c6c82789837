"""
Abstract Remote Tabular Source

DESIGN DECISION: The synchronizer only ever talks to this interface.
This allows us to:
1. Keep the core independent of the Sheets wire protocol
2. Use an in-memory source for testing
3. Swap transports (gspread today) without touching the cache logic

The interface is intentionally small - just the five calls the ledger
needs. Every call is async and may fail; implementations raise the
StorageError subclasses below so callers can tell "re-authenticate" from
"try again later".
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ledger.models.ledger import Partition, SpreadsheetInfo


class TabularSourceInterface(ABC):
    """
    Abstract interface for the remote ledger spreadsheet.

    Any backend (Google Sheets, a test double, ...) must implement these
    methods. `credential` is an opaque bearer token supplied by the
    identity provider.
    """

    @abstractmethod
    async def get_spreadsheet_info(self, credential: str) -> SpreadsheetInfo:
        """
        List the spreadsheet's worksheets.

        Raises:
            AccessDeniedError: If the listing is forbidden
            ScopeError: If the credential lacks the required scope
            NetworkOrServerError: On transport or server failure
        """
        pass

    @abstractmethod
    async def get_rows(self, credential: str, title: str) -> Partition:
        """
        Read a partition's ledger table.

        The first row of the fetched range is the header row; rows below
        it are data rows.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def get_cell(
        self,
        credential: str,
        title: str,
        address: str,
    ) -> Optional[str]:
        """
        Read a single cell, e.g. the budget in "C2".

        Returns:
            The formatted cell value, or None if the cell is empty
        """
        pass

    @abstractmethod
    async def append_row(
        self,
        credential: str,
        title: str,
        values: Sequence[str],
    ) -> bool:
        """
        Append a row after the last ledger row of a partition.

        Returns:
            True if the row was appended
        """
        pass

    @abstractmethod
    async def delete_row(
        self,
        credential: str,
        sheet_id: int,
        index: int,
    ) -> bool:
        """
        Delete a data row.

        Args:
            sheet_id: Worksheet ID from the metadata listing
            index: Zero-based index of the data row (0 = first row below the headers)

        Returns:
            True if the row was deleted
        """
        pass


class StorageError(Exception):
    """Base exception for remote source operations."""
    pass


class AccessDeniedError(StorageError):
    """The user may not read the spreadsheet. Terminal for the session."""
    pass


class ScopeError(StorageError):
    """The credential lacks a required scope or has expired. Re-authenticate."""
    pass


class NetworkOrServerError(StorageError):
    """Transport failure or non-success status. Safe to retry."""
    pass


class PartialFetchError(StorageError):
    """One partition failed during a bulk load; the rest continue."""

    def __init__(self, title: str, cause: Exception):
        super().__init__(f"Failed to load partition {title!r}: {cause}")
        self.title = title
        self.cause = cause
