"""
Storage Services Package

Provides the abstract remote-source interface and its Google Sheets
implementation. The synchronizer depends only on the interface.
"""

from ledger.services.storage.interface import (
    AccessDeniedError,
    NetworkOrServerError,
    PartialFetchError,
    ScopeError,
    StorageError,
    TabularSourceInterface,
)
from ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsTabularSource,
    classify_http_error,
)

__all__ = [
    # Interface
    "TabularSourceInterface",
    # Exceptions
    "AccessDeniedError",
    "NetworkOrServerError",
    "PartialFetchError",
    "ScopeError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsTabularSource",
    "classify_http_error",
]
