"""Services package."""

from ledger.services.identity import (
    CredentialProvider,
    Identity,
    StaticCredentialProvider,
)
from ledger.services.storage import (
    AccessDeniedError,
    GoogleSheetsClient,
    GoogleSheetsTabularSource,
    NetworkOrServerError,
    PartialFetchError,
    ScopeError,
    StorageError,
    TabularSourceInterface,
)

__all__ = [
    # Identity
    "CredentialProvider",
    "Identity",
    "StaticCredentialProvider",
    # Storage services
    "AccessDeniedError",
    "GoogleSheetsClient",
    "GoogleSheetsTabularSource",
    "NetworkOrServerError",
    "PartialFetchError",
    "ScopeError",
    "StorageError",
    "TabularSourceInterface",
]
