"""
Partition Synchronizer

Owns the session's view of the remote spreadsheet: which monthly
partitions exist, which one is selected, and the cached rows of each.

Lifecycle:
    UNINITIALIZED -> LOADING_METADATA -> ACCESS_DENIED | READY
While READY the synchronizer is IDLE, REFRESHING_SELECTED or
REFRESHING_ALL.

DESIGN DECISIONS:
- Every remote failure is caught here and turned into state plus a
  SyncError; nothing raised by the source escapes to the caller
- Bulk loads are strictly sequential with a fixed pause between requests
  to stay under the Sheets read quota
- Each fetch is tagged with a per-partition generation. Rows are stored
  only if no newer generation has stored rows for that partition yet, so
  a slow, superseded request can never overwrite newer data
- A selected-partition fetch also carries the selection at issue time;
  if the user has moved on by the time it completes, rows and budget are
  both discarded
"""

import asyncio
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.logs import get_logger
from ledger.models.ledger import (
    Activity,
    ErrorKind,
    LedgerEntry,
    Partition,
    PartitionRef,
    RefreshResult,
    SyncError,
    SyncState,
)
from ledger.parsing import is_monthly_title, parse_amount, parse_partition_label
from ledger.services.storage.interface import (
    AccessDeniedError,
    PartialFetchError,
    ScopeError,
    StorageError,
    TabularSourceInterface,
)
from ledger.sync.store import PartitionBudget, PartitionStore


logger = get_logger(__name__)


def monthly_partitions(sheets: Sequence[PartitionRef]) -> list[PartitionRef]:
    """Monthly worksheets only, newest (year, month) first."""
    monthly = [sheet for sheet in sheets if is_monthly_title(sheet.title)]
    return sorted(
        monthly,
        key=lambda sheet: parse_partition_label(sheet.title),
        reverse=True,
    )


def default_selection(partitions: Sequence[PartitionRef], today: date) -> Optional[str]:
    """The current month's partition if there is one, else the newest."""
    if not partitions:
        return None
    for partition in partitions:
        if parse_partition_label(partition.title) == (today.year, today.month):
            return partition.title
    return partitions[0].title


def to_sync_error(error: Exception, partition: Optional[str] = None) -> SyncError:
    """Classify any failure from the remote source."""
    if isinstance(error, PartialFetchError):
        kind = ErrorKind.PARTIAL
    elif isinstance(error, ScopeError):
        kind = ErrorKind.SCOPE
    elif isinstance(error, AccessDeniedError):
        kind = ErrorKind.ACCESS_DENIED
    else:
        kind = ErrorKind.NETWORK
    return SyncError(kind=kind, message=str(error) or type(error).__name__, partition=partition)


class PartitionSynchronizer:
    """
    Fetches partitions from the remote source into a PartitionStore.

    Consumers read through snapshot(), current_partition and the budget
    properties; they never see the store itself.
    """

    def __init__(
        self,
        source: TabularSourceInterface,
        store: Optional[PartitionStore] = None,
        sheets_settings: Optional[GoogleSheetsSettings] = None,
        request_delay: Optional[float] = None,
    ):
        self._source = source
        self._store = store or PartitionStore()
        self._sheets = sheets_settings or get_settings().google_sheets
        self._request_delay = (
            get_settings().sync.request_delay_seconds
            if request_delay is None
            else request_delay
        )

        self._credential: Optional[str] = None
        self._state = SyncState.UNINITIALIZED
        self._in_flight: Counter = Counter()
        self._partitions: tuple[PartitionRef, ...] = ()
        self._spreadsheet_title: Optional[str] = None
        self._selection: Optional[str] = None
        self._loaded_selection: Optional[str] = None
        self._generations: dict[str, int] = {}
        self._stored_generations: dict[str, int] = {}
        self._last_error: Optional[SyncError] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def activity(self) -> Activity:
        if self._in_flight[Activity.REFRESHING_ALL]:
            return Activity.REFRESHING_ALL
        if self._in_flight[Activity.REFRESHING_SELECTED]:
            return Activity.REFRESHING_SELECTED
        return Activity.IDLE

    @property
    def is_loading(self) -> bool:
        return self._state == SyncState.LOADING_METADATA or self.activity != Activity.IDLE

    @property
    def partitions(self) -> tuple[PartitionRef, ...]:
        return self._partitions

    @property
    def spreadsheet_title(self) -> Optional[str]:
        return self._spreadsheet_title

    @property
    def selection(self) -> Optional[str]:
        return self._selection

    @property
    def last_error(self) -> Optional[SyncError]:
        return self._last_error

    @property
    def requires_reauth(self) -> bool:
        return self._last_error is not None and self._last_error.requires_reauth

    @property
    def current_partition(self) -> Optional[Partition]:
        """The selected partition's cached rows, or None for no data."""
        return self._store.get(self._selection)

    @property
    def total_budget(self) -> Decimal:
        return self._store.budget(self._selection).total_budget

    @property
    def fixed_budget(self) -> Optional[Decimal]:
        return self._store.budget(self._selection).fixed_budget

    def snapshot(self) -> Mapping[str, Partition]:
        return self._store.snapshot()

    def partition_ref(self, title: Optional[str]) -> Optional[PartitionRef]:
        for ref in self._partitions:
            if ref.title == title:
                return ref
        return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, state: SyncState) -> None:
        if state != self._state:
            logger.info("sync_state_changed", previous=self._state.value, state=state.value)
            self._state = state

    def _record_error(self, error: Exception, partition: Optional[str] = None) -> SyncError:
        sync_error = to_sync_error(error, partition)
        self._last_error = sync_error
        if isinstance(error, StorageError):
            logger.warning(
                "remote_call_failed",
                kind=sync_error.kind.value,
                partition=partition,
                error=sync_error.message,
            )
        else:
            logger.error(
                "remote_call_failed",
                kind=sync_error.kind.value,
                partition=partition,
                error=sync_error.message,
                exc_info=error,
            )
        return sync_error

    def _issue(self, title: str) -> int:
        generation = self._generations.get(title, 0) + 1
        self._generations[title] = generation
        return generation

    def _store_rows(self, partition: Partition, generation: int) -> bool:
        """Store rows unless a newer generation of the partition already did."""
        title = partition.title
        if generation <= self._stored_generations.get(title, 0):
            logger.info("stale_response_discarded", partition=title, generation=generation)
            return False
        self._stored_generations[title] = generation
        self._store.put(partition)
        return True

    def _budget_from(self, total: Optional[str], fixed: Optional[str]) -> PartitionBudget:
        fixed_amount = parse_amount(fixed) if self._sheets.fixed_budget_cell else None
        return PartitionBudget(
            total_budget=parse_amount(total) or Decimal(0),
            fixed_budget=fixed_amount,
        )

    async def _none(self) -> None:
        return None

    async def _fetch_selected(self, title: str) -> tuple[Partition, Optional[PartitionBudget]]:
        """
        Rows and budget cells of one partition, issued back-to-back.

        Only a failed row fetch fails the refresh. An unreadable budget
        cell yields None (budget unknown) and the cached budget is kept.
        """
        credential = self._credential
        fixed_cell = self._sheets.fixed_budget_cell

        partition, total, fixed = await asyncio.gather(
            self._source.get_rows(credential, title),
            self._source.get_cell(credential, title, self._sheets.budget_cell),
            self._source.get_cell(credential, title, fixed_cell) if fixed_cell else self._none(),
            return_exceptions=True,
        )
        if isinstance(partition, BaseException):
            raise partition

        for cell, value in ((self._sheets.budget_cell, total), (fixed_cell, fixed)):
            if isinstance(value, BaseException):
                logger.warning(
                    "budget_cell_unreadable",
                    partition=title,
                    cell=cell,
                    error=str(value) or type(value).__name__,
                )
                return partition, None

        return partition, self._budget_from(total, fixed)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def initialize(self, credential: Optional[str], today: Optional[date] = None) -> bool:
        """
        Load the partition list and pick the initial selection.

        Args:
            credential: Bearer token. None/empty means the user is not
                        signed in yet and nothing happens.
            today: Reference date for picking the current month.

        Returns:
            True if the synchronizer is READY.
        """
        if not credential:
            logger.info("sync_not_ready", reason="no_credential")
            return False

        today = today or date.today()
        self._credential = credential
        self._last_error = None
        self._set_state(SyncState.LOADING_METADATA)

        try:
            info = await self._source.get_spreadsheet_info(credential)
        except Exception as e:
            self._record_error(e)
            self._partitions = ()
            self._selection = None
            self._loaded_selection = None
            self._set_state(SyncState.ACCESS_DENIED)
            return False

        self._spreadsheet_title = info.title
        self._partitions = tuple(monthly_partitions(info.sheets))
        self._selection = default_selection(self._partitions, today)
        self._loaded_selection = None
        self._set_state(SyncState.READY)

        logger.info(
            "partitions_listed",
            spreadsheet=info.title,
            partitions=len(self._partitions),
            selection=self._selection,
        )
        return True

    def select_partition(self, title: Optional[str]) -> Optional[str]:
        """
        Change the selected partition without fetching it.

        The fetch happens in sync_selection(). Unknown titles clear the
        selection, which reads as "no data".
        """
        if title is not None and self.partition_ref(title) is None:
            logger.warning("unknown_partition_selected", title=title)
            title = None
        if title != self._selection:
            logger.info("partition_selected", title=title, previous=self._selection)
        self._selection = title
        return title

    async def sync_selection(self) -> RefreshResult:
        """Fetch the selected partition if it has not been loaded since it was selected."""
        if self._selection is not None and self._selection == self._loaded_selection:
            return RefreshResult(ok=True)
        return await self.refresh_selected()

    async def refresh_selected(self) -> RefreshResult:
        """
        Re-fetch only the selected partition and its budget cells.

        On failure the cached entry is kept and the error is returned
        (and exposed as last_error).

        The response is dropped entirely if the selection changed while it
        was in flight. Otherwise the budget is always applied, and the rows
        are applied unless a newer fetch of the same partition (for example
        from a concurrent refresh_all) already stored its rows; in that case
        the title is reported as discarded.
        """
        title = self._selection
        if self._state != SyncState.READY or title is None:
            return RefreshResult(ok=False)

        generation = self._issue(title)
        self._in_flight[Activity.REFRESHING_SELECTED] += 1
        try:
            partition, budget = await self._fetch_selected(title)
        except Exception as e:
            return RefreshResult(ok=False, errors=(self._record_error(e, title),))
        finally:
            self._in_flight[Activity.REFRESHING_SELECTED] -= 1

        if self._selection != title:
            logger.info(
                "stale_response_discarded",
                partition=title,
                generation=generation,
                selection=self._selection,
            )
            return RefreshResult(ok=True, discarded=(title,))

        if budget is not None:
            self._store.put_budget(title, budget)
        self._loaded_selection = title
        self._last_error = None

        if not self._store_rows(partition, generation):
            return RefreshResult(ok=True, discarded=(title,))
        logger.info("partition_refreshed", partition=title, rows=len(partition.rows))
        return RefreshResult(ok=True, loaded=(title,))

    async def refresh_all(self) -> RefreshResult:
        """
        Fetch every monthly partition, one at a time.

        A partition that fails is logged and skipped; the rest of the
        sequence still runs.
        """
        if self._state != SyncState.READY:
            return RefreshResult(ok=False)

        loaded: list[str] = []
        discarded: list[str] = []
        errors: list[SyncError] = []

        self._in_flight[Activity.REFRESHING_ALL] += 1
        try:
            for position, ref in enumerate(self._partitions):
                if position:
                    await asyncio.sleep(self._request_delay)

                generation = self._issue(ref.title)
                try:
                    partition = await self._source.get_rows(self._credential, ref.title)
                except Exception as e:
                    failure = PartialFetchError(ref.title, e)
                    logger.warning(
                        "partition_fetch_failed",
                        partition=ref.title,
                        error=str(e),
                    )
                    errors.append(to_sync_error(failure, ref.title))
                    continue

                if self._store_rows(partition, generation):
                    loaded.append(ref.title)
                else:
                    discarded.append(ref.title)
        finally:
            self._in_flight[Activity.REFRESHING_ALL] -= 1

        logger.info(
            "partitions_refreshed",
            loaded=len(loaded),
            failed=len(errors),
            discarded=len(discarded),
        )
        return RefreshResult(
            ok=True,
            loaded=tuple(loaded),
            discarded=tuple(discarded),
            errors=tuple(errors),
        )

    async def load_all(self, credential: Optional[str], today: Optional[date] = None) -> bool:
        """
        Sign-in sequence: list partitions, load them all, then the selected
        partition's budget.
        """
        if not await self.initialize(credential, today):
            return False
        await self.refresh_all()
        await self.sync_selection()
        return True

    # ------------------------------------------------------------------
    # Writes (fire-and-forget, then refresh the affected partition)
    # ------------------------------------------------------------------

    async def _refresh_after_write(self, title: str) -> None:
        if title == self._selection:
            await self.refresh_selected()
            return

        generation = self._issue(title)
        try:
            partition = await self._source.get_rows(self._credential, title)
        except Exception as e:
            self._record_error(e, title)
            return
        self._store_rows(partition, generation)

    async def append_entry(self, entry: LedgerEntry, title: Optional[str] = None) -> bool:
        """
        Append a ledger entry to a partition (default: the selected one).

        Returns:
            True if the remote append succeeded.
        """
        title = title or self._selection
        if self._state != SyncState.READY or self.partition_ref(title) is None:
            return False

        try:
            appended = await self._source.append_row(self._credential, title, entry.to_row())
        except Exception as e:
            self._record_error(e, title)
            return False

        if appended:
            logger.info("entry_appended", partition=title, category=entry.category)
            await self._refresh_after_write(title)
        return bool(appended)

    async def delete_row(self, index: int, title: Optional[str] = None) -> bool:
        """
        Delete the index-th data row (zero-based) of a partition.

        Returns:
            True if the remote delete succeeded.
        """
        if index < 0:
            raise ValueError(f"Row index must be non-negative, got {index}")

        title = title or self._selection
        ref = self.partition_ref(title)
        if self._state != SyncState.READY or ref is None:
            return False

        try:
            deleted = await self._source.delete_row(self._credential, ref.sheet_id, index)
        except Exception as e:
            self._record_error(e, title)
            return False

        if deleted:
            logger.info("row_deleted", partition=title, index=index)
            await self._refresh_after_write(title)
        return bool(deleted)
