"""
Tests for the partition synchronizer.

All remote calls go to FakeTabularSource; async operations are driven
with asyncio.run so the tests need no async plugin.
"""

import asyncio
import pytest
from datetime import date
from decimal import Decimal

from ledger.config import GoogleSheetsSettings
from ledger.models.ledger import (
    Activity,
    ErrorKind,
    LedgerEntry,
    PartitionRef,
    SyncState,
)
from ledger.services.storage import (
    AccessDeniedError,
    NetworkOrServerError,
    PartialFetchError,
    ScopeError,
)
from ledger.sync import (
    PartitionSynchronizer,
    default_selection,
    monthly_partitions,
    to_sync_error,
)

from conftest import make_partition


TODAY = date(2024, 3, 10)


def run(coro):
    return asyncio.run(coro)


def refs(*titles):
    return [PartitionRef(sheet_id=i, title=t) for i, t in enumerate(titles)]


class TestPartitionListing:
    """Tests for picking and ordering monthly partitions."""

    def test_monthly_partitions_newest_first(self):
        ordered = monthly_partitions(refs("2023년 12월", "설정", "2024년 3월", "2024년 1월"))
        assert [ref.title for ref in ordered] == ["2024년 3월", "2024년 1월", "2023년 12월"]

    def test_default_selection_prefers_current_month(self):
        partitions = monthly_partitions(refs("2024년 3월", "2024년 2월"))
        assert default_selection(partitions, date(2024, 2, 20)) == "2024년 2월"

    def test_default_selection_falls_back_to_newest(self):
        partitions = monthly_partitions(refs("2024년 3월", "2024년 2월"))
        assert default_selection(partitions, date(2025, 1, 1)) == "2024년 3월"
        assert default_selection([], TODAY) is None

    @pytest.mark.parametrize("error, kind", [
        (AccessDeniedError("no"), ErrorKind.ACCESS_DENIED),
        (ScopeError("scope"), ErrorKind.SCOPE),
        (NetworkOrServerError("down"), ErrorKind.NETWORK),
        (PartialFetchError("2024년 2월", RuntimeError("x")), ErrorKind.PARTIAL),
        (RuntimeError("unexpected"), ErrorKind.NETWORK),
    ])
    def test_to_sync_error(self, error, kind):
        assert to_sync_error(error).kind == kind


class TestInitialize:
    """Tests for loading the partition list."""

    def test_lists_monthly_partitions_and_selects_current(self, source, make_sync):
        sync = make_sync(source)
        assert run(sync.initialize("token", today=TODAY))
        assert sync.state == SyncState.READY
        assert sync.spreadsheet_title == "가계부"
        assert [ref.title for ref in sync.partitions] == ["2024년 3월", "2024년 2월", "2024년 1월"]
        assert sync.selection == "2024년 3월"
        assert sync.activity == Activity.IDLE
        assert not sync.is_loading

    def test_no_credential_does_nothing(self, source, make_sync):
        sync = make_sync(source)
        assert not run(sync.initialize(None))
        assert not run(sync.initialize(""))
        assert sync.state == SyncState.UNINITIALIZED
        assert source.calls == []

    def test_access_denied(self, source, make_sync):
        source.info_error = AccessDeniedError("forbidden")
        sync = make_sync(source)
        assert not run(sync.initialize("token", today=TODAY))
        assert sync.state == SyncState.ACCESS_DENIED
        assert sync.last_error.kind == ErrorKind.ACCESS_DENIED
        assert sync.partitions == ()
        assert sync.selection is None
        assert not sync.requires_reauth

    def test_scope_error_asks_for_sign_in(self, source, make_sync):
        source.info_error = ScopeError("insufficient scope")
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        assert sync.state == SyncState.ACCESS_DENIED
        assert sync.requires_reauth

    def test_unexpected_error_does_not_escape(self, source, make_sync):
        source.info_error = RuntimeError("boom")
        sync = make_sync(source)
        assert not run(sync.initialize("token", today=TODAY))
        assert sync.state == SyncState.ACCESS_DENIED

    def test_operations_before_ready(self, source, make_sync):
        sync = make_sync(source)
        assert not run(sync.refresh_all()).ok
        assert not run(sync.refresh_selected()).ok
        entry = LedgerEntry(entry_date=TODAY, category="수입")
        assert not run(sync.append_entry(entry))


class TestSelection:
    """Tests for selecting and syncing a partition."""

    def test_unknown_selection_reads_as_no_data(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        assert sync.select_partition("2099년 1월") is None
        assert sync.selection is None
        assert sync.current_partition is None
        assert sync.total_budget == Decimal(0)

    def test_sync_selection_fetches_once(self, source, make_sync, february):
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        sync.select_partition("2024년 2월")

        result = run(sync.sync_selection())
        assert result.loaded == ("2024년 2월",)
        assert sync.current_partition == february
        assert sync.total_budget == Decimal(250000)

        run(sync.sync_selection())
        assert source.fetched() == ["2024년 2월"]

    def test_budget_cells(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        assert sync.total_budget == Decimal(300000)
        assert sync.fixed_budget is None

    def test_fixed_budget_cell(self, source):
        settings = GoogleSheetsSettings(spreadsheet_id="test", fixed_budget_cell="C3")
        source.cells[("2024년 3월", "C3")] = "450,000"
        sync = PartitionSynchronizer(source, sheets_settings=settings, request_delay=0)
        run(sync.load_all("token", today=TODAY))
        assert sync.fixed_budget == Decimal(450000)

    def test_missing_budget_cell_is_zero(self, source, make_sync):
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        sync.select_partition("2024년 1월")
        run(sync.sync_selection())
        assert sync.total_budget == Decimal(0)


class TestRefreshAll:
    """Tests for the sequential bulk load."""

    def test_load_all(self, source, make_sync, march, february, january):
        sync = make_sync(source)
        assert run(sync.load_all("token", today=TODAY))
        assert dict(sync.snapshot()) == {
            "2024년 3월": march,
            "2024년 2월": february,
            "2024년 1월": january,
        }
        assert source.fetched() == ["2024년 3월", "2024년 2월", "2024년 1월", "2024년 3월"]

    def test_one_failure_does_not_stop_the_rest(self, source, make_sync):
        """Test that a failing middle partition is skipped and reported."""
        source.row_failures["2024년 2월"] = NetworkOrServerError("timeout")
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))

        result = run(sync.refresh_all())
        assert result.ok
        assert result.loaded == ("2024년 3월", "2024년 1월")
        assert [error.kind for error in result.errors] == [ErrorKind.PARTIAL]
        assert result.errors[0].partition == "2024년 2월"
        assert set(sync.snapshot()) == {"2024년 3월", "2024년 1월"}

    def test_requests_are_sequential_and_paced(self, source, make_sync, monkeypatch):
        real_sleep = asyncio.sleep
        delays = []

        async def recording_sleep(delay, *args, **kwargs):
            delays.append(delay)
            await real_sleep(0)

        monkeypatch.setattr(asyncio, "sleep", recording_sleep)
        sync = make_sync(source, request_delay=0.25)
        run(sync.initialize("token", today=TODAY))
        run(sync.refresh_all())

        row_calls = [call for call in source.calls if call[0].startswith("rows")]
        assert [kind for kind, _ in row_calls] == ["rows:start", "rows:end"] * 3
        assert delays.count(0.25) == 2

    def test_snapshot_is_read_only(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        snapshot = sync.snapshot()
        with pytest.raises(TypeError):
            snapshot["2024년 3월"] = None


class TestStaleResponses:
    """Tests for discarding responses that were superseded in flight."""

    def test_response_for_old_selection_is_discarded(self, source, make_sync):
        sync = make_sync(source)

        async def scenario():
            await sync.initialize("token", today=TODAY)
            gate = asyncio.Event()
            source.gates["2024년 3월"] = gate

            pending = asyncio.create_task(sync.refresh_selected())
            await asyncio.sleep(0)
            assert sync.activity == Activity.REFRESHING_SELECTED

            sync.select_partition("2024년 2월")
            gate.set()
            return await pending

        result = run(scenario())
        assert result.discarded == ("2024년 3월",)
        assert "2024년 3월" not in sync.snapshot()
        assert sync.selection == "2024년 2월"
        assert sync.activity == Activity.IDLE

    def test_slow_bulk_response_does_not_overwrite_newer_data(self, source, make_sync):
        """Test that a newer refresh of the same partition wins over an older one."""
        sync = make_sync(source)
        updated = make_partition("2024년 3월", [["3/11", "우유", "생활비 지출", "", "2,000"]])

        async def scenario():
            await sync.initialize("token", today=TODAY)
            gate = asyncio.Event()
            source.gates["2024년 3월"] = gate

            bulk = asyncio.create_task(sync.refresh_all())
            await asyncio.sleep(0)
            assert sync.activity == Activity.REFRESHING_ALL

            source.partitions["2024년 3월"] = updated
            selected = await sync.refresh_selected()
            gate.set()
            return selected, await bulk

        selected, bulk = run(scenario())
        assert selected.loaded == ("2024년 3월",)
        assert bulk.discarded == ("2024년 3월",)
        assert bulk.loaded == ("2024년 2월", "2024년 1월")
        assert sync.snapshot()["2024년 3월"] == updated

    def test_bulk_refresh_during_selected_refresh_keeps_budget(self, source, make_sync):
        """Test that a newer bulk fetch only supersedes the rows, not the budget."""
        sync = make_sync(source)
        updated = make_partition("2024년 3월", [["3/11", "우유", "생활비 지출", "", "2,000"]])

        async def scenario():
            await sync.initialize("token", today=TODAY)
            gate = asyncio.Event()
            source.gates["2024년 3월"] = gate

            selected = asyncio.create_task(sync.refresh_selected())
            while ("rows:start", "2024년 3월") not in source.calls:
                await asyncio.sleep(0)

            source.partitions["2024년 3월"] = updated
            bulk = await sync.refresh_all()
            gate.set()
            return await selected, bulk

        selected, bulk = run(scenario())
        assert selected.ok
        assert selected.discarded == ("2024년 3월",)
        assert bulk.loaded == ("2024년 3월", "2024년 2월", "2024년 1월")
        assert sync.snapshot()["2024년 3월"] == updated
        assert sync.total_budget == Decimal(300000)

        fetches = len(source.fetched())
        assert run(sync.sync_selection()).ok
        assert len(source.fetched()) == fetches


class TestRefreshSelected:
    """Tests for refreshing only the selected partition."""

    def test_failure_keeps_cached_rows(self, source, make_sync, march):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        source.row_failures["2024년 3월"] = NetworkOrServerError("timeout")

        result = run(sync.refresh_selected())
        assert not result.ok
        assert result.errors[0].kind == ErrorKind.NETWORK
        assert sync.current_partition == march
        assert sync.last_error.kind == ErrorKind.NETWORK
        assert sync.activity == Activity.IDLE

    def test_scope_failure_requires_reauth(self, source, make_sync):
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        source.row_failures["2024년 3월"] = ScopeError("insufficient scope")
        run(sync.refresh_selected())
        assert sync.requires_reauth

    def test_success_clears_last_error(self, source, make_sync):
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        source.row_failures["2024년 3월"] = NetworkOrServerError("timeout")
        run(sync.refresh_selected())
        del source.row_failures["2024년 3월"]
        assert run(sync.refresh_selected()).ok
        assert sync.last_error is None

    def test_unreadable_budget_cell_still_loads_rows(self, source, make_sync, march):
        sync = make_sync(source)
        run(sync.initialize("token", today=TODAY))
        source.cell_failures[("2024년 3월", "C2")] = NetworkOrServerError("timeout")

        result = run(sync.refresh_selected())
        assert result.ok
        assert result.loaded == ("2024년 3월",)
        assert sync.current_partition == march
        assert sync.total_budget == Decimal(0)
        assert sync.last_error is None

    def test_unreadable_budget_cell_keeps_cached_budget(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        source.cell_failures[("2024년 3월", "C2")] = NetworkOrServerError("timeout")
        source.partitions["2024년 3월"] = make_partition(
            "2024년 3월", [["3/11", "우유", "생활비 지출", "", "2,000"]]
        )

        assert run(sync.refresh_selected()).ok
        assert len(sync.current_partition.rows) == 1
        assert sync.total_budget == Decimal(300000)


class TestWrites:
    """Tests for appending and deleting rows."""

    def test_append_refreshes_selected_partition(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        entry = LedgerEntry(
            entry_date=date(2024, 3, 11),
            element="우유",
            category="생활비 지출",
            amount=Decimal(2000),
        )

        assert run(sync.append_entry(entry))
        assert ("append", "2024년 3월") in source.calls
        rows = sync.current_partition.rows
        assert len(rows) == 6
        assert rows[-1][0] == "2024. 3. 11"

    def test_append_to_other_partition(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        entry = LedgerEntry(entry_date=date(2024, 1, 20), category="수입", amount=Decimal(1))

        assert run(sync.append_entry(entry, title="2024년 1월"))
        assert len(sync.snapshot()["2024년 1월"].rows) == 2
        assert sync.selection == "2024년 3월"

    def test_append_to_unknown_partition(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        entry = LedgerEntry(entry_date=TODAY, category="수입")
        assert not run(sync.append_entry(entry, title="설정"))

    def test_failed_append_is_reported(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        source.write_error = NetworkOrServerError("quota")
        entry = LedgerEntry(entry_date=TODAY, category="수입")

        assert not run(sync.append_entry(entry))
        assert sync.last_error.kind == ErrorKind.NETWORK
        assert len(sync.current_partition.rows) == 5

    def test_delete_row(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))

        assert run(sync.delete_row(0))
        rows = sync.current_partition.rows
        assert len(rows) == 4
        assert rows[0][0] == "3/2"

    def test_delete_negative_index(self, source, make_sync):
        sync = make_sync(source)
        run(sync.load_all("token", today=TODAY))
        with pytest.raises(ValueError):
            run(sync.delete_row(-1))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
