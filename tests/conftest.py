"""
Shared fixtures for the Household Ledger tests.

No real API calls in tests: FakeTabularSource implements the storage
interface in memory and can be told to fail or to hold a response until
the test releases it.
"""

import asyncio
from typing import Optional, Sequence

import pytest

from ledger.config import GoogleSheetsSettings
from ledger.models.ledger import Partition, PartitionRef, SpreadsheetInfo
from ledger.services.storage import TabularSourceInterface
from ledger.sync import PartitionSynchronizer


HEADERS = ("날짜", "요소", "지출분류", "요약", "금액", "", "메모")


def make_partition(title: str, rows: Sequence[Sequence[str]], headers=HEADERS) -> Partition:
    return Partition(title=title, headers=headers, rows=rows)


class FakeTabularSource(TabularSourceInterface):
    """In-memory stand-in for the ledger spreadsheet."""

    def __init__(self, partitions: Sequence[Partition] = (), extra_sheets: Sequence[str] = ()):
        self.title = "가계부"
        self.partitions: dict[str, Partition] = {p.title: p for p in partitions}
        self.sheet_ids: dict[str, int] = {}
        for index, title in enumerate([*self.partitions, *extra_sheets]):
            self.sheet_ids[title] = 100 + index
        self.cells: dict[tuple[str, str], str] = {}

        self.info_error: Optional[Exception] = None
        self.row_failures: dict[str, Exception] = {}
        self.cell_failures: dict[tuple[str, str], Exception] = {}
        self.write_error: Optional[Exception] = None
        # title -> event; the next get_rows for that title waits on it
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, str]] = []

    async def get_spreadsheet_info(self, credential: str) -> SpreadsheetInfo:
        self.calls.append(("info", ""))
        if self.info_error:
            raise self.info_error
        return SpreadsheetInfo(
            title=self.title,
            sheets=tuple(
                PartitionRef(sheet_id=sheet_id, title=title)
                for title, sheet_id in self.sheet_ids.items()
            ),
        )

    async def get_rows(self, credential: str, title: str) -> Partition:
        self.calls.append(("rows:start", title))
        data = self.partitions.get(title, Partition(title=title))
        gate = self.gates.pop(title, None)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        self.calls.append(("rows:end", title))
        if title in self.row_failures:
            raise self.row_failures[title]
        return data

    async def get_cell(self, credential: str, title: str, address: str) -> Optional[str]:
        self.calls.append(("cell", f"{title}!{address}"))
        if (title, address) in self.cell_failures:
            raise self.cell_failures[(title, address)]
        return self.cells.get((title, address))

    async def append_row(self, credential: str, title: str, values: Sequence[str]) -> bool:
        self.calls.append(("append", title))
        if self.write_error:
            raise self.write_error
        current = self.partitions.get(title, Partition(title=title, headers=HEADERS))
        self.partitions[title] = current.model_copy(
            update={"rows": current.rows + (tuple(values),)}
        )
        return True

    async def delete_row(self, credential: str, sheet_id: int, index: int) -> bool:
        title = next(t for t, sid in self.sheet_ids.items() if sid == sheet_id)
        self.calls.append(("delete", title))
        if self.write_error:
            raise self.write_error
        current = self.partitions[title]
        rows = list(current.rows)
        del rows[index]
        self.partitions[title] = current.model_copy(update={"rows": tuple(rows)})
        return True

    def fetched(self) -> list[str]:
        return [title for kind, title in self.calls if kind == "rows:end"]


@pytest.fixture
def sheets_settings() -> GoogleSheetsSettings:
    return GoogleSheetsSettings(spreadsheet_id="test-spreadsheet")


@pytest.fixture
def march() -> Partition:
    return make_partition("2024년 3월", [
        ["2024. 3. 10", "라면", "생활비 지출", "편의점", "12,000", "", "memo"],
        ["3/2", "월세", "고정 지출", "집주인", "500,000"],
        ["3/5", "월급", "수입", "회사", "3,000,000"],
        ["3/7", "적금", "저축", "은행", "200,000"],
        ["3/8", "제주", "여행", "항공", "150,000"],
    ])


@pytest.fixture
def february() -> Partition:
    return make_partition("2024년 2월", [
        ["2/3", "라면", "생활비 지출", "마트", "8,000"],
        ["2/20", "호텔", "여행", "부산", "90,000"],
    ])


@pytest.fixture
def january() -> Partition:
    return make_partition("2024년 1월", [
        ["1/15", "카드", "카드 대금", "은행", "400,000"],
    ])


@pytest.fixture
def source(march, february, january) -> FakeTabularSource:
    fake = FakeTabularSource([january, february, march], extra_sheets=["설정", "요약"])
    fake.cells[("2024년 3월", "C2")] = "300,000"
    fake.cells[("2024년 2월", "C2")] = "250,000"
    return fake


@pytest.fixture
def make_sync(sheets_settings):
    def factory(source: TabularSourceInterface, **kwargs) -> PartitionSynchronizer:
        kwargs.setdefault("request_delay", 0)
        return PartitionSynchronizer(source, sheets_settings=sheets_settings, **kwargs)
    return factory
