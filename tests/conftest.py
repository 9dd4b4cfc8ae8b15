"""
pytest 공통 fixture 정의

임시 디렉토리, 고정 시각, 원장 DB / 서비스 fixture
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.entry_builder import EntryFactory
from core.ledger.schema import init_ledger_schema
from core.ledger.service import LedgerService
from core.ledger.store import EntryStore

FIXED_NOW = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """호출마다 1ms씩 전진하는 테스트용 시계"""

    def __init__(self, start: datetime = FIXED_NOW, step: timedelta = timedelta(milliseconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> FakeClock:
    """고정 시작 시각 (2026-10-19 09:00 UTC)"""
    return FakeClock()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """항상 같은 시각을 반환하는 시계 (순서는 seq로만 결정)"""
    return lambda: FIXED_NOW


@pytest_asyncio.fixture
async def db(temp_dir: Path) -> AsyncGenerator[SQLiteAdapter, None]:
    """스키마가 초기화된 임시 원장 DB"""
    adapter = SQLiteAdapter(temp_dir / "test_ledger.db")
    await adapter.connect()
    await init_ledger_schema(adapter)

    yield adapter

    await adapter.close()


@pytest.fixture
def sleeps() -> list[float]:
    """재시도 대기 기록"""
    return []


@pytest.fixture
def service(db: SQLiteAdapter, clock: FakeClock, sleeps: list[float]) -> LedgerService:
    """LedgerService (고정 시계, 대기 없는 재시도)"""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    return LedgerService(
        EntryStore(db, clock),
        factory=EntryFactory(clock),
        clock=clock,
        sleep=fake_sleep,
    )
