"""
SQLite 어댑터 테스트

연결 PRAGMA, 트랜잭션 합류/직렬화, 원장 스키마 초기화.
"""

import asyncio
from pathlib import Path
from typing import AsyncGenerator

import aiosqlite
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, create_connection
from core.ledger.schema import init_ledger_schema


async def pragma(conn: aiosqlite.Connection, name: str) -> object:
    cursor = await conn.execute(f"PRAGMA {name}")
    row = await cursor.fetchone()
    return row[0]


class TestCreateConnection:
    """create_connection"""

    @pytest.mark.asyncio
    async def test_pragmas(self, tmp_path: Path) -> None:
        """WAL 모드, busy_timeout 적용"""
        conn = await create_connection(tmp_path / "ledger.db", busy_timeout_ms=1500)
        try:
            assert str(await pragma(conn, "journal_mode")).lower() == "wal"
            assert await pragma(conn, "busy_timeout") == 1500
            assert await pragma(conn, "foreign_keys") == 1
        finally:
            await conn.close()

    @pytest.mark.asyncio
    async def test_creates_missing_directories(self, tmp_path: Path) -> None:
        """data/ 디렉토리가 없어도 생성"""
        db_path = tmp_path / "data" / "nested" / "ledger.db"

        conn = await create_connection(db_path)
        await conn.close()

        assert db_path.exists()


@pytest_asyncio.fixture
async def adapter(tmp_path: Path) -> AsyncGenerator[SQLiteAdapter, None]:
    async with SQLiteAdapter(tmp_path / "ledger.db") as db:
        await db.execute("CREATE TABLE weights (label TEXT, grams TEXT)")
        yield db


async def labels(db: SQLiteAdapter) -> list[str]:
    rows = await db.fetchall("SELECT label FROM weights ORDER BY rowid")
    return [r[0] for r in rows]


class TestConnectionLifecycle:
    """연결 / 종료"""

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        """async with 블록 동안만 연결"""
        db = SQLiteAdapter(tmp_path / "ledger.db")
        assert not db.is_connected

        async with db:
            assert db.is_connected
            await db.connect()
            assert db.is_connected

        assert not db.is_connected
        await db.close()

    @pytest.mark.asyncio
    async def test_requires_connection(self, tmp_path: Path) -> None:
        """미연결 상태 실행/트랜잭션 → RuntimeError"""
        db = SQLiteAdapter(tmp_path / "ledger.db")

        with pytest.raises(RuntimeError, match="미연결"):
            await db.fetchone("SELECT 1")
        with pytest.raises(RuntimeError):
            async with db.transaction():
                pass

    @pytest.mark.asyncio
    async def test_fetchone_and_fetchall(self, adapter: SQLiteAdapter) -> None:
        """단일/전체 조회"""
        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO weights VALUES ('green', '220')")
            await conn.execute("INSERT INTO weights VALUES ('roasted', '185')")

        row = await adapter.fetchone("SELECT grams FROM weights WHERE label = ?", ("roasted",))
        missing = await adapter.fetchone("SELECT grams FROM weights WHERE label = ?", ("brew",))

        assert row == ("185",)
        assert missing is None
        assert await labels(adapter) == ["green", "roasted"]


class TestTransaction:
    """transaction()"""

    @pytest.mark.asyncio
    async def test_commit(self, adapter: SQLiteAdapter) -> None:
        """정상 종료 → 커밋, 다른 연결에서 보임"""
        async with adapter.transaction(immediate=True) as conn:
            assert adapter.in_transaction
            await conn.execute("INSERT INTO weights VALUES ('green', '220')")

        assert not adapter.in_transaction
        async with SQLiteAdapter(adapter.db_path) as reader:
            assert await labels(reader) == ["green"]

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, adapter: SQLiteAdapter) -> None:
        """예외 → 롤백 후 전파"""
        with pytest.raises(ValueError, match="scale"):
            async with adapter.transaction(immediate=True) as conn:
                await conn.execute("INSERT INTO weights VALUES ('green', '220')")
                raise ValueError("scale offline")

        assert await labels(adapter) == []
        assert not adapter.in_transaction

    @pytest.mark.asyncio
    async def test_nested_joins_outer(self, adapter: SQLiteAdapter) -> None:
        """안쪽 블록이 성공해도 바깥 실패 시 함께 롤백"""
        with pytest.raises(ValueError):
            async with adapter.transaction(immediate=True):
                async with adapter.transaction() as conn:
                    await conn.execute("INSERT INTO weights VALUES ('roasted', '185')")
                assert adapter.in_transaction
                raise ValueError("green write failed")

        assert await labels(adapter) == []

    @pytest.mark.asyncio
    async def test_serialized_across_tasks(self, adapter: SQLiteAdapter) -> None:
        """다른 Task는 앞 트랜잭션이 끝난 뒤 시작"""
        events: list[str] = []

        async def roast(label: str) -> None:
            async with adapter.transaction(immediate=True) as conn:
                events.append(f"{label}:begin")
                await asyncio.sleep(0)
                await conn.execute("INSERT INTO weights VALUES (?, '1')", (label,))
                events.append(f"{label}:end")

        await asyncio.gather(roast("batch-1"), roast("batch-2"))

        assert events == ["batch-1:begin", "batch-1:end", "batch-2:begin", "batch-2:end"]
        assert await labels(adapter) == ["batch-1", "batch-2"]

    @pytest.mark.asyncio
    async def test_other_task_not_in_transaction(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 보유 여부는 Task 단위"""
        async with adapter.transaction():
            assert adapter.in_transaction
            other = await asyncio.create_task(_in_transaction(adapter))

        assert other is False


async def _in_transaction(db: SQLiteAdapter) -> bool:
    return db.in_transaction


class TestInitLedgerSchema:
    """init_ledger_schema"""

    @pytest.mark.asyncio
    async def test_tables_and_triggers(self, tmp_path: Path) -> None:
        """원장/배치 카운터 테이블 + 불변 트리거, 재실행 안전"""
        async with SQLiteAdapter(tmp_path / "ledger.db") as db:
            await init_ledger_schema(db)
            await init_ledger_schema(db)

            assert await db.table_exists("ledger_entry")
            assert await db.table_exists("batch_counter")
            assert not await db.table_exists("weights")

            triggers = await db.fetchall(
                "SELECT name FROM sqlite_master WHERE type = 'trigger' AND tbl_name = 'ledger_entry'"
            )
            assert {r[0] for r in triggers} == {
                "trg_ledger_entry_no_update",
                "trg_ledger_entry_no_delete",
            }

    @pytest.mark.asyncio
    async def test_ledger_entry_columns(self, tmp_path: Path) -> None:
        """ledger_entry 컬럼"""
        async with SQLiteAdapter(tmp_path / "ledger.db") as db:
            await init_ledger_schema(db)

            rows = await db.fetchall("PRAGMA table_info(ledger_entry)")

            assert {r[1] for r in rows} == {
                "seq",
                "entry_id",
                "user_id",
                "action_type",
                "entity_type",
                "entity_id",
                "amount_change",
                "metadata_json",
                "created_at",
            }
