"""
SQLite 어댑터

원장 DB 연결 관리.
WAL 모드: Web 서버가 쓰는 동안 감사 스크립트가 같은 파일을 읽을 수 있음.

주의: SQLite alias로 time, count 사용 금지 (예약어)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)

# 다른 프로세스가 쓰기 잠금을 잡고 있을 때 대기 시간
DEFAULT_BUSY_TIMEOUT_MS = 30_000

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


async def create_connection(
    db_path: Path | str,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
) -> aiosqlite.Connection:
    """원장 DB 연결 생성

    DB 파일의 상위 디렉토리가 없으면 만든 뒤 WAL 모드로 연다.

    Args:
        db_path: DB 파일 경로
        busy_timeout_ms: 잠금 대기 시간 (밀리초)

    Returns:
        PRAGMA가 적용된 aiosqlite 연결
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(str(path))
    for pragma in _PRAGMAS:
        await conn.execute(pragma)
    await conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")

    logger.info(
        "원장 DB 연결",
        extra={"db_path": str(path), "busy_timeout_ms": busy_timeout_ms},
    )
    return conn


class SQLiteAdapter:
    """원장 DB 어댑터

    연결 하나를 공유하고 쓰기 트랜잭션을 직렬화한다.
    같은 Task 안에서 transaction()을 중첩 호출하면 바깥 트랜잭션에 합류하므로
    서비스 계층이 저장소 호출 여러 개를 하나의 원자 단위로 묶을 수 있다.

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        async with db.transaction(immediate=True) as conn:
            await conn.execute("INSERT INTO ledger_entry ...")
    ```
    """

    def __init__(
        self,
        db_path: Path | str,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ):
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[Any] | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """현재 Task가 트랜잭션을 보유 중인지 여부"""
        return self._tx_owner is not None and self._tx_owner is asyncio.current_task()

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"원장 DB 미연결: {self.db_path}")
        return self._conn

    async def connect(self) -> None:
        if self._conn is None:
            self._conn = await create_connection(self.db_path, self.busy_timeout_ms)

    async def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        await conn.close()
        logger.info("원장 DB 연결 종료", extra={"db_path": str(self.db_path)})

    async def execute(self, sql: str, parameters: tuple[Any, ...] = ()) -> aiosqlite.Cursor:
        return await self._require_conn().execute(sql, parameters)

    async def fetchone(self, sql: str, parameters: tuple[Any, ...] = ()) -> tuple[Any, ...] | None:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, parameters: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """트랜잭션 밖에서 실행한 DDL 확정 (스키마 초기화용)"""
        await self._require_conn().commit()

    @asynccontextmanager
    async def transaction(self, immediate: bool = False) -> AsyncIterator[aiosqlite.Connection]:
        """쓰기 트랜잭션

        블록이 정상 종료하면 커밋, 예외(취소 포함)면 롤백 후 예외 전파.
        immediate=True면 BEGIN IMMEDIATE로 시작 시점에 파일 쓰기 잠금을 잡는다.
        """
        conn = self._require_conn()

        if self.in_transaction:
            yield conn
            return

        async with self._write_lock:
            self._tx_owner = asyncio.current_task()
            try:
                await conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
                try:
                    yield conn
                    await conn.commit()
                except BaseException:
                    await conn.rollback()
                    raise
            finally:
                self._tx_owner = None

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetchone(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return row is not None

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
