"""
원장 저장소

append-only 원장 엔트리 저장 및 조회.
UPDATE/DELETE 경로는 존재하지 않음 (스키마 트리거로도 차단).
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Iterable

from core.ledger.errors import PersistenceError
from core.ledger.models import LedgerEntry, payload_from_dict
from core.ledger.types import ActionType, EntityType
from core.utils.timezone import now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = (
    "seq, entry_id, user_id, action_type, entity_type, entity_id, "
    "amount_change, metadata_json, created_at"
)


@dataclass
class EntryFilter:
    """원장 조회 필터

    Args:
        action_types: 행위 유형 (비어 있으면 전체)
        entity_types: 엔티티 유형 (비어 있으면 전체)
        entity_id: 특정 엔티티
        metadata: 메타데이터 동등 조건 (예: {"schedule_entry": True})
        ascending: True면 오래된 순 (기본: 최신 순)
    """

    action_types: list[ActionType | str] = field(default_factory=list)
    entity_types: list[EntityType | str] = field(default_factory=list)
    entity_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    ascending: bool = False


def _sql_value(value: Any) -> Any:
    """json_extract 비교용 값 (bool → 0/1)"""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (ActionType, EntityType)):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    return value


class EntryStore:
    """원장 엔트리 저장소

    created_at/seq는 저장 시점에 부여되며 재생 순서는 (created_at, seq).

    Args:
        db: SQLite 어댑터
        clock: 타임스탬프 함수 (기본: UTC 현재 시각)

    사용 예시:
    ```python
    store = EntryStore(db)
    stored = await store.append(entry)
    history = await store.query_by_entity("user-1", stored.entity_id)
    ```
    """

    supports_transactions: bool = True

    def __init__(self, db: SQLiteAdapter, clock: Callable[[], datetime] = now_utc):
        self.db = db
        self._clock = clock

    # -------------------------------------------------------------------------
    # 오류 변환
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _translate_errors(self, operation: str) -> AsyncIterator[None]:
        """sqlite 예외 → PersistenceError

        - IntegrityError (CHECK, UNIQUE, 불변성 트리거): 재시도 불가
        - OperationalError (lock, busy, I/O): 재시도 가능
        """
        if not self.db.is_connected:
            raise PersistenceError(f"{operation}: DB 연결 없음", transient=True)
        try:
            yield
        except sqlite3.IntegrityError as e:
            raise PersistenceError(f"{operation}: 제약 조건 위반 ({e})", transient=False, cause=e) from e
        except sqlite3.OperationalError as e:
            raise PersistenceError(f"{operation}: 일시적 저장소 오류 ({e})", transient=True, cause=e) from e
        except sqlite3.DatabaseError as e:
            raise PersistenceError(f"{operation}: 저장소 오류 ({e})", transient=False, cause=e) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """쓰기 트랜잭션 (BEGIN IMMEDIATE)

        읽고-쓰는 시퀀스(조정, 배치 번호 할당)를 직렬화.
        같은 Task 안에서 중첩되면 바깥 트랜잭션에 합류.
        """
        async with self._translate_errors("transaction"):
            async with self.db.transaction(immediate=True):
                yield

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def append(self, entry: LedgerEntry) -> LedgerEntry:
        """엔트리 1건 저장

        Returns:
            created_at/seq가 채워진 엔트리

        Raises:
            PersistenceError: 제약 위반(transient=False), 연결/잠금 오류(transient=True)
        """
        stored = await self.append_many([entry])
        return stored[0]

    async def append_many(self, entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
        """여러 엔트리를 하나의 트랜잭션으로 저장 (전부 저장 또는 전부 실패)"""
        entries = list(entries)
        if not entries:
            return []

        stored: list[LedgerEntry] = []
        async with self.transaction():
            async with self._translate_errors("append"):
                created_at = self._clock()
                for entry in entries:
                    if entry.is_stored:
                        raise PersistenceError(
                            f"이미 저장된 엔트리입니다: {entry.entry_id}", transient=False
                        )
                    cursor = await self.db.execute(
                        """
                        INSERT INTO ledger_entry (
                            entry_id, user_id, action_type, entity_type, entity_id,
                            amount_change, metadata_json, created_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            entry.entry_id,
                            entry.user_id,
                            _sql_value(entry.action_type),
                            _sql_value(entry.entity_type),
                            entry.entity_id,
                            str(entry.amount_change),
                            json.dumps(entry.metadata.to_dict(), ensure_ascii=False),
                            created_at.isoformat(timespec="microseconds"),
                        ),
                    )
                    stored.append(entry.stored(created_at, cursor.lastrowid))

        for entry in stored:
            logger.debug(
                "원장 엔트리 저장",
                extra={
                    "entry_id": entry.entry_id,
                    "action_type": entry.action_type.value,
                    "entity_id": entry.entity_id,
                    "seq": entry.seq,
                },
            )
        return stored

    async def next_batch_number(self, user_id: str, requested: int | None = None) -> int:
        """사용자별 배치 번호 할당 (원자적 upsert-increment)

        requested가 주어지면 그 번호를 쓰고 카운터를 max(현재, requested)로 올림.
        로스팅 엔트리와 같은 트랜잭션 안에서 호출해야 롤백 시 번호도 반환됨.
        """
        async with self.transaction():
            async with self._translate_errors("next_batch_number"):
                if requested is not None:
                    await self.db.execute(
                        """
                        INSERT INTO batch_counter (user_id, last_batch_number)
                        VALUES (?, ?)
                        ON CONFLICT(user_id) DO UPDATE SET
                            last_batch_number = MAX(last_batch_number, excluded.last_batch_number),
                            updated_at = datetime('now')
                        """,
                        (user_id, requested),
                    )
                    return requested

                await self.db.execute(
                    """
                    INSERT INTO batch_counter (user_id, last_batch_number)
                    VALUES (?, 1)
                    ON CONFLICT(user_id) DO UPDATE SET
                        last_batch_number = last_batch_number + 1,
                        updated_at = datetime('now')
                    """,
                    (user_id,),
                )
                row = await self.db.fetchone(
                    "SELECT last_batch_number FROM batch_counter WHERE user_id = ?",
                    (user_id,),
                )
        assert row is not None
        return int(row[0])

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def query_by_user(
        self,
        user_id: str,
        entry_filter: EntryFilter | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """사용자 원장 조회 (기본: 최신 순)

        Args:
            user_id: 사용자 ID
            entry_filter: 조회 필터
            limit: 최대 개수 (None이면 전체)
            offset: 건너뛸 개수
        """
        entry_filter = entry_filter or EntryFilter()
        conditions = ["user_id = ?"]
        params: list[Any] = [user_id]

        if entry_filter.action_types:
            conditions.append(
                f"action_type IN ({', '.join('?' for _ in entry_filter.action_types)})"
            )
            params.extend(_sql_value(a) for a in entry_filter.action_types)
        if entry_filter.entity_types:
            conditions.append(
                f"entity_type IN ({', '.join('?' for _ in entry_filter.entity_types)})"
            )
            params.extend(_sql_value(e) for e in entry_filter.entity_types)
        if entry_filter.entity_id is not None:
            conditions.append("entity_id = ?")
            params.append(entry_filter.entity_id)
        for key, value in entry_filter.metadata.items():
            conditions.append("json_extract(metadata_json, ?) = ?")
            params.extend([f"$.{key}", _sql_value(value)])

        direction = "ASC" if entry_filter.ascending else "DESC"
        # LIMIT -1: 제한 없음
        params.extend([limit if limit is not None else -1, offset])

        async with self._translate_errors("query_by_user"):
            rows = await self.db.fetchall(
                f"""
                SELECT {ENTRY_COLUMNS}
                FROM ledger_entry
                WHERE {' AND '.join(conditions)}
                ORDER BY created_at {direction}, seq {direction}
                LIMIT ? OFFSET ?
                """,
                tuple(params),
            )
        return [self._row_to_entry(row) for row in rows]

    async def query_by_entity(self, user_id: str, entity_id: str) -> list[LedgerEntry]:
        """엔티티 재생 커서 (오래된 순)"""
        async with self._translate_errors("query_by_entity"):
            rows = await self.db.fetchall(
                f"""
                SELECT {ENTRY_COLUMNS}
                FROM ledger_entry
                WHERE user_id = ? AND entity_id = ?
                ORDER BY created_at ASC, seq ASC
                """,
                (user_id, entity_id),
            )
        return [self._row_to_entry(row) for row in rows]

    async def count_by_user(self, user_id: str) -> int:
        """사용자 엔트리 수"""
        async with self._translate_errors("count_by_user"):
            row = await self.db.fetchone(
                "SELECT COUNT(*) FROM ledger_entry WHERE user_id = ?",
                (user_id,),
            )
        return int(row[0]) if row else 0

    def _row_to_entry(self, row: tuple[Any, ...]) -> LedgerEntry:
        """DB 행 → LedgerEntry"""
        action_type = ActionType(row[3])
        return LedgerEntry(
            entry_id=row[1],
            user_id=row[2],
            action_type=action_type,
            entity_type=EntityType(row[4]),
            entity_id=row[5],
            amount_change=Decimal(row[6]),
            metadata=payload_from_dict(action_type, json.loads(row[7])),
            created_at=datetime.fromisoformat(row[8]),
            seq=row[0],
        )
