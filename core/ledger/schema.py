"""
원장 스키마 초기화

Web/스크립트 시작 시 자동으로 ledger_entry, batch_counter 테이블 생성.
CREATE IF NOT EXISTS 패턴으로 여러 번 호출해도 안전하게 동작.

ledger_entry는 append-only: UPDATE/DELETE는 트리거가 ABORT.
"""

import logging
from typing import TYPE_CHECKING

from core.ledger.types import ActionType, EntityType

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def _in_list(values: list[str]) -> str:
    """CHECK 제약용 IN 목록"""
    return ", ".join(f"'{value}'" for value in values)


ACTION_TYPE_CHECK = _in_list([a.value for a in ActionType])
ENTITY_TYPE_CHECK = _in_list([e.value for e in EntityType])


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """원장 스키마 초기화 (테이블 + 인덱스 + 트리거)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: 연결된 SQLiteAdapter 인스턴스
    """
    await _create_ledger_tables(db)
    await _create_ledger_indexes(db)
    await _create_immutability_triggers(db)
    await db.commit()
    logger.info("원장 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """원장 테이블 생성"""

    # ledger_entry 테이블 (append-only)
    await db.execute(f"""
        CREATE TABLE IF NOT EXISTS ledger_entry (
            seq              INTEGER PRIMARY KEY AUTOINCREMENT,
            entry_id         TEXT NOT NULL UNIQUE,
            user_id          TEXT NOT NULL,
            action_type      TEXT NOT NULL CHECK (action_type IN ({ACTION_TYPE_CHECK})),
            entity_type      TEXT NOT NULL CHECK (entity_type IN ({ENTITY_TYPE_CHECK})),
            entity_id        TEXT NOT NULL,
            amount_change    TEXT NOT NULL DEFAULT '0',
            metadata_json    TEXT NOT NULL DEFAULT '{{}}' CHECK (json_valid(metadata_json)),
            created_at       TEXT NOT NULL
        )
    """)

    # batch_counter 테이블 (사용자별 배치 번호)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS batch_counter (
            user_id            TEXT PRIMARY KEY,
            last_batch_number  INTEGER NOT NULL DEFAULT 0,
            updated_at         TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """조회 패턴별 인덱스 생성"""

    # 사용자 + 엔티티 유형 + 시간 (재고 집계, 원장 목록)
    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_ledger_entry_user_type_ts
        ON ledger_entry(user_id, entity_type, created_at)
    """)

    # 사용자 + 엔티티 (재생 커서)
    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_ledger_entry_user_entity
        ON ledger_entry(user_id, entity_id)
    """)


async def _create_immutability_triggers(db: "SQLiteAdapter") -> None:
    """UPDATE/DELETE 차단 트리거"""

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_ledger_entry_no_update
        BEFORE UPDATE ON ledger_entry
        BEGIN
            SELECT RAISE(ABORT, 'ledger_entry is append-only: UPDATE not allowed');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_ledger_entry_no_delete
        BEFORE DELETE ON ledger_entry
        BEGIN
            SELECT RAISE(ABORT, 'ledger_entry is append-only: DELETE not allowed');
        END
    """)
