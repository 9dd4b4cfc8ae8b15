"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
요청마다 SQLite 연결을 열고 LedgerService를 구성.
"""

from typing import AsyncGenerator

from fastapi import Depends

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.ledger.service import LedgerService


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


async def get_db(
    settings: Settings = Depends(get_app_settings),
) -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (쓰기 가능)

    원장 기록과 조회 모두 이 연결을 사용.
    """
    async with SQLiteAdapter(settings.db_path) as db:
        yield db


def get_ledger_service(
    db: SQLiteAdapter = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> LedgerService:
    """요청 단위 LedgerService"""
    return LedgerService.from_db(db, settings.config)
