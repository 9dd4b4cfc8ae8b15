"""
어댑터 레이어

외부 저장소와의 연동을 담당.
원장은 SQLite(WAL) 파일 하나에 기록.
"""

from adapters.db import SQLiteAdapter, create_connection

__all__ = [
    "SQLiteAdapter",
    "create_connection",
]
