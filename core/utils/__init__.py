"""
유틸리티 패키지

커피 이름 정규화, 엔티티 ID 생성, 타임존 처리 등 공통 유틸리티
"""

from core.utils.naming import (
    make_entity_id,
    make_green_entity_id,
    normalize_coffee_name,
)
from core.utils.timezone import (
    days_between,
    now_utc,
    parse_date,
    parse_utc,
    to_utc,
)

__all__ = [
    "make_entity_id",
    "make_green_entity_id",
    "normalize_coffee_name",
    "days_between",
    "now_utc",
    "parse_date",
    "parse_utc",
    "to_utc",
]
