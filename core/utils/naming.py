"""
커피 이름 정규화 및 엔티티 ID 생성

같은 이름의 커피는 대소문자/공백 차이와 무관하게 하나의 논리 엔티티로 묶임.
"""

import re
from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

# 생두 엔티티 ID 네임스페이스 (고정값, 변경 시 기존 ID와 불일치)
GREEN_COFFEE_NAMESPACE: UUID = uuid5(NAMESPACE_URL, "roastledger:green_coffee")

_WHITESPACE = re.compile(r"\s+")


def normalize_coffee_name(name: str) -> str:
    """집계용 커피 키 생성

    앞뒤 공백 제거, 연속 공백 축약, casefold.

    Example:
        >>> normalize_coffee_name("  Ethiopia   SIDAMO ")
        'ethiopia sidamo'
    """
    return _WHITESPACE.sub(" ", name).strip().casefold()


def make_green_entity_id(user_id: str, coffee_name: str) -> str:
    """결정적 생두 엔티티 ID 생성

    (user_id, 정규화된 이름)이 같으면 항상 같은 ID → 반복 구매가 하나의 엔티티에 누적됨.

    Example:
        >>> make_green_entity_id("u1", "Kenya AA") == make_green_entity_id("u1", "kenya  aa")
        True
    """
    if not user_id:
        raise ValueError("user_id는 비어 있을 수 없습니다")
    return str(uuid5(GREEN_COFFEE_NAMESPACE, f"{user_id}:{normalize_coffee_name(coffee_name)}"))


def make_entity_id() -> str:
    """로스팅 배치, 스케줄, 브루, 장비용 임의 엔티티 ID"""
    return str(uuid4())
