"""커피 이름 정규화 / 엔티티 ID 테스트"""

from uuid import UUID

import pytest

from core.utils.naming import (
    make_entity_id,
    make_green_entity_id,
    normalize_coffee_name,
)


class TestNormalizeCoffeeName:
    """normalize_coffee_name 테스트"""

    def test_strip_and_casefold(self) -> None:
        """앞뒤 공백 제거 + 소문자"""
        assert normalize_coffee_name("  Ethiopia Sidamo ") == "ethiopia sidamo"

    def test_collapse_whitespace(self) -> None:
        """연속 공백/탭 축약"""
        assert normalize_coffee_name("Kenya\t  AA") == "kenya aa"

    def test_casefold_non_ascii(self) -> None:
        """casefold는 ß 같은 문자도 정규화"""
        assert normalize_coffee_name("Straße") == normalize_coffee_name("STRASSE")

    def test_korean_name_unchanged(self) -> None:
        """한글 이름은 공백만 정규화"""
        assert normalize_coffee_name(" 에티오피아  시다모 ") == "에티오피아 시다모"


class TestMakeGreenEntityId:
    """make_green_entity_id 테스트"""

    def test_deterministic(self) -> None:
        """같은 사용자 + 같은 이름이면 같은 ID"""
        assert make_green_entity_id("u1", "Kenya AA") == make_green_entity_id("u1", "Kenya AA")

    def test_name_normalized(self) -> None:
        """대소문자/공백 차이는 같은 엔티티"""
        assert make_green_entity_id("u1", "Kenya AA") == make_green_entity_id("u1", " kenya   aa")

    def test_different_users(self) -> None:
        """사용자가 다르면 다른 ID"""
        assert make_green_entity_id("u1", "Kenya AA") != make_green_entity_id("u2", "Kenya AA")

    def test_valid_uuid(self) -> None:
        """UUID 형식"""
        assert UUID(make_green_entity_id("u1", "Kenya AA")).version == 5

    def test_empty_user_rejected(self) -> None:
        """빈 사용자 ID 거부"""
        with pytest.raises(ValueError):
            make_green_entity_id("", "Kenya AA")


class TestMakeEntityId:
    """make_entity_id 테스트"""

    def test_unique(self) -> None:
        """호출마다 새 ID"""
        ids = {make_entity_id() for _ in range(100)}
        assert len(ids) == 100

    def test_uuid4(self) -> None:
        """UUID v4"""
        assert UUID(make_entity_id()).version == 4
