"""
Ledger 모델 테스트

Payload 직렬화/역직렬화, LedgerEntry 파생 속성
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.ledger.models import (
    AdjustmentPayload,
    ConsumptionPayload,
    EquipmentPayload,
    GreenPurchasePayload,
    LedgerEntry,
    RoastCompletedPayload,
    SchedulePayload,
    payload_from_dict,
)
from core.ledger.types import (
    ActionType,
    ConsumptionType,
    EntityType,
    EquipmentType,
    RoastLevel,
    SchedulePriority,
)


def _roast_payload() -> RoastCompletedPayload:
    return RoastCompletedPayload(
        name="Ethiopia Sidamo",
        green_coffee_name="Ethiopia Sidamo",
        roast_date=date(2026, 10, 19),
        roast_level=RoastLevel.MEDIUM,
        green_weight=Decimal("220"),
        roasted_weight=Decimal("185"),
        batch_number=3,
        weight_loss_percentage=Decimal("15.90909090909090909090909091"),
        roast_profile={"first_crack": "9:30"},
    )


class TestPayloadSerialization:
    """Payload to_dict / from_dict 테스트"""

    def test_to_dict_json_compatible(self) -> None:
        """Decimal/date/Enum은 문자열로"""
        data = _roast_payload().to_dict()

        assert data["green_weight"] == "220"
        assert data["roast_date"] == "2026-10-19"
        assert data["roast_level"] == "medium"
        assert data["batch_number"] == 3
        assert data["roast_profile"] == {"first_crack": "9:30"}

    def test_from_dict_restores_types(self) -> None:
        """타입 힌트에 맞게 복원"""
        payload = _roast_payload()
        restored = RoastCompletedPayload.from_dict(payload.to_dict())

        assert restored == payload
        assert isinstance(restored.roasted_weight, Decimal)
        assert isinstance(restored.roast_date, date)
        assert restored.roast_level is RoastLevel.MEDIUM

    def test_unknown_keys_ignored(self) -> None:
        """알 수 없는 키는 무시"""
        payload = ConsumptionPayload.from_dict(
            {"name": "Kenya AA", "consumption_type": "gift", "legacy_field": 1}
        )
        assert payload.consumption_type == ConsumptionType.GIFT

    def test_optional_none_preserved(self) -> None:
        """Optional None 유지"""
        payload = GreenPurchasePayload.from_dict({"name": "Kenya AA", "origin": "Kenya", "cost": None})
        assert payload.cost is None
        assert payload.purchase_date is None

    def test_schedule_payload_flags(self) -> None:
        """스케줄 플래그 / datetime 복원"""
        deleted_at = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
        payload = SchedulePayload(
            coffee_name="Kenya AA",
            scheduled_date=date(2026, 10, 20),
            green_weight=Decimal("200"),
            target_roast_level=RoastLevel.LIGHT,
            deleted=True,
            deleted_at=deleted_at,
        )
        data = payload.to_dict()
        assert data["schedule_entry"] is True
        assert data["priority"] == "medium"

        restored = SchedulePayload.from_dict(data)
        assert restored.deleted is True
        assert restored.deleted_at == deleted_at
        assert restored.priority is SchedulePriority.MEDIUM

    def test_equipment_settings_dict(self) -> None:
        """장비 설정 딕셔너리 그대로"""
        payload = EquipmentPayload.from_dict(
            {"equipment_type": "grinder", "brand": "Comandante", "model": "C40", "settings": {"clicks": 24}}
        )
        assert payload.equipment_type is EquipmentType.GRINDER
        assert payload.settings == {"clicks": 24}


class TestPayloadFromDict:
    """payload_from_dict 테스트"""

    def test_selects_type_by_action(self) -> None:
        """action_type별 Payload 선택"""
        assert isinstance(
            payload_from_dict(ActionType.GREEN_ADJUSTMENT, {"name": "x", "reason": "spillage"}),
            AdjustmentPayload,
        )
        assert isinstance(
            payload_from_dict("roast_edited", {
                "coffee_name": "x",
                "scheduled_date": "2026-10-20",
                "green_weight": "200",
                "target_roast_level": "dark",
            }),
            SchedulePayload,
        )

    def test_unknown_action(self) -> None:
        """알 수 없는 action_type"""
        with pytest.raises(ValueError):
            payload_from_dict("roast_cancelled", {})


class TestLedgerEntry:
    """LedgerEntry 테스트"""

    def _entry(self, **kwargs) -> LedgerEntry:
        values = dict(
            entry_id="e1",
            user_id="u1",
            action_type=ActionType.ROAST_COMPLETED,
            entity_type=EntityType.ROASTED_COFFEE,
            entity_id="r1",
            amount_change=Decimal("185"),
            metadata=_roast_payload(),
        )
        values.update(kwargs)
        return LedgerEntry(**values)

    def test_unstored(self) -> None:
        """저장 전 엔트리"""
        entry = self._entry()
        assert not entry.is_stored
        assert entry.order_key == ("", 0)

    def test_stored_copy(self) -> None:
        """stored()는 새 엔트리 반환"""
        created = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
        entry = self._entry()
        stored = entry.stored(created, 7)

        assert stored.is_stored
        assert stored.seq == 7
        assert stored.order_key == (created.isoformat(), 7)
        assert not entry.is_stored

    def test_frozen(self) -> None:
        """불변"""
        entry = self._entry()
        with pytest.raises(AttributeError):
            entry.amount_change = Decimal("0")  # type: ignore

    def test_coffee_name(self) -> None:
        """metadata name / coffee_name"""
        assert self._entry().coffee_name == "Ethiopia Sidamo"
        equipment = self._entry(
            action_type=ActionType.EQUIPMENT_ADDED,
            entity_type=EntityType.EQUIPMENT,
            metadata=EquipmentPayload(EquipmentType.ROASTER, "Aillio", "Bullet"),
        )
        assert equipment.coffee_name is None

    def test_dict_roundtrip(self) -> None:
        """to_dict → from_dict"""
        entry = self._entry().stored(datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc), 1)
        data = entry.to_dict()

        assert data["amount_change"] == "185"
        assert data["metadata"]["batch_number"] == 3
        assert LedgerEntry.from_dict(data) == entry
