"""
Ledger 도메인 모델

- 행위별 메타데이터 Payload (action_type마다 하나의 타입)
- LedgerEntry: 불변 원장 엔트리
- *Input: 폼/API에서 들어오는 행위 요청
"""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from core.ledger.types import (
    ActionType,
    ConsumptionType,
    EntityType,
    EquipmentType,
    RoastLevel,
    SchedulePriority,
)


# =========================================================================
# 직렬화 헬퍼
# =========================================================================


def _encode(value: Any) -> Any:
    """Payload 필드 → JSON 호환 값"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def _decode(hint: Any, value: Any) -> Any:
    """JSON 값 → 타입 힌트에 맞는 Python 값"""
    if value is None:
        return None

    # X | None 은 X로 취급
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        candidates = [arg for arg in typing.get_args(hint) if arg is not type(None)]
        hint = candidates[0] if len(candidates) == 1 else Any

    # dict[str, Any] 등 제네릭은 그대로
    if typing.get_origin(hint) is not None:
        return value
    if hint is Decimal:
        return Decimal(str(value))
    if hint is datetime:
        return datetime.fromisoformat(value) if isinstance(value, str) else value
    if hint is date:
        return date.fromisoformat(value[:10]) if isinstance(value, str) else value
    if isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    if hint is bool:
        return bool(value)
    if hint is int and not isinstance(value, bool):
        return int(value)
    return value


class _Payload:
    """메타데이터 Payload 공통 직렬화"""

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (metadata_json 저장용)"""
        return {f.name: _encode(getattr(self, f.name)) for f in fields(self)}  # type: ignore[arg-type]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Any:
        """딕셔너리에서 생성 (알 수 없는 키는 무시)"""
        hints = typing.get_type_hints(cls)
        kwargs = {
            f.name: _decode(hints[f.name], data[f.name])
            for f in fields(cls)  # type: ignore[arg-type]
            if f.name in data
        }
        return cls(**kwargs)


# =========================================================================
# 행위별 메타데이터
# =========================================================================


@dataclass(frozen=True)
class GreenPurchasePayload(_Payload):
    """생두 구매 메타데이터"""

    name: str
    origin: str
    farm: str | None = None
    variety: str | None = None
    process: str | None = None
    cost: Decimal | None = None
    purchase_date: date | None = None
    supplier: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RoastCompletedPayload(_Payload):
    """로스팅 완료 메타데이터

    weight_loss_percentage는 반올림하지 않은 Decimal (질량 보존 검증용).
    """

    name: str
    green_coffee_name: str
    roast_date: date
    roast_level: RoastLevel
    green_weight: Decimal
    roasted_weight: Decimal
    batch_number: int
    weight_loss_percentage: Decimal
    roast_notes: str | None = None
    equipment_id: str | None = None
    roast_profile: dict[str, Any] | None = None


@dataclass(frozen=True)
class ConsumptionPayload(_Payload):
    """소비 메타데이터

    source_entry_id: 소비를 유발한 엔트리 (로스팅 완료, 브루 기록)
    """

    name: str
    consumption_type: ConsumptionType
    notes: str | None = None
    source_entry_id: str | None = None


@dataclass(frozen=True)
class AdjustmentPayload(_Payload):
    """재고 조정 메타데이터

    old_amount: 기록 시점의 실제 잔액 (트랜잭션 안에서 재조회)
    requested_old_amount: 호출자가 보고 있던 잔액
    compensates_entry_id: 보정 엔트리인 경우 되돌린 엔트리
    """

    name: str
    reason: str
    old_amount: Decimal | None = None
    new_amount: Decimal | None = None
    notes: str | None = None
    requested_old_amount: Decimal | None = None
    compensates_entry_id: str | None = None


@dataclass(frozen=True)
class SchedulePayload(_Payload):
    """로스팅 스케줄 레코드 (매 엔트리마다 전체 레코드를 기록)"""

    coffee_name: str
    scheduled_date: date
    green_weight: Decimal
    target_roast_level: RoastLevel
    green_coffee_name: str | None = None
    equipment_id: str | None = None
    notes: str | None = None
    priority: SchedulePriority = SchedulePriority.MEDIUM
    schedule_entry: bool = True
    completed: bool = False
    completed_date: date | None = None
    deleted: bool = False
    deleted_at: datetime | None = None
    actual_roasted_weight: Decimal | None = None
    actual_roast_level: RoastLevel | None = None
    roast_notes: str | None = None


@dataclass(frozen=True)
class BrewPayload(_Payload):
    """브루 기록 메타데이터"""

    coffee_name: str
    brew_method: str
    coffee_amount: Decimal
    water_amount: Decimal
    brew_ratio: Decimal
    grind_setting: str | None = None
    brew_time: int | None = None
    water_temp: Decimal | None = None
    rating: int | None = None
    notes: str | None = None
    equipment_id: str | None = None


@dataclass(frozen=True)
class EquipmentPayload(_Payload):
    """장비 메타데이터"""

    equipment_type: EquipmentType
    brand: str
    model: str
    settings: dict[str, Any] | None = None
    is_active: bool = True


Payload = Union[
    GreenPurchasePayload,
    RoastCompletedPayload,
    ConsumptionPayload,
    AdjustmentPayload,
    SchedulePayload,
    BrewPayload,
    EquipmentPayload,
]

PAYLOAD_TYPES: dict[ActionType, type] = {
    ActionType.GREEN_PURCHASE: GreenPurchasePayload,
    ActionType.ROAST_COMPLETED: RoastCompletedPayload,
    ActionType.CONSUMPTION: ConsumptionPayload,
    ActionType.GREEN_ADJUSTMENT: AdjustmentPayload,
    ActionType.ROASTED_ADJUSTMENT: AdjustmentPayload,
    ActionType.ROAST_SCHEDULED: SchedulePayload,
    ActionType.ROAST_EDITED: SchedulePayload,
    ActionType.ROAST_DELETED: SchedulePayload,
    ActionType.BREW_LOGGED: BrewPayload,
    ActionType.EQUIPMENT_ADDED: EquipmentPayload,
    ActionType.EQUIPMENT_UPDATED: EquipmentPayload,
}


def payload_from_dict(action_type: ActionType | str, data: dict[str, Any]) -> Payload:
    """action_type에 맞는 Payload로 역직렬화

    Example:
        >>> p = payload_from_dict("consumption", {"name": "Kenya AA", "consumption_type": "brew"})
        >>> p.consumption_type
        <ConsumptionType.BREW: 'brew'>
    """
    payload_cls = PAYLOAD_TYPES[ActionType(action_type)]
    return payload_cls.from_dict(data)


# =========================================================================
# LedgerEntry
# =========================================================================


@dataclass(frozen=True)
class LedgerEntry:
    """원장 엔트리 (불변)

    created_at, seq는 EntryStore가 저장 시점에 부여.
    저장 전 엔트리는 둘 다 None.
    """

    entry_id: str
    user_id: str
    action_type: ActionType
    entity_type: EntityType
    entity_id: str
    amount_change: Decimal
    metadata: Payload
    created_at: datetime | None = None
    seq: int | None = None

    @property
    def is_stored(self) -> bool:
        """저장 여부"""
        return self.seq is not None

    @property
    def coffee_name(self) -> str | None:
        """엔트리가 가리키는 커피 이름 (장비 엔트리는 None)"""
        name = getattr(self.metadata, "name", None)
        if name is None:
            name = getattr(self.metadata, "coffee_name", None)
        return name

    @property
    def order_key(self) -> tuple[str, int]:
        """재생 순서 키 (created_at, seq)"""
        created = self.created_at.isoformat() if self.created_at else ""
        return (created, self.seq or 0)

    def stored(self, created_at: datetime, seq: int) -> LedgerEntry:
        """저장 결과를 반영한 새 엔트리"""
        return replace(self, created_at=created_at, seq=seq)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (API 응답, 감사 출력용)"""
        return {
            "entry_id": self.entry_id,
            "user_id": self.user_id,
            "action_type": self.action_type.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "amount_change": str(self.amount_change),
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "seq": self.seq,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> LedgerEntry:
        """딕셔너리에서 생성"""
        action_type = ActionType(data["action_type"])
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return LedgerEntry(
            entry_id=data["entry_id"],
            user_id=data["user_id"],
            action_type=action_type,
            entity_type=EntityType(data["entity_type"]),
            entity_id=data["entity_id"],
            amount_change=Decimal(str(data["amount_change"])),
            metadata=payload_from_dict(action_type, data.get("metadata") or {}),
            created_at=created_at,
            seq=data.get("seq"),
        )


# =========================================================================
# 행위 요청 (Input)
# =========================================================================
# 수량은 Decimal 변환 가능한 값(int, str, Decimal)을 받고 EntryFactory에서 검증.


@dataclass
class GreenPurchaseInput:
    """생두 구매 요청"""

    name: str
    origin: str
    weight: Decimal | int | str
    farm: str | None = None
    variety: str | None = None
    process: str | None = None
    cost: Decimal | int | str | None = None
    purchase_date: date | str | None = None
    supplier: str | None = None
    notes: str | None = None


@dataclass
class RoastCompletedInput:
    """로스팅 완료 요청

    name을 생략하면 생두 이름을 원두 이름으로 사용.
    batch_number를 생략하면 사용자별 카운터에서 할당.
    """

    green_coffee_name: str
    roast_level: RoastLevel | str
    green_weight: Decimal | int | str
    roasted_weight: Decimal | int | str
    name: str | None = None
    roast_date: date | str | None = None
    batch_number: int | None = None
    roast_notes: str | None = None
    equipment_id: str | None = None
    roast_profile: dict[str, Any] | None = None


@dataclass
class ConsumptionInput:
    """소비 요청 (기본: 원두 브루 소비)"""

    coffee_name: str
    amount: Decimal | int | str
    entity_type: EntityType | str = EntityType.ROASTED_COFFEE
    consumption_type: ConsumptionType | str = ConsumptionType.BREW
    notes: str | None = None


@dataclass
class AdjustmentInput:
    """재고 조정 요청

    old_amount: 호출자가 화면에서 본 잔액 (기록용, 실제 계산에는 현재 잔액 사용)
    """

    coffee_name: str
    new_amount: Decimal | int | str
    reason: str
    old_amount: Decimal | int | str | None = None
    notes: str | None = None


@dataclass
class ScheduleInput:
    """로스팅 스케줄 생성 요청"""

    coffee_name: str
    scheduled_date: date | str
    green_weight: Decimal | int | str
    target_roast_level: RoastLevel | str
    green_coffee_name: str | None = None
    equipment_id: str | None = None
    notes: str | None = None
    priority: SchedulePriority | str = SchedulePriority.MEDIUM


@dataclass
class SchedulePatch:
    """로스팅 스케줄 수정 요청 (None인 필드는 유지)"""

    coffee_name: str | None = None
    scheduled_date: date | str | None = None
    green_weight: Decimal | int | str | None = None
    target_roast_level: RoastLevel | str | None = None
    green_coffee_name: str | None = None
    equipment_id: str | None = None
    notes: str | None = None
    priority: SchedulePriority | str | None = None


@dataclass
class RoastOutcome:
    """스케줄 완료 시 실제 로스팅 결과"""

    actual_roasted_weight: Decimal | int | str | None = None
    actual_roast_level: RoastLevel | str | None = None
    roast_notes: str | None = None
    completed_date: date | str | None = None


@dataclass
class BrewInput:
    """브루 기록 요청"""

    coffee_name: str
    brew_method: str
    coffee_amount: Decimal | int | str
    water_amount: Decimal | int | str
    grind_setting: str | None = None
    brew_time: int | None = None
    water_temp: Decimal | int | str | None = None
    rating: int | None = None
    notes: str | None = None
    equipment_id: str | None = None


@dataclass
class EquipmentInput:
    """장비 등록/수정 요청"""

    equipment_type: EquipmentType | str
    brand: str
    model: str
    settings: dict[str, Any] | None = None
    is_active: bool = True
