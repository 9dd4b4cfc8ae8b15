"""
엔트리 생성기

행위 요청(Input)을 검증하고 원장 엔트리로 변환.
I/O 없음: 저장은 호출자(LedgerService)의 책임.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, TypeVar
from uuid import uuid4

from core.ledger.errors import ValidationError
from core.ledger.models import (
    AdjustmentInput,
    AdjustmentPayload,
    BrewInput,
    BrewPayload,
    ConsumptionInput,
    ConsumptionPayload,
    EquipmentInput,
    EquipmentPayload,
    GreenPurchaseInput,
    GreenPurchasePayload,
    LedgerEntry,
    RoastCompletedInput,
    RoastCompletedPayload,
    RoastOutcome,
    ScheduleInput,
    SchedulePatch,
    SchedulePayload,
)
from core.ledger.types import (
    ADJUSTMENT_ACTIONS,
    ADJUSTMENT_REASONS,
    INVENTORY_ENTITY_TYPES,
    SCHEDULE_KIND_ACTIONS,
    ActionType,
    ConsumptionType,
    EntityType,
    EquipmentType,
    RoastLevel,
    ScheduleActionKind,
    SchedulePriority,
)
from core.utils.naming import make_entity_id, make_green_entity_id
from core.utils.timezone import now_utc, parse_date

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

BREW_RATIO_QUANT = Decimal("0.1")


# =========================================================================
# 입력 정규화 헬퍼
# =========================================================================


def _require_text(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, "필수 입력값입니다")
    return str(value).strip()


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_decimal(
    field: str,
    value: Any,
    *,
    positive: bool = False,
    non_negative: bool = False,
) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(field, "숫자가 필요합니다")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(field, f"숫자가 아닙니다: {value!r}") from e
    if not number.is_finite():
        raise ValidationError(field, f"유한한 숫자가 아닙니다: {value!r}")
    if positive and number <= 0:
        raise ValidationError(field, f"0보다 커야 합니다: {number}")
    if non_negative and number < 0:
        raise ValidationError(field, f"음수일 수 없습니다: {number}")
    return number


def _optional_decimal(field: str, value: Any, **kwargs: bool) -> Decimal | None:
    if value is None:
        return None
    return _to_decimal(field, value, **kwargs)


def _to_enum(enum_cls: type[E], field: str, value: Any) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"허용되지 않는 값: {value!r} (허용: {allowed})") from e


def _to_date(field: str, value: Any) -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(field, f"날짜 형식이 아닙니다: {value!r}") from e


def _require_batch_number(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("batch_number", f"1 이상의 정수여야 합니다: {value!r}")
    return value


def _new_entry_id() -> str:
    return str(uuid4())


def weight_loss_percentage(green_weight: Decimal, roasted_weight: Decimal) -> Decimal:
    """로스팅 감량률 (%)

    (생두 - 원두) / 생두 * 100, 반올림 없음.

    Example:
        >>> round(weight_loss_percentage(Decimal("220"), Decimal("185")), 2)
        Decimal('15.91')
    """
    return (green_weight - roasted_weight) / green_weight * Decimal("100")


class EntryFactory:
    """원장 엔트리 생성기

    모든 builder는 검증 실패 시 ValidationError(field)를 던지고
    입력을 임의로 보정하지 않음.

    Args:
        clock: 현재 시각 함수 (기본 날짜 계산용, 테스트에서 주입)

    사용 예시:
    ```python
    factory = EntryFactory()
    entry = factory.build_green_purchase("user-1", GreenPurchaseInput(
        name="Ethiopia Sidamo", origin="Ethiopia", weight=1000,
    ))
    ```
    """

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock

    def today(self) -> date:
        """clock 기준 오늘 날짜"""
        return self._clock().date()

    # -------------------------------------------------------------------------
    # 재고 이동
    # -------------------------------------------------------------------------

    def build_green_purchase(self, user_id: str, data: GreenPurchaseInput) -> LedgerEntry:
        """생두 구매 → green_coffee (+weight)

        같은 이름(정규화 기준)의 반복 구매는 같은 entity_id에 누적.
        """
        user_id = _require_text("user_id", user_id)
        name = _require_text("name", data.name)
        origin = _require_text("origin", data.origin)
        weight = _to_decimal("weight", data.weight, positive=True)

        payload = GreenPurchasePayload(
            name=name,
            origin=origin,
            farm=_optional_text(data.farm),
            variety=_optional_text(data.variety),
            process=_optional_text(data.process),
            cost=_optional_decimal("cost", data.cost, non_negative=True),
            purchase_date=(
                _to_date("purchase_date", data.purchase_date)
                if data.purchase_date is not None
                else self.today()
            ),
            supplier=_optional_text(data.supplier),
            notes=_optional_text(data.notes),
        )
        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ActionType.GREEN_PURCHASE,
            entity_type=EntityType.GREEN_COFFEE,
            entity_id=make_green_entity_id(user_id, name),
            amount_change=weight,
            metadata=payload,
        )

    def validate_roast(self, data: RoastCompletedInput) -> tuple[Decimal, Decimal]:
        """로스팅 입력 검증 (배치 번호 할당 전에 호출)

        Returns:
            (green_weight, roasted_weight)

        Raises:
            ValidationError: 생두 이름 누락, 잘못된 roast_level/roast_date/batch_number,
                생두 무게 <= 0 또는 원두 무게 > 생두 무게
        """
        _require_text("green_coffee_name", data.green_coffee_name)
        _to_enum(RoastLevel, "roast_level", data.roast_level)
        if data.roast_date is not None:
            _to_date("roast_date", data.roast_date)
        if data.batch_number is not None:
            _require_batch_number(data.batch_number)
        green_weight = _to_decimal("green_weight", data.green_weight, positive=True)
        roasted_weight = _to_decimal("roasted_weight", data.roasted_weight, positive=True)
        if roasted_weight > green_weight:
            raise ValidationError(
                "roasted_weight",
                f"원두 무게({roasted_weight})가 생두 무게({green_weight})보다 클 수 없습니다",
            )
        return green_weight, roasted_weight

    def build_roast_completed(
        self,
        user_id: str,
        data: RoastCompletedInput,
        batch_number: int,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """로스팅 완료 → (원두 +roasted_weight, 생두 -green_weight)

        두 엔트리는 함께 저장되어야 함 (LedgerService.append_many).

        Args:
            user_id: 사용자 ID
            data: 로스팅 결과
            batch_number: 할당된 배치 번호 (EntryStore.next_batch_number)

        Returns:
            (roasted_coffee 엔트리, green_coffee 소비 엔트리)
        """
        user_id = _require_text("user_id", user_id)
        green_name = _require_text("green_coffee_name", data.green_coffee_name)
        roast_name = _optional_text(data.name) or green_name
        roast_level = _to_enum(RoastLevel, "roast_level", data.roast_level)
        green_weight, roasted_weight = self.validate_roast(data)
        _require_batch_number(batch_number)

        roast_date = (
            _to_date("roast_date", data.roast_date)
            if data.roast_date is not None
            else self.today()
        )

        roasted = LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ActionType.ROAST_COMPLETED,
            entity_type=EntityType.ROASTED_COFFEE,
            entity_id=make_entity_id(),
            amount_change=roasted_weight,
            metadata=RoastCompletedPayload(
                name=roast_name,
                green_coffee_name=green_name,
                roast_date=roast_date,
                roast_level=roast_level,
                green_weight=green_weight,
                roasted_weight=roasted_weight,
                batch_number=batch_number,
                weight_loss_percentage=weight_loss_percentage(green_weight, roasted_weight),
                roast_notes=_optional_text(data.roast_notes),
                equipment_id=_optional_text(data.equipment_id),
                roast_profile=data.roast_profile,
            ),
        )
        green = LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ActionType.CONSUMPTION,
            entity_type=EntityType.GREEN_COFFEE,
            entity_id=make_green_entity_id(user_id, green_name),
            amount_change=-green_weight,
            metadata=ConsumptionPayload(
                name=green_name,
                consumption_type=ConsumptionType.ROAST,
                notes=f"로스팅 배치 #{batch_number}",
                source_entry_id=roasted.entry_id,
            ),
        )
        return roasted, green

    def build_consumption(
        self,
        user_id: str,
        data: ConsumptionInput,
        entity_id: str | None = None,
        source_entry_id: str | None = None,
    ) -> LedgerEntry:
        """소비 → amount_change = -amount

        Args:
            entity_id: 원두 소비 대상 배치 (원두는 필수, 생두는 이름에서 결정)
            source_entry_id: 소비를 유발한 엔트리 (브루 기록 등)
        """
        user_id = _require_text("user_id", user_id)
        name = _require_text("coffee_name", data.coffee_name)
        entity_type = _to_enum(EntityType, "entity_type", data.entity_type)
        if entity_type not in INVENTORY_ENTITY_TYPES:
            raise ValidationError("entity_type", f"재고 엔티티가 아닙니다: {entity_type.value}")
        amount = _to_decimal("amount", data.amount, positive=True)
        consumption_type = _to_enum(ConsumptionType, "consumption_type", data.consumption_type)

        if entity_type == EntityType.GREEN_COFFEE:
            entity_id = entity_id or make_green_entity_id(user_id, name)
        elif entity_id is None:
            raise ValidationError("coffee_name", f"로스팅 기록이 없는 원두입니다: {name}")

        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ActionType.CONSUMPTION,
            entity_type=entity_type,
            entity_id=entity_id,
            amount_change=-amount,
            metadata=ConsumptionPayload(
                name=name,
                consumption_type=consumption_type,
                notes=_optional_text(data.notes),
                source_entry_id=source_entry_id,
            ),
        )

    def build_adjustment(
        self,
        user_id: str,
        entity_type: EntityType | str,
        data: AdjustmentInput,
        current_amount: Decimal,
        entity_id: str | None = None,
    ) -> LedgerEntry:
        """재고 조정 → amount_change = new_amount - current_amount

        Args:
            entity_type: green_coffee 또는 roasted_coffee
            data: 조정 요청 (data.old_amount는 requested_old_amount로만 기록)
            current_amount: 기록 시점의 실제 잔액
            entity_id: 원두 조정 대상 배치 (생두는 이름에서 결정)
        """
        user_id = _require_text("user_id", user_id)
        entity_type = _to_enum(EntityType, "entity_type", entity_type)
        if entity_type not in ADJUSTMENT_REASONS:
            raise ValidationError("entity_type", f"조정할 수 없는 엔티티입니다: {entity_type.value}")
        name = _require_text("coffee_name", data.coffee_name)
        new_amount = _to_decimal("new_amount", data.new_amount, non_negative=True)
        reason = _to_enum(ADJUSTMENT_REASONS[entity_type], "reason", data.reason)
        requested_old = _optional_decimal("old_amount", data.old_amount)

        if entity_type == EntityType.GREEN_COFFEE:
            entity_id = entity_id or make_green_entity_id(user_id, name)
        elif entity_id is None:
            raise ValidationError("coffee_name", f"로스팅 기록이 없는 원두입니다: {name}")

        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ADJUSTMENT_ACTIONS[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            amount_change=new_amount - current_amount,
            metadata=AdjustmentPayload(
                name=name,
                reason=reason.value,
                old_amount=current_amount,
                new_amount=new_amount,
                notes=_optional_text(data.notes),
                requested_old_amount=requested_old,
            ),
        )

    def build_compensation(self, entry: LedgerEntry, notes: str | None = None) -> LedgerEntry:
        """저장된 재고 엔트리를 되돌리는 보정 엔트리 (amount_change 부호 반전)

        원자적 저장이 불가능한 저장소에서 다중 엔트리 기록이 중간에 실패했을 때 사용.
        """
        if entry.entity_type not in ADJUSTMENT_ACTIONS:
            raise ValidationError("entity_type", f"보정할 수 없는 엔티티입니다: {entry.entity_type.value}")
        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=entry.user_id,
            action_type=ADJUSTMENT_ACTIONS[entry.entity_type],
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            amount_change=-entry.amount_change,
            metadata=AdjustmentPayload(
                name=entry.coffee_name or "",
                reason="other",
                notes=notes or f"보정: {entry.action_type.value} {entry.entry_id}",
                compensates_entry_id=entry.entry_id,
            ),
        )

    # -------------------------------------------------------------------------
    # 스케줄
    # -------------------------------------------------------------------------

    def schedule_record(self, data: ScheduleInput) -> SchedulePayload:
        """스케줄 생성 요청 → 검증된 레코드"""
        return SchedulePayload(
            coffee_name=_require_text("coffee_name", data.coffee_name),
            scheduled_date=_to_date("scheduled_date", data.scheduled_date),
            green_weight=_to_decimal("green_weight", data.green_weight, positive=True),
            target_roast_level=_to_enum(RoastLevel, "target_roast_level", data.target_roast_level),
            green_coffee_name=_optional_text(data.green_coffee_name),
            equipment_id=_optional_text(data.equipment_id),
            notes=_optional_text(data.notes),
            priority=_to_enum(SchedulePriority, "priority", data.priority),
        )

    def patch_schedule_record(self, record: SchedulePayload, patch: SchedulePatch) -> SchedulePayload:
        """현재 레코드에 수정 요청을 덮어씀 (None 필드는 유지)"""
        changes: dict[str, Any] = {}
        if patch.coffee_name is not None:
            changes["coffee_name"] = _require_text("coffee_name", patch.coffee_name)
        if patch.scheduled_date is not None:
            changes["scheduled_date"] = _to_date("scheduled_date", patch.scheduled_date)
        if patch.green_weight is not None:
            changes["green_weight"] = _to_decimal("green_weight", patch.green_weight, positive=True)
        if patch.target_roast_level is not None:
            changes["target_roast_level"] = _to_enum(
                RoastLevel, "target_roast_level", patch.target_roast_level
            )
        if patch.green_coffee_name is not None:
            changes["green_coffee_name"] = _optional_text(patch.green_coffee_name)
        if patch.equipment_id is not None:
            changes["equipment_id"] = _optional_text(patch.equipment_id)
        if patch.notes is not None:
            changes["notes"] = _optional_text(patch.notes)
        if patch.priority is not None:
            changes["priority"] = _to_enum(SchedulePriority, "priority", patch.priority)
        return replace(record, **changes)

    def complete_schedule_record(
        self,
        record: SchedulePayload,
        outcome: RoastOutcome | None = None,
    ) -> SchedulePayload:
        """완료 레코드 (completed=True, completed_date 설정)"""
        outcome = outcome or RoastOutcome()
        return replace(
            record,
            completed=True,
            completed_date=(
                _to_date("completed_date", outcome.completed_date)
                if outcome.completed_date is not None
                else self.today()
            ),
            actual_roasted_weight=_optional_decimal(
                "actual_roasted_weight", outcome.actual_roasted_weight, positive=True
            ),
            actual_roast_level=(
                _to_enum(RoastLevel, "actual_roast_level", outcome.actual_roast_level)
                if outcome.actual_roast_level is not None
                else None
            ),
            roast_notes=_optional_text(outcome.roast_notes),
        )

    def build_schedule_action(
        self,
        user_id: str,
        kind: ScheduleActionKind | str,
        record: SchedulePayload,
        entity_id: str | None = None,
    ) -> LedgerEntry:
        """스케줄 엔트리 (amount_change = 0)

        Args:
            kind: scheduled | edited | completed | deleted
            record: 기록할 전체 스케줄 레코드
            entity_id: 스케줄 ID (scheduled는 생략 시 새로 발급, 나머지는 필수)
        """
        user_id = _require_text("user_id", user_id)
        kind = _to_enum(ScheduleActionKind, "kind", kind)

        if kind == ScheduleActionKind.SCHEDULED:
            entity_id = entity_id or make_entity_id()
        elif not entity_id:
            raise ValidationError("schedule_id", "스케줄 ID가 필요합니다")

        if kind == ScheduleActionKind.COMPLETED and not record.completed:
            record = self.complete_schedule_record(record)
        elif kind == ScheduleActionKind.DELETED:
            record = replace(record, deleted=True, deleted_at=self._clock())

        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=SCHEDULE_KIND_ACTIONS[kind],
            entity_type=EntityType.ROAST_SCHEDULE,
            entity_id=entity_id,
            amount_change=Decimal("0"),
            metadata=replace(record, schedule_entry=True),
        )

    # -------------------------------------------------------------------------
    # 메타데이터 전용
    # -------------------------------------------------------------------------

    def build_brew(
        self,
        user_id: str,
        data: BrewInput,
        roasted_entity_id: str | None,
    ) -> tuple[LedgerEntry, LedgerEntry]:
        """브루 기록 → (brew_logged, 원두 소비)

        brew_ratio = water_amount / coffee_amount (소수 첫째 자리 반올림)
        """
        user_id = _require_text("user_id", user_id)
        name = _require_text("coffee_name", data.coffee_name)
        brew_method = _require_text("brew_method", data.brew_method)
        coffee_amount = _to_decimal("coffee_amount", data.coffee_amount, positive=True)
        water_amount = _to_decimal("water_amount", data.water_amount, positive=True)
        if data.rating is not None and not (1 <= data.rating <= 5):
            raise ValidationError("rating", f"1~5 사이여야 합니다: {data.rating}")
        if data.brew_time is not None and data.brew_time < 0:
            raise ValidationError("brew_time", f"음수일 수 없습니다: {data.brew_time}")

        brew = LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=ActionType.BREW_LOGGED,
            entity_type=EntityType.BREW,
            entity_id=make_entity_id(),
            amount_change=Decimal("0"),
            metadata=BrewPayload(
                coffee_name=name,
                brew_method=brew_method,
                coffee_amount=coffee_amount,
                water_amount=water_amount,
                brew_ratio=(water_amount / coffee_amount).quantize(
                    BREW_RATIO_QUANT, rounding=ROUND_HALF_UP
                ),
                grind_setting=_optional_text(data.grind_setting),
                brew_time=data.brew_time,
                water_temp=_optional_decimal("water_temp", data.water_temp, positive=True),
                rating=data.rating,
                notes=_optional_text(data.notes),
                equipment_id=_optional_text(data.equipment_id),
            ),
        )
        consumption = self.build_consumption(
            user_id,
            ConsumptionInput(
                coffee_name=name,
                amount=coffee_amount,
                entity_type=EntityType.ROASTED_COFFEE,
                consumption_type=ConsumptionType.BREW,
                notes=f"브루: {brew_method}",
            ),
            entity_id=roasted_entity_id,
            source_entry_id=brew.entry_id,
        )
        return brew, consumption

    def build_equipment(
        self,
        user_id: str,
        data: EquipmentInput,
        equipment_id: str | None = None,
    ) -> LedgerEntry:
        """장비 등록 (equipment_id 없음) / 수정 (equipment_id 지정)"""
        user_id = _require_text("user_id", user_id)
        payload = EquipmentPayload(
            equipment_type=_to_enum(EquipmentType, "equipment_type", data.equipment_type),
            brand=_require_text("brand", data.brand),
            model=_require_text("model", data.model),
            settings=dict(data.settings) if data.settings else None,
            is_active=bool(data.is_active),
        )
        return LedgerEntry(
            entry_id=_new_entry_id(),
            user_id=user_id,
            action_type=(
                ActionType.EQUIPMENT_UPDATED if equipment_id else ActionType.EQUIPMENT_ADDED
            ),
            entity_type=EntityType.EQUIPMENT,
            entity_id=equipment_id or make_entity_id(),
            amount_change=Decimal("0"),
            metadata=payload,
        )
