"""
Ledger 타입 정의

ActionType, EntityType 등 Ledger 시스템에서 사용하는 Enum 정의.
모든 Enum은 str을 상속하여 JSON/DB 직렬화 가능.
"""

from enum import Enum


class ActionType(str, Enum):
    """원장 엔트리 행위 유형 (닫힌 열거형)"""

    # 재고 이동
    GREEN_PURCHASE = "green_purchase"  # 생두 구매
    ROAST_COMPLETED = "roast_completed"  # 로스팅 완료 (원두 +)
    CONSUMPTION = "consumption"  # 소비 (생두/원두 -)
    GREEN_ADJUSTMENT = "green_adjustment"  # 생두 재고 조정
    ROASTED_ADJUSTMENT = "roasted_adjustment"  # 원두 재고 조정

    # 스케줄 (amount_change = 0)
    ROAST_SCHEDULED = "roast_scheduled"
    ROAST_EDITED = "roast_edited"
    ROAST_DELETED = "roast_deleted"

    # 메타데이터 전용
    BREW_LOGGED = "brew_logged"
    EQUIPMENT_ADDED = "equipment_added"
    EQUIPMENT_UPDATED = "equipment_updated"


class EntityType(str, Enum):
    """원장 엔트리 대상 엔티티 유형"""

    GREEN_COFFEE = "green_coffee"
    ROASTED_COFFEE = "roasted_coffee"
    ROAST_SCHEDULE = "roast_schedule"
    BREW = "brew"
    EQUIPMENT = "equipment"


class RoastLevel(str, Enum):
    """로스팅 레벨"""

    LIGHT = "light"
    MEDIUM_LIGHT = "medium-light"
    MEDIUM = "medium"
    MEDIUM_DARK = "medium-dark"
    DARK = "dark"


class ConsumptionType(str, Enum):
    """소비 유형

    ROAST는 로스팅 시 생두 차감, ADJUSTMENT는 내부 보정용.
    """

    BREW = "brew"
    GIFT = "gift"
    SAMPLE = "sample"
    WASTE = "waste"
    ROAST = "roast"
    ADJUSTMENT = "adjustment"


class GreenAdjustmentReason(str, Enum):
    """생두 재고 조정 사유"""

    PHYSICAL_COUNT = "physical_count"
    SPILLAGE = "spillage"
    SHRINKAGE = "shrinkage"
    FOUND = "found"
    OTHER = "other"


class RoastedAdjustmentReason(str, Enum):
    """원두 재고 조정 사유"""

    PHYSICAL_COUNT = "physical_count"
    SPILLAGE = "spillage"
    STALE = "stale"
    FOUND = "found"
    OTHER = "other"


class SchedulePriority(str, Enum):
    """스케줄 우선순위"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EquipmentType(str, Enum):
    """장비 유형"""

    GRINDER = "grinder"
    ROASTER = "roaster"
    BREWER = "brewer"


# 재고 잔액에 반영되는 행위 유형
INVENTORY_ACTION_TYPES: frozenset[ActionType] = frozenset({
    ActionType.GREEN_PURCHASE,
    ActionType.ROAST_COMPLETED,
    ActionType.CONSUMPTION,
    ActionType.GREEN_ADJUSTMENT,
    ActionType.ROASTED_ADJUSTMENT,
})

# 재고 잔액이 집계되는 엔티티 유형
INVENTORY_ENTITY_TYPES: frozenset[EntityType] = frozenset({
    EntityType.GREEN_COFFEE,
    EntityType.ROASTED_COFFEE,
})

# 스케줄 서브 원장 행위 유형
SCHEDULE_ACTION_TYPES: frozenset[ActionType] = frozenset({
    ActionType.ROAST_SCHEDULED,
    ActionType.ROAST_EDITED,
    ActionType.ROAST_DELETED,
})

# 엔티티 유형별 조정 사유 / 조정 행위
ADJUSTMENT_REASONS: dict[EntityType, type[Enum]] = {
    EntityType.GREEN_COFFEE: GreenAdjustmentReason,
    EntityType.ROASTED_COFFEE: RoastedAdjustmentReason,
}

ADJUSTMENT_ACTIONS: dict[EntityType, ActionType] = {
    EntityType.GREEN_COFFEE: ActionType.GREEN_ADJUSTMENT,
    EntityType.ROASTED_COFFEE: ActionType.ROASTED_ADJUSTMENT,
}


class ScheduleActionKind(str, Enum):
    """스케줄 엔트리 종류

    COMPLETED는 roast_edited 엔트리 + completed 플래그로 기록됨.
    """

    SCHEDULED = "scheduled"
    EDITED = "edited"
    COMPLETED = "completed"
    DELETED = "deleted"


SCHEDULE_KIND_ACTIONS: dict[ScheduleActionKind, ActionType] = {
    ScheduleActionKind.SCHEDULED: ActionType.ROAST_SCHEDULED,
    ScheduleActionKind.EDITED: ActionType.ROAST_EDITED,
    ScheduleActionKind.COMPLETED: ActionType.ROAST_EDITED,
    ScheduleActionKind.DELETED: ActionType.ROAST_DELETED,
}
