"""
커피 원장 (Append-only Ledger) 시스템

생두 구매, 로스팅, 소비, 조정, 스케줄 변경을 불변 엔트리로 기록하고
현재 재고는 엔트리 재생으로만 산출.

사용 예시:
```python
from core.ledger import LedgerService, GreenPurchaseInput, RoastCompletedInput

service = LedgerService.from_db(db)

await service.record_green_purchase("user-1", GreenPurchaseInput(
    name="Ethiopia Sidamo", origin="Ethiopia", weight=1000,
))
await service.record_roast_completed("user-1", RoastCompletedInput(
    green_coffee_name="Ethiopia Sidamo", roast_level="medium",
    green_weight=220, roasted_weight=185,
))

# 재고 조회 (생두 780g, 원두 185g)
snapshot = await service.get_inventory("user-1")
```
"""

from core.ledger.aggregator import (
    AggregateResult,
    GreenCoffeeRow,
    InventoryAggregator,
    InventoryAudit,
    InventorySnapshot,
    RoastedCoffeeRow,
    display_amount,
)
from core.ledger.entry_builder import EntryFactory, weight_loss_percentage
from core.ledger.errors import (
    ConsistencyWarning,
    LedgerError,
    PersistenceError,
    ValidationError,
)
from core.ledger.models import (
    AdjustmentInput,
    BrewInput,
    ConsumptionInput,
    EquipmentInput,
    GreenPurchaseInput,
    LedgerEntry,
    RoastCompletedInput,
    RoastOutcome,
    ScheduleInput,
    SchedulePatch,
    payload_from_dict,
)
from core.ledger.retry import RetryPolicy
from core.ledger.schedule import ScheduledRoast, ScheduleLedger, fold_schedule
from core.ledger.schema import init_ledger_schema
from core.ledger.service import BrewResult, EquipmentRecord, LedgerService, RoastResult
from core.ledger.store import EntryFilter, EntryStore
from core.ledger.types import (
    ActionType,
    ConsumptionType,
    EntityType,
    EquipmentType,
    RoastLevel,
    ScheduleActionKind,
    SchedulePriority,
)

__all__ = [
    # 핵심 클래스
    "LedgerService",
    "EntryStore",
    "EntryFilter",
    "EntryFactory",
    "InventoryAggregator",
    "ScheduleLedger",
    "RetryPolicy",
    "init_ledger_schema",
    # 모델
    "LedgerEntry",
    "GreenPurchaseInput",
    "RoastCompletedInput",
    "ConsumptionInput",
    "AdjustmentInput",
    "ScheduleInput",
    "SchedulePatch",
    "RoastOutcome",
    "BrewInput",
    "EquipmentInput",
    "payload_from_dict",
    # 결과
    "AggregateResult",
    "InventorySnapshot",
    "InventoryAudit",
    "GreenCoffeeRow",
    "RoastedCoffeeRow",
    "ScheduledRoast",
    "RoastResult",
    "BrewResult",
    "EquipmentRecord",
    "display_amount",
    "fold_schedule",
    "weight_loss_percentage",
    # 예외
    "LedgerError",
    "ValidationError",
    "PersistenceError",
    "ConsistencyWarning",
    # Enum
    "ActionType",
    "EntityType",
    "RoastLevel",
    "ConsumptionType",
    "ScheduleActionKind",
    "SchedulePriority",
    "EquipmentType",
]
