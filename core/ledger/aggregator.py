"""
재고 집계기

원장 엔트리를 (엔티티 유형, 커피 키) 단위로 재생하여 현재 잔액 산출.

음수 잔액 정책:
- aggregate()는 부호 있는 실제 합계를 반환 (진단용)
- 표시 단계에서 max(0, total)로 클램프, 스냅샷에서는 0 이하 행 제외
- 누적 합계가 0 미만으로 내려갈 때마다 ConsistencyWarning(negative_balance) 기록
- 감사(audit) 경로도 같은 aggregate()를 사용하므로 두 경로의 합계는 항상 일치
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence

from core.ledger.errors import ConsistencyWarning, ValidationError
from core.ledger.models import GreenPurchasePayload, LedgerEntry, RoastCompletedPayload
from core.ledger.store import EntryFilter, EntryStore
from core.ledger.types import (
    INVENTORY_ACTION_TYPES,
    INVENTORY_ENTITY_TYPES,
    ActionType,
    EntityType,
)
from core.utils.naming import normalize_coffee_name
from core.utils.timezone import days_between, now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

GroupKey = tuple[EntityType, str]


def display_amount(total: Decimal) -> Decimal:
    """사용자 표시용 잔액 (음수는 0)"""
    return total if total > ZERO else ZERO


@dataclass(frozen=True)
class AggregateResult:
    """집계 결과

    total: 부호 있는 실제 합계
    running_totals: 엔트리별 누적 합계 (입력 순서)
    """

    total: Decimal
    running_totals: tuple[Decimal, ...] = ()
    warnings: tuple[ConsistencyWarning, ...] = ()

    @property
    def display_amount(self) -> Decimal:
        """표시용 잔액"""
        return display_amount(self.total)


@dataclass(frozen=True)
class GreenCoffeeRow:
    """생두 재고 행 (속성은 최신 구매 기준)"""

    coffee_key: str
    name: str
    entity_id: str
    current_amount: Decimal
    origin: str | None = None
    farm: str | None = None
    variety: str | None = None
    process: str | None = None
    supplier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "coffee_key": self.coffee_key,
            "name": self.name,
            "entity_id": self.entity_id,
            "current_amount": str(self.current_amount),
            "origin": self.origin,
            "farm": self.farm,
            "variety": self.variety,
            "process": self.process,
            "supplier": self.supplier,
        }


@dataclass(frozen=True)
class RoastedCoffeeRow:
    """원두 재고 행 (속성은 최신 로스팅 기준)"""

    coffee_key: str
    name: str
    entity_id: str
    current_amount: Decimal
    green_coffee_name: str | None = None
    roast_level: str | None = None
    roast_date: date | None = None
    batch_number: int | None = None
    weight_loss_percentage: Decimal | None = None
    days_since_roast: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "coffee_key": self.coffee_key,
            "name": self.name,
            "entity_id": self.entity_id,
            "current_amount": str(self.current_amount),
            "green_coffee_name": self.green_coffee_name,
            "roast_level": self.roast_level,
            "roast_date": self.roast_date.isoformat() if self.roast_date else None,
            "batch_number": self.batch_number,
            "weight_loss_percentage": (
                str(self.weight_loss_percentage) if self.weight_loss_percentage is not None else None
            ),
            "days_since_roast": self.days_since_roast,
        }


@dataclass(frozen=True)
class InventorySnapshot:
    """재고 스냅샷 (읽기 전용 파생 뷰)"""

    user_id: str
    green: tuple[GreenCoffeeRow, ...]
    roasted: tuple[RoastedCoffeeRow, ...]
    warnings: tuple[ConsistencyWarning, ...] = ()
    generated_at: datetime | None = None

    def find_green(self, coffee_name: str) -> GreenCoffeeRow | None:
        key = normalize_coffee_name(coffee_name)
        return next((row for row in self.green if row.coffee_key == key), None)

    def find_roasted(self, coffee_name: str) -> RoastedCoffeeRow | None:
        key = normalize_coffee_name(coffee_name)
        return next((row for row in self.roasted if row.coffee_key == key), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "green": [row.to_dict() for row in self.green],
            "roasted": [row.to_dict() for row in self.roasted],
            "warnings": [
                {"code": w.code, "message": w.message, "context": w.context} for w in self.warnings
            ],
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }


@dataclass(frozen=True)
class InventoryAudit:
    """재고 감사 결과 (진단 경로)

    entries: 해당 키의 전체 엔트리 (재생 순서)
    entity_totals: entity_id별 합계 (같은 이름의 여러 배치 확인용)
    """

    user_id: str
    entity_type: EntityType
    coffee_key: str
    entries: tuple[LedgerEntry, ...]
    total: Decimal
    display_amount: Decimal
    running_totals: tuple[Decimal, ...]
    warnings: tuple[ConsistencyWarning, ...] = ()
    entity_totals: dict[str, Decimal] = field(default_factory=dict)


class InventoryAggregator:
    """재고 집계기

    순수 집계 함수(aggregate, build_snapshot, build_audit)와
    저장소 조회를 포함한 비동기 래퍼(snapshot, audit) 제공.

    Args:
        store: 원장 저장소 (비동기 래퍼 사용 시 필요)
        clock: 현재 시각 함수 (days_since_roast 계산용)
    """

    def __init__(
        self,
        store: EntryStore | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self._clock = clock

    # -------------------------------------------------------------------------
    # 순수 집계
    # -------------------------------------------------------------------------

    @staticmethod
    def group_key(entry: LedgerEntry) -> GroupKey | None:
        """재고 집계 키 (재고 엔트리가 아니면 None)"""
        if entry.entity_type not in INVENTORY_ENTITY_TYPES:
            return None
        if entry.action_type not in INVENTORY_ACTION_TYPES:
            return None
        name = entry.coffee_name
        if not name:
            return None
        return entry.entity_type, normalize_coffee_name(name)

    def aggregate(
        self,
        entries: Sequence[LedgerEntry],
        context: dict[str, Any] | None = None,
    ) -> AggregateResult:
        """엔트리 합계 (입력 순서대로 재생)

        같은 입력에 대해 항상 같은 결과 (부수 효과는 경고 로깅뿐).

        Args:
            entries: 재생 순서로 정렬된 엔트리
            context: 경고에 첨부할 식별 정보 (user_id, coffee_key 등)
        """
        total = ZERO
        running: list[Decimal] = []
        warnings: list[ConsistencyWarning] = []

        for entry in entries:
            previous = total
            total += entry.amount_change
            running.append(total)

            if total < ZERO <= previous:
                warning = ConsistencyWarning(
                    ConsistencyWarning.NEGATIVE_BALANCE,
                    f"누적 잔액이 음수가 됨: {total}",
                    {
                        **(context or {}),
                        "entry_id": entry.entry_id,
                        "action_type": entry.action_type.value,
                        "running_total": str(total),
                    },
                )
                warnings.append(warning)
                logger.warning(
                    "음수 잔액 감지",
                    extra={"code": warning.code, **warning.context},
                )

        return AggregateResult(
            total=total,
            running_totals=tuple(running),
            warnings=tuple(warnings),
        )

    def group(self, entries: Iterable[LedgerEntry]) -> dict[GroupKey, list[LedgerEntry]]:
        """재고 엔트리를 키별로 묶고 재생 순서로 정렬"""
        groups: dict[GroupKey, list[LedgerEntry]] = defaultdict(list)
        for entry in entries:
            key = self.group_key(entry)
            if key is not None:
                groups[key].append(entry)
        for group_entries in groups.values():
            group_entries.sort(key=lambda e: e.order_key)
        return dict(groups)

    def build_snapshot(self, user_id: str, entries: Iterable[LedgerEntry]) -> InventorySnapshot:
        """스냅샷 생성 (잔액 <= 0 인 커피는 제외)"""
        today = self._clock().date()
        green_rows: list[GreenCoffeeRow] = []
        roasted_rows: list[RoastedCoffeeRow] = []
        warnings: list[ConsistencyWarning] = []

        for (entity_type, coffee_key), group_entries in self.group(
            e for e in entries if e.user_id == user_id
        ).items():
            result = self.aggregate(
                group_entries,
                context={
                    "user_id": user_id,
                    "entity_type": entity_type.value,
                    "coffee_key": coffee_key,
                },
            )
            warnings.extend(result.warnings)
            amount = result.display_amount
            if amount <= ZERO:
                continue

            if entity_type == EntityType.GREEN_COFFEE:
                green_rows.append(self._green_row(coffee_key, group_entries, amount))
            else:
                roasted_rows.append(self._roasted_row(coffee_key, group_entries, amount, today))

        green_rows.sort(key=lambda row: (row.coffee_key, row.name))
        roasted_rows.sort(key=lambda row: (row.coffee_key, row.name))

        return InventorySnapshot(
            user_id=user_id,
            green=tuple(green_rows),
            roasted=tuple(roasted_rows),
            warnings=tuple(warnings),
            generated_at=self._clock(),
        )

    def build_audit(
        self,
        user_id: str,
        entity_type: EntityType | str,
        coffee_name: str,
        entries: Iterable[LedgerEntry],
    ) -> InventoryAudit:
        """한 커피의 감사 결과 (스냅샷과 같은 aggregate 사용)"""
        try:
            entity_type = EntityType(entity_type)
        except ValueError as e:
            raise ValidationError("entity_type", f"허용되지 않는 값: {entity_type!r}") from e
        if entity_type not in INVENTORY_ENTITY_TYPES:
            raise ValidationError("entity_type", f"재고 엔티티가 아닙니다: {entity_type.value}")
        if not coffee_name or not coffee_name.strip():
            raise ValidationError("coffee_name", "필수 입력값입니다")

        coffee_key = normalize_coffee_name(coffee_name)
        group_entries = self.group(e for e in entries if e.user_id == user_id).get(
            (entity_type, coffee_key), []
        )
        result = self.aggregate(
            group_entries,
            context={
                "user_id": user_id,
                "entity_type": entity_type.value,
                "coffee_key": coffee_key,
            },
        )

        entity_totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for entry in group_entries:
            entity_totals[entry.entity_id] += entry.amount_change

        return InventoryAudit(
            user_id=user_id,
            entity_type=entity_type,
            coffee_key=coffee_key,
            entries=tuple(group_entries),
            total=result.total,
            display_amount=result.display_amount,
            running_totals=result.running_totals,
            warnings=result.warnings,
            entity_totals=dict(entity_totals),
        )

    # -------------------------------------------------------------------------
    # 저장소 조회 포함
    # -------------------------------------------------------------------------

    async def snapshot(self, user_id: str) -> InventorySnapshot:
        """사용자 재고 스냅샷"""
        entries = await self._inventory_entries(user_id)
        return self.build_snapshot(user_id, entries)

    async def audit(
        self,
        user_id: str,
        entity_type: EntityType | str,
        coffee_name: str,
    ) -> InventoryAudit:
        """한 커피의 재고 감사"""
        entries = await self._inventory_entries(user_id)
        return self.build_audit(user_id, entity_type, coffee_name, entries)

    async def _inventory_entries(self, user_id: str) -> list[LedgerEntry]:
        if self.store is None:
            raise RuntimeError("InventoryAggregator에 store가 설정되지 않았습니다")
        return await self.store.query_by_user(
            user_id,
            EntryFilter(
                action_types=sorted(INVENTORY_ACTION_TYPES, key=lambda a: a.value),
                entity_types=sorted(INVENTORY_ENTITY_TYPES, key=lambda e: e.value),
                ascending=True,
            ),
        )

    # -------------------------------------------------------------------------
    # 행 속성
    # -------------------------------------------------------------------------

    @staticmethod
    def _latest(entries: list[LedgerEntry], action_type: ActionType) -> LedgerEntry | None:
        for entry in reversed(entries):
            if entry.action_type == action_type:
                return entry
        return None

    def _green_row(
        self,
        coffee_key: str,
        entries: list[LedgerEntry],
        amount: Decimal,
    ) -> GreenCoffeeRow:
        purchase = self._latest(entries, ActionType.GREEN_PURCHASE)
        if purchase is None or not isinstance(purchase.metadata, GreenPurchasePayload):
            latest = entries[-1]
            return GreenCoffeeRow(
                coffee_key=coffee_key,
                name=latest.coffee_name or coffee_key,
                entity_id=latest.entity_id,
                current_amount=amount,
            )
        meta = purchase.metadata
        return GreenCoffeeRow(
            coffee_key=coffee_key,
            name=meta.name,
            entity_id=purchase.entity_id,
            current_amount=amount,
            origin=meta.origin,
            farm=meta.farm,
            variety=meta.variety,
            process=meta.process,
            supplier=meta.supplier,
        )

    def _roasted_row(
        self,
        coffee_key: str,
        entries: list[LedgerEntry],
        amount: Decimal,
        today: date,
    ) -> RoastedCoffeeRow:
        roast = self._latest(entries, ActionType.ROAST_COMPLETED)
        if roast is None or not isinstance(roast.metadata, RoastCompletedPayload):
            latest = entries[-1]
            return RoastedCoffeeRow(
                coffee_key=coffee_key,
                name=latest.coffee_name or coffee_key,
                entity_id=latest.entity_id,
                current_amount=amount,
            )
        meta = roast.metadata
        return RoastedCoffeeRow(
            coffee_key=coffee_key,
            name=meta.name,
            entity_id=roast.entity_id,
            current_amount=amount,
            green_coffee_name=meta.green_coffee_name,
            roast_level=meta.roast_level.value,
            roast_date=meta.roast_date,
            batch_number=meta.batch_number,
            weight_loss_percentage=meta.weight_loss_percentage,
            days_since_roast=days_between(meta.roast_date, today),
        )
