"""
Ledger 서비스

폼/API가 직접 호출하는 유일한 진입점.
EntryFactory로 엔트리를 만들고 EntryStore에 저장, 조회는 InventoryAggregator 사용.

- ValidationError: 그대로 전파 (재시도 없음)
- PersistenceError(transient): 지수 백오프로 재시도
- 로스팅 완료: 원두(+), 생두(-), 배치 번호, 스케줄 완료를 하나의 트랜잭션으로 기록
  (트랜잭션 미지원 저장소는 순차 저장 + 실패 시 보정 엔트리)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from core.constants import Defaults
from core.ledger.aggregator import InventoryAggregator, InventoryAudit, InventorySnapshot
from core.ledger.entry_builder import EntryFactory
from core.ledger.errors import ConsistencyWarning, PersistenceError, ValidationError
from core.ledger.models import (
    AdjustmentInput,
    BrewInput,
    ConsumptionInput,
    EquipmentInput,
    EquipmentPayload,
    GreenPurchaseInput,
    LedgerEntry,
    RoastCompletedInput,
    RoastCompletedPayload,
    RoastOutcome,
)
from core.ledger.retry import RetryPolicy
from core.ledger.schedule import ScheduledRoast, ScheduleLedger
from core.ledger.store import EntryFilter, EntryStore
from core.ledger.types import (
    INVENTORY_ENTITY_TYPES,
    ActionType,
    EntityType,
)
from core.utils.naming import normalize_coffee_name
from core.utils.timezone import now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter
    from core.config.loader import AppConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RoastResult:
    """로스팅 완료 기록 결과"""

    roasted_entry: LedgerEntry
    green_entry: LedgerEntry
    schedule_entry: LedgerEntry | None = None
    schedule: ScheduledRoast | None = None

    @property
    def entries(self) -> list[LedgerEntry]:
        entries = [self.roasted_entry, self.green_entry]
        if self.schedule_entry is not None:
            entries.append(self.schedule_entry)
        return entries


@dataclass(frozen=True)
class BrewResult:
    """브루 기록 결과"""

    brew_entry: LedgerEntry
    consumption_entry: LedgerEntry


@dataclass(frozen=True)
class EquipmentRecord:
    """장비 현재 상태 (엔트리 재생 결과)"""

    equipment_id: str
    user_id: str
    details: EquipmentPayload
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipment_id": self.equipment_id,
            "user_id": self.user_id,
            **self.details.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class LedgerService:
    """원장 서비스 (Facade)

    Args:
        store: 원장 저장소
        factory: 엔트리 생성기
        aggregator: 재고 집계기
        schedules: 스케줄 서브 원장
        retry_max_attempts: transient PersistenceError 최대 시도 횟수
        retry_base_delay_sec: 백오프 기본 지연 (n번째 재시도 전 base * 2**(n-1))
        match_tolerance_g: 로스팅-스케줄 매칭 생두 무게 허용 오차
        upcoming_horizon_days: 기본 스케줄 원장의 list_upcoming 기간
        clock: 현재 시각 함수
        sleep: 백오프 대기 함수 (테스트에서 주입)

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        await init_ledger_schema(db)
        service = LedgerService.from_db(db)
        await service.record_green_purchase("user-1", GreenPurchaseInput(
            name="Ethiopia Sidamo", origin="Ethiopia", weight=1000,
        ))
        snapshot = await service.get_inventory("user-1")
    ```
    """

    def __init__(
        self,
        store: EntryStore,
        factory: EntryFactory | None = None,
        aggregator: InventoryAggregator | None = None,
        schedules: ScheduleLedger | None = None,
        retry_max_attempts: int = Defaults.RETRY_MAX_ATTEMPTS,
        retry_base_delay_sec: float = Defaults.RETRY_BASE_DELAY_SEC,
        match_tolerance_g: Decimal = Defaults.SCHEDULE_MATCH_TOLERANCE_G,
        upcoming_horizon_days: int = Defaults.UPCOMING_HORIZON_DAYS,
        clock: Callable[[], datetime] = now_utc,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.retry = RetryPolicy(retry_max_attempts, retry_base_delay_sec, sleep)
        self.store = store
        self.factory = factory or EntryFactory(clock)
        self.aggregator = aggregator or InventoryAggregator(store, clock)
        self.schedules = schedules or ScheduleLedger(
            store,
            self.factory,
            clock,
            upcoming_horizon_days=upcoming_horizon_days,
            retry=self.retry,
        )
        self.match_tolerance_g = match_tolerance_g
        self._clock = clock

    @classmethod
    def from_db(
        cls,
        db: SQLiteAdapter,
        config: AppConfig | None = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> LedgerService:
        """SQLiteAdapter + 설정으로 서비스 구성"""
        store = EntryStore(db, clock)
        factory = EntryFactory(clock)
        if config is None:
            return cls(store, factory=factory, clock=clock)
        return cls(
            store,
            factory=factory,
            retry_max_attempts=config.retry_max_attempts,
            retry_base_delay_sec=config.retry_base_delay_sec,
            match_tolerance_g=config.schedule_match_tolerance_g,
            upcoming_horizon_days=config.upcoming_horizon_days,
            clock=clock,
        )

    # -------------------------------------------------------------------------
    # 재시도
    # -------------------------------------------------------------------------

    async def _with_retry(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """transient PersistenceError 재시도 (스케줄 원장과 같은 정책)

        func는 커밋까지의 쓰기 또는 단순 조회여야 함. 커밋 뒤 조회를 넣지 말 것.
        """
        return await self.retry.run(operation, func)

    # -------------------------------------------------------------------------
    # 재고 이동 기록
    # -------------------------------------------------------------------------

    async def record_green_purchase(self, user_id: str, data: GreenPurchaseInput) -> LedgerEntry:
        """생두 구매 기록"""
        entry = self.factory.build_green_purchase(user_id, data)
        stored = await self._with_retry("record_green_purchase", lambda: self.store.append(entry))
        logger.info(
            "생두 구매 기록",
            extra={
                "user_id": user_id,
                "coffee_name": data.name,
                "amount": str(stored.amount_change),
            },
        )
        return stored

    async def record_roast_completed(self, user_id: str, data: RoastCompletedInput) -> RoastResult:
        """로스팅 완료 기록

        원두(+) + 생두(-) 엔트리, 배치 번호 할당, 매칭되는 열린 스케줄의 완료 엔트리를 함께 기록.
        """
        # 저장소 접근 전 입력 검증
        self.factory.validate_roast(data)

        if self.store.supports_transactions:
            write = self._write_roast_atomic
        else:
            write = self._write_roast_sequential
        stored, match = await self._with_retry(
            "record_roast_completed", lambda: write(user_id, data)
        )
        result = self._roast_result(stored, match)

        roasted_meta: RoastCompletedPayload = result.roasted_entry.metadata  # type: ignore[assignment]
        logger.info(
            "로스팅 완료 기록",
            extra={
                "user_id": user_id,
                "batch_number": roasted_meta.batch_number,
                "roasted_amount": str(result.roasted_entry.amount_change),
                "green_amount": str(result.green_entry.amount_change),
                "schedule_id": result.schedule.schedule_id if result.schedule else None,
            },
        )
        return result

    async def _prepare_roast(
        self,
        user_id: str,
        data: RoastCompletedInput,
    ) -> tuple[list[LedgerEntry], ScheduledRoast | None]:
        batch_number = await self.store.next_batch_number(user_id, data.batch_number)
        roasted, green = self.factory.build_roast_completed(user_id, data, batch_number)
        entries = [roasted, green]

        meta: RoastCompletedPayload = roasted.metadata  # type: ignore[assignment]
        match = await self.schedules.find_match(
            user_id,
            [meta.green_coffee_name, meta.name],
            meta.roast_level,
            meta.green_weight,
            self.match_tolerance_g,
        )
        if match is not None:
            entries.append(
                self.schedules.prepare_completion(
                    match,
                    RoastOutcome(
                        actual_roasted_weight=meta.roasted_weight,
                        actual_roast_level=meta.roast_level,
                        roast_notes=meta.roast_notes,
                        completed_date=meta.roast_date,
                    ),
                )
            )
        return entries, match

    async def _write_roast_atomic(
        self, user_id: str, data: RoastCompletedInput
    ) -> tuple[list[LedgerEntry], ScheduledRoast | None]:
        async with self.store.transaction():
            entries, match = await self._prepare_roast(user_id, data)
            stored = await self.store.append_many(entries)
        return stored, match

    async def _write_roast_sequential(
        self, user_id: str, data: RoastCompletedInput
    ) -> tuple[list[LedgerEntry], ScheduledRoast | None]:
        entries, match = await self._prepare_roast(user_id, data)
        stored = await self._append_with_compensation(entries)
        return stored, match

    @staticmethod
    def _roast_result(stored: list[LedgerEntry], match: ScheduledRoast | None) -> RoastResult:
        """저장된 엔트리로 결과 구성 (스케줄은 매칭 상태에 완료 엔트리를 적용)"""
        schedule_entry = stored[2] if len(stored) > 2 else None
        schedule = None
        if match is not None and schedule_entry is not None:
            schedule = match.apply(schedule_entry)
        return RoastResult(
            roasted_entry=stored[0],
            green_entry=stored[1],
            schedule_entry=schedule_entry,
            schedule=schedule,
        )

    async def _append_with_compensation(self, entries: list[LedgerEntry]) -> list[LedgerEntry]:
        """순차 저장, 중간 실패 시 저장된 재고 엔트리를 보정 엔트리로 상쇄 후 원래 오류 전파"""
        stored: list[LedgerEntry] = []
        try:
            for entry in entries:
                stored.append(await self.store.append(entry))
        except PersistenceError as e:
            await self._compensate(stored, e)
            raise
        return stored

    async def _compensate(self, stored: list[LedgerEntry], cause: PersistenceError) -> None:
        for entry in reversed(stored):
            if entry.entity_type not in INVENTORY_ENTITY_TYPES:
                continue
            compensation = self.factory.build_compensation(entry)
            warning = ConsistencyWarning(
                ConsistencyWarning.COMPENSATING_ENTRY,
                f"부분 저장 실패로 보정 엔트리 기록: {entry.entry_id}",
                {
                    "user_id": entry.user_id,
                    "compensated_entry_id": entry.entry_id,
                    "compensation_entry_id": compensation.entry_id,
                    "amount_change": str(compensation.amount_change),
                    "cause": str(cause),
                },
            )
            try:
                await self.store.append(compensation)
            except PersistenceError:
                logger.exception(
                    "보정 엔트리 기록 실패",
                    extra={"code": warning.code, **warning.context},
                )
                continue
            logger.warning(
                "보정 엔트리 기록",
                extra={"code": warning.code, **warning.context},
            )

    async def record_consumption(self, user_id: str, data: ConsumptionInput) -> LedgerEntry:
        """소비 기록

        원두 소비는 같은 이름의 최신 로스팅 배치에 기록.
        현재 잔액보다 많은 소비도 기록됨 (집계 시 음수 잔액 경고).
        """

        async def write() -> LedgerEntry:
            async with self.store.transaction():
                entity_id = None
                if EntityType(data.entity_type) == EntityType.ROASTED_COFFEE:
                    entity_id = await self._latest_roast_entity_id(user_id, data.coffee_name)
                entry = self.factory.build_consumption(user_id, data, entity_id=entity_id)
                return await self.store.append(entry)

        self._require_entity_type(data.entity_type)
        stored = await self._with_retry("record_consumption", write)
        logger.info(
            "소비 기록",
            extra={
                "user_id": user_id,
                "coffee_name": data.coffee_name,
                "entity_type": stored.entity_type.value,
                "amount": str(stored.amount_change),
            },
        )
        return stored

    async def record_adjustment(
        self,
        user_id: str,
        entity_type: EntityType | str,
        data: AdjustmentInput,
    ) -> LedgerEntry:
        """재고 조정 기록

        트랜잭션 안에서 현재 실제 잔액을 다시 읽어 old_amount로 사용.
        호출자가 보낸 old_amount와 다르면 stale_adjustment_base 경고.
        """
        entity_type = self._require_entity_type(entity_type)

        async def write() -> LedgerEntry:
            async with self.store.transaction():
                audit = await self.aggregator.audit(user_id, entity_type, data.coffee_name)
                entity_id = None
                if entity_type == EntityType.ROASTED_COFFEE:
                    entity_id = await self._latest_roast_entity_id(user_id, data.coffee_name)
                entry = self.factory.build_adjustment(
                    user_id, entity_type, data, audit.total, entity_id=entity_id
                )
                return await self.store.append(entry)

        stored = await self._with_retry("record_adjustment", write)
        meta = stored.metadata
        requested = getattr(meta, "requested_old_amount", None)
        actual = getattr(meta, "old_amount", None)
        if requested is not None and requested != actual:
            warning = ConsistencyWarning(
                ConsistencyWarning.STALE_ADJUSTMENT_BASE,
                f"조정 기준 잔액 불일치: 요청 {requested}, 실제 {actual}",
                {
                    "user_id": user_id,
                    "entry_id": stored.entry_id,
                    "requested_old_amount": str(requested),
                    "old_amount": str(actual),
                },
            )
            logger.warning("조정 기준 잔액 불일치", extra={"code": warning.code, **warning.context})

        logger.info(
            "재고 조정 기록",
            extra={
                "user_id": user_id,
                "coffee_name": data.coffee_name,
                "entity_type": entity_type.value,
                "amount_change": str(stored.amount_change),
            },
        )
        return stored

    # -------------------------------------------------------------------------
    # 메타데이터 기록
    # -------------------------------------------------------------------------

    async def record_brew(self, user_id: str, data: BrewInput) -> BrewResult:
        """브루 기록 + 원두 소비 (하나의 트랜잭션)"""

        async def write() -> BrewResult:
            async with self.store.transaction():
                entity_id = await self._latest_roast_entity_id(user_id, data.coffee_name)
                brew, consumption = self.factory.build_brew(user_id, data, entity_id)
                stored = await self.store.append_many([brew, consumption])
            return BrewResult(brew_entry=stored[0], consumption_entry=stored[1])

        result = await self._with_retry("record_brew", write)
        logger.info(
            "브루 기록",
            extra={
                "user_id": user_id,
                "coffee_name": data.coffee_name,
                "brew_id": result.brew_entry.entity_id,
            },
        )
        return result

    async def record_equipment(
        self,
        user_id: str,
        data: EquipmentInput,
        equipment_id: str | None = None,
    ) -> EquipmentRecord:
        """장비 등록 (equipment_id 없음) / 수정"""

        async def write() -> LedgerEntry:
            async with self.store.transaction():
                if equipment_id is not None:
                    history = await self.store.query_by_entity(user_id, equipment_id)
                    if not any(e.entity_type == EntityType.EQUIPMENT for e in history):
                        raise ValidationError(
                            "equipment_id", f"장비를 찾을 수 없습니다: {equipment_id}"
                        )
                entry = self.factory.build_equipment(user_id, data, equipment_id)
                return await self.store.append(entry)

        stored = await self._with_retry("record_equipment", write)
        records = await self.list_equipment(user_id)
        return next(r for r in records if r.equipment_id == stored.entity_id)

    async def list_equipment(self, user_id: str) -> list[EquipmentRecord]:
        """장비 목록 (entity_id별 최신 값, 등록 순)"""
        entries = await self._with_retry(
            "list_equipment",
            lambda: self.store.query_by_user(
                user_id,
                EntryFilter(entity_types=[EntityType.EQUIPMENT], ascending=True),
            ),
        )
        records: dict[str, EquipmentRecord] = {}
        for entry in entries:
            if not isinstance(entry.metadata, EquipmentPayload):
                continue
            previous = records.get(entry.entity_id)
            records[entry.entity_id] = EquipmentRecord(
                equipment_id=entry.entity_id,
                user_id=entry.user_id,
                details=entry.metadata,
                created_at=previous.created_at if previous else entry.created_at,
                updated_at=entry.created_at,
            )
        return list(records.values())

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_inventory(self, user_id: str) -> InventorySnapshot:
        """재고 스냅샷"""
        return await self._with_retry("get_inventory", lambda: self.aggregator.snapshot(user_id))

    async def get_entries(
        self,
        user_id: str,
        limit: int = Defaults.ENTRIES_PAGE_SIZE,
        offset: int = 0,
        entry_filter: EntryFilter | None = None,
    ) -> list[LedgerEntry]:
        """원장 엔트리 목록 (기본: 최신 순)"""
        if limit < 1 or limit > Defaults.ENTRIES_MAX_PAGE_SIZE:
            raise ValidationError(
                "limit", f"1 ~ {Defaults.ENTRIES_MAX_PAGE_SIZE} 사이여야 합니다: {limit}"
            )
        if offset < 0:
            raise ValidationError("offset", f"음수일 수 없습니다: {offset}")
        return await self._with_retry(
            "get_entries",
            lambda: self.store.query_by_user(user_id, entry_filter, limit, offset),
        )

    async def get_entity_history(self, user_id: str, entity_id: str) -> list[LedgerEntry]:
        """엔티티 재생 이력 (오래된 순)"""
        return await self._with_retry(
            "get_entity_history", lambda: self.store.query_by_entity(user_id, entity_id)
        )

    async def audit_inventory(
        self,
        user_id: str,
        entity_type: EntityType | str,
        coffee_name: str,
    ) -> InventoryAudit:
        """재고 감사 (스냅샷과 같은 집계 함수 사용)"""
        return await self._with_retry(
            "audit_inventory",
            lambda: self.aggregator.audit(user_id, entity_type, coffee_name),
        )

    # -------------------------------------------------------------------------
    # 내부 헬퍼
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_entity_type(entity_type: EntityType | str) -> EntityType:
        try:
            resolved = EntityType(entity_type)
        except ValueError as e:
            raise ValidationError("entity_type", f"허용되지 않는 값: {entity_type!r}") from e
        if resolved not in INVENTORY_ENTITY_TYPES:
            raise ValidationError("entity_type", f"재고 엔티티가 아닙니다: {resolved.value}")
        return resolved

    async def _latest_roast_entity_id(self, user_id: str, coffee_name: str) -> str | None:
        """같은 이름(정규화 기준)의 최신 로스팅 배치 entity_id"""
        if not coffee_name or not coffee_name.strip():
            raise ValidationError("coffee_name", "필수 입력값입니다")
        key = normalize_coffee_name(coffee_name)
        roasts = await self.store.query_by_user(
            user_id,
            EntryFilter(
                action_types=[ActionType.ROAST_COMPLETED],
                entity_types=[EntityType.ROASTED_COFFEE],
            ),
        )
        for entry in roasts:
            if entry.coffee_name and normalize_coffee_name(entry.coffee_name) == key:
                return entry.entity_id
        return None
