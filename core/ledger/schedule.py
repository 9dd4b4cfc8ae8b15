"""
로스팅 스케줄 서브 원장

스케줄은 roast_schedule 엔트리 체인으로만 표현됨.
현재 상태 = entity_id별 엔트리를 (created_at, seq) 순서로 재생한 결과.
완료 후에는 수정할 수 없고 삭제(숨김)만 가능, 삭제는 되돌릴 수 없음.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Iterable

from core.constants import Defaults
from core.domain.state_machines import ScheduleState, ScheduleStateMachine
from core.ledger.entry_builder import EntryFactory
from core.ledger.errors import ValidationError
from core.ledger.models import (
    LedgerEntry,
    RoastOutcome,
    ScheduleInput,
    SchedulePatch,
    SchedulePayload,
)
from core.ledger.retry import RetryPolicy
from core.ledger.store import EntryFilter, EntryStore
from core.ledger.types import SCHEDULE_ACTION_TYPES, EntityType, RoastLevel, ScheduleActionKind
from core.utils.naming import normalize_coffee_name
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledRoast:
    """로스팅 스케줄 현재 상태 (재생 결과)"""

    schedule_id: str
    user_id: str
    state: ScheduleState
    record: SchedulePayload
    created_at: datetime | None = None
    updated_at: datetime | None = None
    entry_count: int = 0

    @property
    def completed(self) -> bool:
        return self.state == ScheduleState.COMPLETED

    @property
    def deleted(self) -> bool:
        return self.state == ScheduleState.DELETED

    @property
    def is_open(self) -> bool:
        return self.state == ScheduleState.SCHEDULED

    @property
    def scheduled_date(self) -> date:
        return self.record.scheduled_date

    @property
    def coffee_name(self) -> str:
        return self.record.coffee_name

    @property
    def completed_date(self) -> date | None:
        return self.record.completed_date

    @property
    def sort_key(self) -> tuple[date, str]:
        """정렬 키 (scheduled_date, 생성 시각)"""
        return (self.scheduled_date, self.created_at.isoformat() if self.created_at else "")

    def matches_coffee(self, *names: str | None) -> bool:
        """이름(정규화 기준)이 스케줄의 원두/생두 이름 중 하나와 일치하는지"""
        own = {normalize_coffee_name(self.record.coffee_name)}
        if self.record.green_coffee_name:
            own.add(normalize_coffee_name(self.record.green_coffee_name))
        return any(name and normalize_coffee_name(name) in own for name in names)

    def apply(self, entry: LedgerEntry) -> ScheduledRoast:
        """새 스케줄 엔트리 하나를 적용한 상태 (저장 직후 재조회 대신 사용)"""
        payload: SchedulePayload = entry.metadata  # type: ignore[assignment]
        machine = ScheduleStateMachine(self.state)
        target = machine.target_for(payload.completed, payload.deleted)
        if not machine.can_apply(target):
            return replace(self, entry_count=self.entry_count + 1)
        machine.apply(target)
        return replace(
            self,
            state=machine.state,
            record=payload,
            updated_at=entry.created_at,
            entry_count=self.entry_count + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "user_id": self.user_id,
            "state": self.state.value,
            **self.record.to_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "entry_count": self.entry_count,
        }


def fold_schedule(entries: Iterable[LedgerEntry]) -> ScheduledRoast | None:
    """한 스케줄의 엔트리를 재생하여 현재 상태 산출

    - 엔트리는 (created_at, seq) 순서로 정렬 후 재생
    - 일반 엔트리는 레코드를 덮어씀 (scheduled → scheduled)
    - completed/deleted 플래그는 종료 전이
    - 종료 상태 이후의 엔트리는 무시

    Returns:
        스케줄 상태 (스케줄 엔트리가 없으면 None)
    """
    ordered = sorted(
        (e for e in entries if isinstance(e.metadata, SchedulePayload)),
        key=lambda e: e.order_key,
    )
    if not ordered:
        return None

    first = ordered[0]
    machine = ScheduleStateMachine()
    record: SchedulePayload = first.metadata  # type: ignore[assignment]
    updated_at = first.created_at

    for entry in ordered:
        payload: SchedulePayload = entry.metadata  # type: ignore[assignment]
        target = machine.target_for(payload.completed, payload.deleted)
        if not machine.can_apply(target):
            logger.debug(
                "종료된 스케줄 엔트리 무시",
                extra={"schedule_id": entry.entity_id, "entry_id": entry.entry_id},
            )
            continue

        machine.apply(target)
        record = payload
        updated_at = entry.created_at

    return ScheduledRoast(
        schedule_id=first.entity_id,
        user_id=first.user_id,
        state=machine.state,
        record=record,
        created_at=first.created_at,
        updated_at=updated_at,
        entry_count=len(ordered),
    )


class ScheduleLedger:
    """로스팅 스케줄 서브 원장

    쓰기(create/edit/complete/delete)는 저장소 트랜잭션 하나가 재시도 단위.
    결과는 트랜잭션 안에서 읽은 이력 + 새 엔트리를 재생해 만들므로 커밋 뒤 조회가 없다.

    Args:
        store: 원장 저장소
        factory: 엔트리 생성기
        clock: 현재 시각 함수 (upcoming/overdue 기준일)
        upcoming_horizon_days: list_upcoming 기본 기간
        retry: transient PersistenceError 재시도 정책 (LedgerService와 공유)

    사용 예시:
    ```python
    schedules = ScheduleLedger(store, EntryFactory())
    roast = await schedules.create("user-1", ScheduleInput(
        coffee_name="Kenya AA", scheduled_date="2026-10-20",
        green_weight=220, target_roast_level="medium",
    ))
    await schedules.complete("user-1", roast.schedule_id)
    ```
    """

    def __init__(
        self,
        store: EntryStore,
        factory: EntryFactory | None = None,
        clock: Callable[[], datetime] = now_utc,
        upcoming_horizon_days: int = Defaults.UPCOMING_HORIZON_DAYS,
        retry: RetryPolicy | None = None,
    ):
        self.store = store
        self.factory = factory or EntryFactory(clock)
        self._clock = clock
        self.upcoming_horizon_days = upcoming_horizon_days
        self.retry = retry or RetryPolicy()

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def _history(self, user_id: str, schedule_id: str) -> list[LedgerEntry]:
        entries = await self.store.query_by_entity(user_id, schedule_id)
        return [e for e in entries if e.entity_type == EntityType.ROAST_SCHEDULE]

    @staticmethod
    def _require(schedule_id: str, history: list[LedgerEntry]) -> ScheduledRoast:
        scheduled = fold_schedule(history)
        if scheduled is None:
            raise ValidationError("schedule_id", f"스케줄을 찾을 수 없습니다: {schedule_id}")
        return scheduled

    async def get(self, user_id: str, schedule_id: str) -> ScheduledRoast:
        """스케줄 현재 상태 (삭제된 스케줄 포함)

        Raises:
            ValidationError: 존재하지 않는 스케줄
        """
        history = await self.retry.run(
            "get_schedule", lambda: self._history(user_id, schedule_id)
        )
        return self._require(schedule_id, history)

    async def _fold_all(self, user_id: str) -> list[ScheduledRoast]:
        entries = await self.store.query_by_user(
            user_id,
            EntryFilter(
                action_types=sorted(SCHEDULE_ACTION_TYPES, key=lambda a: a.value),
                entity_types=[EntityType.ROAST_SCHEDULE],
                metadata={"schedule_entry": True},
                ascending=True,
            ),
        )
        by_entity: dict[str, list[LedgerEntry]] = {}
        for entry in entries:
            by_entity.setdefault(entry.entity_id, []).append(entry)

        folded = [fold_schedule(group) for group in by_entity.values()]
        return [s for s in folded if s is not None]

    async def fold_all(self, user_id: str) -> list[ScheduledRoast]:
        """사용자의 모든 스케줄 재생 (삭제 포함)"""
        return await self.retry.run("list_schedules", lambda: self._fold_all(user_id))

    async def list(self, user_id: str) -> list[ScheduledRoast]:
        """스케줄 목록 (삭제 제외, 완료 포함, scheduled_date 순)"""
        schedules = [s for s in await self.fold_all(user_id) if not s.deleted]
        schedules.sort(key=lambda s: s.sort_key)
        return schedules

    async def list_upcoming(
        self,
        user_id: str,
        horizon_days: int | None = None,
    ) -> list[ScheduledRoast]:
        """예정 스케줄 (미완료, 오늘 ~ 오늘 + horizon_days)"""
        if horizon_days is None:
            horizon_days = self.upcoming_horizon_days
        if horizon_days < 0:
            raise ValidationError("horizon_days", f"음수일 수 없습니다: {horizon_days}")
        today = self._clock().date()
        until = today + timedelta(days=horizon_days)
        return [
            s for s in await self.list(user_id)
            if not s.completed and today <= s.scheduled_date <= until
        ]

    async def list_overdue(self, user_id: str) -> list[ScheduledRoast]:
        """지난 스케줄 (미완료, 오늘 이전)"""
        today = self._clock().date()
        return [
            s for s in await self.list(user_id)
            if not s.completed and s.scheduled_date < today
        ]

    async def find_match(
        self,
        user_id: str,
        coffee_names: Iterable[str | None],
        roast_level: RoastLevel,
        green_weight: Decimal,
        tolerance: Decimal,
    ) -> ScheduledRoast | None:
        """로스팅 완료에 대응하는 열린 스케줄 검색

        로스팅 트랜잭션 안에서 호출되므로 재시도하지 않는다 (바깥 재시도 단위에 포함).
        조건: 이름 일치 + 목표 로스팅 레벨 일치 + |생두 무게 차이| <= tolerance.
        여러 개면 scheduled_date가 가장 이른 것, 같으면 먼저 생성된 것.
        """
        names = list(coffee_names)
        candidates = [
            s for s in await self._fold_all(user_id)
            if s.is_open
            and s.matches_coffee(*names)
            and s.record.target_roast_level == roast_level
            and abs(green_weight - s.record.green_weight) <= tolerance
        ]
        if not candidates:
            return None
        candidates.sort(key=lambda s: s.sort_key)
        return candidates[0]

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def create(self, user_id: str, data: ScheduleInput) -> ScheduledRoast:
        """스케줄 생성 (roast_scheduled)"""
        record = self.factory.schedule_record(data)
        entry = self.factory.build_schedule_action(user_id, ScheduleActionKind.SCHEDULED, record)
        stored = await self.retry.run("create_schedule", lambda: self.store.append(entry))
        logger.info(
            "로스팅 스케줄 생성",
            extra={"user_id": user_id, "schedule_id": stored.entity_id},
        )
        return self._require(stored.entity_id, [stored])

    async def _write(
        self,
        operation: str,
        user_id: str,
        schedule_id: str,
        build: Callable[[ScheduledRoast], LedgerEntry | None],
    ) -> ScheduledRoast:
        """이력 조회 → 엔트리 생성 → 저장 (한 트랜잭션, 재시도 단위)

        build가 None을 반환하면 기록하지 않고 현재 상태 반환.
        """

        async def write() -> ScheduledRoast:
            async with self.store.transaction():
                history = await self._history(user_id, schedule_id)
                current = self._require(schedule_id, history)
                entry = build(current)
                if entry is None:
                    logger.info(
                        "스케줄 상태상 기록하지 않음",
                        extra={
                            "operation": operation,
                            "schedule_id": schedule_id,
                            "state": current.state.value,
                        },
                    )
                    return current
                stored = await self.store.append(entry)
            return self._require(schedule_id, [*history, stored])

        return await self.retry.run(operation, write)

    async def edit(self, user_id: str, schedule_id: str, patch: SchedulePatch) -> ScheduledRoast:
        """스케줄 수정 (roast_edited)

        완료/삭제된 스케줄은 기록하지 않고 현재 상태 반환.
        """

        def build(current: ScheduledRoast) -> LedgerEntry | None:
            if not current.is_open:
                return None
            record = self.factory.patch_schedule_record(current.record, patch)
            return self.factory.build_schedule_action(
                user_id, ScheduleActionKind.EDITED, record, schedule_id
            )

        return await self._write("edit_schedule", user_id, schedule_id, build)

    def prepare_completion(
        self,
        scheduled: ScheduledRoast,
        outcome: RoastOutcome | None = None,
    ) -> LedgerEntry:
        """완료 엔트리 생성 (저장하지 않음, 로스팅 트랜잭션에 포함용)"""
        record = self.factory.complete_schedule_record(scheduled.record, outcome)
        return self.factory.build_schedule_action(
            scheduled.user_id, ScheduleActionKind.COMPLETED, record, scheduled.schedule_id
        )

    async def complete(
        self,
        user_id: str,
        schedule_id: str,
        outcome: RoastOutcome | None = None,
    ) -> ScheduledRoast:
        """스케줄 완료 (이후 수정 불가)"""

        def build(current: ScheduledRoast) -> LedgerEntry | None:
            if not current.is_open:
                return None
            return self.prepare_completion(current, outcome)

        completed = await self._write("complete_schedule", user_id, schedule_id, build)
        logger.info("로스팅 스케줄 완료", extra={"user_id": user_id, "schedule_id": schedule_id})
        return completed

    async def delete(self, user_id: str, schedule_id: str) -> ScheduledRoast:
        """스케줄 삭제 (종료 상태, 목록에서 제외)

        완료된 스케줄도 삭제(숨김) 가능. 이미 삭제된 스케줄은 기록하지 않음.
        """

        def build(current: ScheduledRoast) -> LedgerEntry | None:
            if current.deleted:
                return None
            return self.factory.build_schedule_action(
                user_id, ScheduleActionKind.DELETED, current.record, schedule_id
            )

        deleted = await self._write("delete_schedule", user_id, schedule_id, build)
        logger.info("로스팅 스케줄 삭제", extra={"user_id": user_id, "schedule_id": schedule_id})
        return deleted
