"""EntryStore 통합 테스트"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.entry_builder import EntryFactory
from core.ledger.errors import PersistenceError
from core.ledger.models import (
    ConsumptionInput,
    GreenPurchaseInput,
    LedgerEntry,
    RoastCompletedInput,
    ScheduleInput,
)
from core.ledger.store import EntryFilter, EntryStore
from core.ledger.types import ActionType, EntityType, ScheduleActionKind

USER = "user-1"
FIXED_NOW = datetime(2026, 10, 19, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def factory() -> EntryFactory:
    """저장소 시계와 분리된 고정 시각 생성기"""
    return EntryFactory(lambda: FIXED_NOW)


@pytest.fixture
def store(db: SQLiteAdapter, clock: Callable[[], datetime]) -> EntryStore:
    return EntryStore(db, clock)


def purchase(factory: EntryFactory, name: str = "Kenya AA", weight: str = "1000") -> LedgerEntry:
    return factory.build_green_purchase(USER, GreenPurchaseInput(name, "Kenya", weight))


class TestAppend:
    """엔트리 저장"""

    @pytest.mark.asyncio
    async def test_append_assigns_seq_and_created_at(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """저장 시 seq, created_at 부여"""
        entry = purchase(factory)
        assert not entry.is_stored

        stored = await store.append(entry)

        assert stored.is_stored
        assert stored.seq == 1
        assert stored.created_at == FIXED_NOW
        assert stored.entry_id == entry.entry_id
        assert stored.metadata == entry.metadata

    @pytest.mark.asyncio
    async def test_round_trip_exact_decimal(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """Decimal 수량과 메타데이터가 그대로 복원"""
        stored = await store.append(purchase(factory, weight="233.3"))

        [loaded] = await store.query_by_entity(USER, stored.entity_id)

        assert loaded == stored
        assert loaded.amount_change == Decimal("233.3")

    @pytest.mark.asyncio
    async def test_append_many_shares_transaction(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """append_many: 같은 created_at, 연속 seq"""
        roasted, green = factory.build_roast_completed(
            USER, RoastCompletedInput("Kenya AA", "medium", "220", "185"), batch_number=1
        )

        stored = await store.append_many([roasted, green])

        assert [e.seq for e in stored] == [1, 2]
        assert stored[0].created_at == stored[1].created_at
        assert await store.count_by_user(USER) == 2

    @pytest.mark.asyncio
    async def test_append_many_all_or_nothing(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """중간 실패 시 아무것도 저장되지 않음"""
        first = purchase(factory)
        duplicate = replace(purchase(factory, weight="5"), entry_id=first.entry_id)

        with pytest.raises(PersistenceError) as exc_info:
            await store.append_many([first, duplicate])

        assert exc_info.value.transient is False
        assert await store.count_by_user(USER) == 0

    @pytest.mark.asyncio
    async def test_append_stored_entry_rejected(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """이미 저장된 엔트리 재저장 거부"""
        stored = await store.append(purchase(factory))

        with pytest.raises(PersistenceError) as exc_info:
            await store.append(stored)

        assert exc_info.value.transient is False
        assert await store.count_by_user(USER) == 1

    @pytest.mark.asyncio
    async def test_append_empty(self, store: EntryStore) -> None:
        """빈 목록 → 빈 결과"""
        assert await store.append_many([]) == []


class TestImmutability:
    """append-only 보장"""

    @pytest.mark.asyncio
    async def test_update_rejected(
        self, store: EntryStore, db: SQLiteAdapter, factory: EntryFactory
    ) -> None:
        """UPDATE → 재시도 불가 오류, 값 유지"""
        stored = await store.append(purchase(factory))

        with pytest.raises(PersistenceError) as exc_info:
            async with store.transaction():
                await db.execute(
                    "UPDATE ledger_entry SET amount_change = '1' WHERE entry_id = ?",
                    (stored.entry_id,),
                )

        assert exc_info.value.transient is False
        [loaded] = await store.query_by_entity(USER, stored.entity_id)
        assert loaded.amount_change == Decimal("1000")

    @pytest.mark.asyncio
    async def test_delete_rejected(
        self, store: EntryStore, db: SQLiteAdapter, factory: EntryFactory
    ) -> None:
        """DELETE → 재시도 불가 오류, 엔트리 유지"""
        await store.append(purchase(factory))

        with pytest.raises(PersistenceError) as exc_info:
            async with store.transaction():
                await db.execute("DELETE FROM ledger_entry")

        assert exc_info.value.transient is False
        assert await store.count_by_user(USER) == 1

    @pytest.mark.asyncio
    async def test_unknown_action_type_rejected(
        self, store: EntryStore, db: SQLiteAdapter
    ) -> None:
        """CHECK 제약: 알 수 없는 action_type"""
        with pytest.raises(PersistenceError) as exc_info:
            async with store.transaction():
                await db.execute(
                    """
                    INSERT INTO ledger_entry (
                        entry_id, user_id, action_type, entity_type, entity_id,
                        amount_change, metadata_json, created_at
                    ) VALUES ('e1', ?, 'refund', 'green_coffee', 'x', '1', '{}', ?)
                    """,
                    (USER, FIXED_NOW.isoformat()),
                )

        assert exc_info.value.transient is False
        assert await store.count_by_user(USER) == 0


class TestQuery:
    """원장 조회"""

    @pytest.mark.asyncio
    async def test_newest_first_by_default(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """기본 정렬: 최신 순"""
        first = await store.append(purchase(factory, "Kenya AA"))
        second = await store.append(purchase(factory, "Brazil Santos"))

        entries = await store.query_by_user(USER)

        assert [e.entry_id for e in entries] == [second.entry_id, first.entry_id]

    @pytest.mark.asyncio
    async def test_same_timestamp_ordered_by_seq(
        self, db: SQLiteAdapter, fixed_clock: Callable[[], datetime]
    ) -> None:
        """같은 created_at이면 seq 순"""
        store = EntryStore(db, fixed_clock)
        factory = EntryFactory(fixed_clock)
        stored = [await store.append(purchase(factory, weight=str(w))) for w in (100, 200, 300)]

        entries = await store.query_by_user(USER, EntryFilter(ascending=True))

        assert {e.created_at for e in entries} == {FIXED_NOW}
        assert [e.entry_id for e in entries] == [e.entry_id for e in stored]

    @pytest.mark.asyncio
    async def test_query_by_entity_repeatable(
        self, store: EntryStore, factory: EntryFactory
    ) -> None:
        """재생 커서는 항상 같은 순서"""
        green_id = (await store.append(purchase(factory, weight="500"))).entity_id
        await store.append(purchase(factory, weight="300"))
        await store.append(
            factory.build_consumption(
                USER,
                ConsumptionInput("Kenya AA", "100", entity_type="green_coffee", consumption_type="sample"),
            )
        )

        first = await store.query_by_entity(USER, green_id)
        second = await store.query_by_entity(USER, green_id)

        assert first == second
        assert [e.amount_change for e in first] == [Decimal("500"), Decimal("300"), Decimal("-100")]

    @pytest.mark.asyncio
    async def test_user_isolation(self, store: EntryStore, factory: EntryFactory) -> None:
        """다른 사용자 엔트리는 보이지 않음"""
        await store.append(purchase(factory))
        await store.append(
            factory.build_green_purchase("user-2", GreenPurchaseInput("Kenya AA", "Kenya", "50"))
        )

        assert len(await store.query_by_user(USER)) == 1
        assert len(await store.query_by_user("user-2")) == 1

    @pytest.mark.asyncio
    async def test_filters(self, store: EntryStore, factory: EntryFactory) -> None:
        """action_type / entity_type / metadata 필터"""
        await store.append(purchase(factory))
        await store.append_many(
            factory.build_roast_completed(
                USER, RoastCompletedInput("Kenya AA", "medium", "220", "185"), batch_number=1
            )
        )
        record = factory.schedule_record(ScheduleInput("Kenya AA", "2026-10-20", "220", "medium"))
        await store.append(factory.build_schedule_action(USER, ScheduleActionKind.SCHEDULED, record))

        consumptions = await store.query_by_user(
            USER, EntryFilter(action_types=[ActionType.CONSUMPTION])
        )
        roasted = await store.query_by_user(
            USER, EntryFilter(entity_types=["roasted_coffee"])
        )
        schedules = await store.query_by_user(
            USER, EntryFilter(metadata={"schedule_entry": True})
        )
        roast_consumption = await store.query_by_user(
            USER, EntryFilter(metadata={"consumption_type": "roast"})
        )

        assert [e.entity_type for e in consumptions] == [EntityType.GREEN_COFFEE]
        assert [e.action_type for e in roasted] == [ActionType.ROAST_COMPLETED]
        assert [e.action_type for e in schedules] == [ActionType.ROAST_SCHEDULED]
        assert len(roast_consumption) == 1

    @pytest.mark.asyncio
    async def test_limit_offset(self, store: EntryStore, factory: EntryFactory) -> None:
        """페이지 조회"""
        for weight in range(1, 6):
            await store.append(purchase(factory, weight=str(weight)))

        page = await store.query_by_user(USER, EntryFilter(ascending=True), limit=2, offset=1)

        assert [e.amount_change for e in page] == [Decimal("2"), Decimal("3")]


class TestBatchCounter:
    """배치 번호 카운터"""

    @pytest.mark.asyncio
    async def test_increments_per_user(self, store: EntryStore) -> None:
        """사용자별 1부터 증가"""
        assert await store.next_batch_number(USER) == 1
        assert await store.next_batch_number(USER) == 2
        assert await store.next_batch_number("user-2") == 1

    @pytest.mark.asyncio
    async def test_requested_number_raises_counter(self, store: EntryStore) -> None:
        """지정 번호는 그대로 사용, 카운터는 max로 이동"""
        assert await store.next_batch_number(USER) == 1
        assert await store.next_batch_number(USER, requested=10) == 10
        assert await store.next_batch_number(USER) == 11
        assert await store.next_batch_number(USER, requested=5) == 5
        assert await store.next_batch_number(USER) == 12

    @pytest.mark.asyncio
    async def test_rolled_back_with_transaction(self, store: EntryStore) -> None:
        """바깥 트랜잭션이 실패하면 번호도 반환"""
        with pytest.raises(RuntimeError):
            async with store.transaction():
                assert await store.next_batch_number(USER) == 1
                raise RuntimeError("roast failed")

        assert await store.next_batch_number(USER) == 1


class TestConnectionErrors:
    """연결 오류"""

    @pytest.mark.asyncio
    async def test_closed_connection_is_transient(
        self, store: EntryStore, db: SQLiteAdapter, factory: EntryFactory
    ) -> None:
        """연결 종료 상태 → transient"""
        await db.close()

        with pytest.raises(PersistenceError) as exc_info:
            await store.append(purchase(factory))
        assert exc_info.value.transient is True

        with pytest.raises(PersistenceError) as exc_info:
            await store.query_by_user(USER)
        assert exc_info.value.transient is True
