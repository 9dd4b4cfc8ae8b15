"""
원장 API 라우트

재고 이동 기록 (생두 구매, 로스팅 완료, 소비, 조정, 브루) 및 엔트리 조회
"""

from enum import Enum
from typing import TypeVar

from fastapi import APIRouter, Depends, Query

from core.constants import Defaults
from core.ledger.errors import ValidationError
from core.ledger.service import LedgerService
from core.ledger.store import EntryFilter
from core.ledger.types import ActionType, EntityType
from web.dependencies import get_ledger_service
from web.models.requests import (
    AdjustmentRequest,
    BrewRequest,
    ConsumptionRequest,
    GreenPurchaseRequest,
    RoastCompletedRequest,
)
from web.models.responses import (
    BrewResponse,
    EntryListResponse,
    EntryResponse,
    RoastResponse,
)

router = APIRouter(prefix="/api/users/{user_id}", tags=["Ledger"])

E = TypeVar("E", bound=Enum)


def _parse_enums(field: str, values: list[str] | None, enum_cls: type[E]) -> list[E]:
    """쿼리 문자열 → Enum 목록"""
    parsed: list[E] = []
    for value in values or []:
        try:
            parsed.append(enum_cls(value))
        except ValueError as e:
            raise ValidationError(field, f"허용되지 않는 값: {value!r}") from e
    return parsed


# =========================================================================
# 기록
# =========================================================================


@router.post("/green-purchases", response_model=EntryResponse, status_code=201)
async def record_green_purchase(
    user_id: str,
    request: GreenPurchaseRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> EntryResponse:
    """생두 구매 기록"""
    entry = await service.record_green_purchase(user_id, request.to_input())
    return EntryResponse.from_entry(entry)


@router.post("/roasts", response_model=RoastResponse, status_code=201)
async def record_roast_completed(
    user_id: str,
    request: RoastCompletedRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> RoastResponse:
    """로스팅 완료 기록

    원두 증가 + 생두 차감 + (매칭 시) 스케줄 완료를 함께 기록.
    """
    result = await service.record_roast_completed(user_id, request.to_input())
    return RoastResponse(
        roasted_entry=EntryResponse.from_entry(result.roasted_entry),
        green_entry=EntryResponse.from_entry(result.green_entry),
        schedule_entry=(
            EntryResponse.from_entry(result.schedule_entry) if result.schedule_entry else None
        ),
        schedule=result.schedule.to_dict() if result.schedule else None,
    )


@router.post("/consumptions", response_model=EntryResponse, status_code=201)
async def record_consumption(
    user_id: str,
    request: ConsumptionRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> EntryResponse:
    """소비 기록"""
    entry = await service.record_consumption(user_id, request.to_input())
    return EntryResponse.from_entry(entry)


@router.post("/adjustments/{entity_type}", response_model=EntryResponse, status_code=201)
async def record_adjustment(
    user_id: str,
    entity_type: str,
    request: AdjustmentRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> EntryResponse:
    """재고 조정 기록 (entity_type: green_coffee | roasted_coffee)"""
    entry = await service.record_adjustment(user_id, entity_type, request.to_input())
    return EntryResponse.from_entry(entry)


@router.post("/brews", response_model=BrewResponse, status_code=201)
async def record_brew(
    user_id: str,
    request: BrewRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> BrewResponse:
    """브루 기록 (원두 소비 포함)"""
    result = await service.record_brew(user_id, request.to_input())
    return BrewResponse(
        brew_entry=EntryResponse.from_entry(result.brew_entry),
        consumption_entry=EntryResponse.from_entry(result.consumption_entry),
    )


# =========================================================================
# 조회
# =========================================================================


@router.get("/entries", response_model=EntryListResponse)
async def get_entries(
    user_id: str,
    action_type: list[str] | None = Query(default=None),
    entity_type: list[str] | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    limit: int = Query(default=Defaults.ENTRIES_PAGE_SIZE, ge=1, le=Defaults.ENTRIES_MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    service: LedgerService = Depends(get_ledger_service),
) -> EntryListResponse:
    """원장 엔트리 목록 (최신 순)"""
    entry_filter = EntryFilter(
        action_types=_parse_enums("action_type", action_type, ActionType),
        entity_types=_parse_enums("entity_type", entity_type, EntityType),
        entity_id=entity_id,
    )
    entries = await service.get_entries(user_id, limit, offset, entry_filter)
    return EntryListResponse(
        entries=[EntryResponse.from_entry(e) for e in entries],
        limit=limit,
        offset=offset,
    )


@router.get("/entities/{entity_id}/history", response_model=list[EntryResponse])
async def get_entity_history(
    user_id: str,
    entity_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[EntryResponse]:
    """엔티티 이력 (오래된 순)"""
    entries = await service.get_entity_history(user_id, entity_id)
    return [EntryResponse.from_entry(e) for e in entries]
