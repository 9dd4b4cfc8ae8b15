"""
로스팅 스케줄 API 라우트

GET    /api/users/{user_id}/schedules            - 목록 (삭제 제외)
GET    /api/users/{user_id}/schedules/upcoming   - 예정
GET    /api/users/{user_id}/schedules/overdue    - 지연
POST   /api/users/{user_id}/schedules            - 생성
GET    /api/users/{user_id}/schedules/{id}       - 단건
PATCH  /api/users/{user_id}/schedules/{id}       - 수정
POST   /api/users/{user_id}/schedules/{id}/complete
DELETE /api/users/{user_id}/schedules/{id}
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from core.ledger.service import LedgerService
from web.dependencies import get_ledger_service
from web.models.requests import (
    ScheduleCompleteRequest,
    ScheduleCreateRequest,
    ScheduleUpdateRequest,
)

router = APIRouter(prefix="/api/users/{user_id}/schedules", tags=["Schedules"])


@router.get("")
async def list_schedules(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[dict[str, Any]]:
    """스케줄 목록 (완료 포함, 예정일 순)"""
    return [s.to_dict() for s in await service.schedules.list(user_id)]


@router.get("/upcoming")
async def list_upcoming(
    user_id: str,
    days: int | None = Query(default=None, ge=0, le=365),
    service: LedgerService = Depends(get_ledger_service),
) -> list[dict[str, Any]]:
    """예정 스케줄 (미완료, 오늘 ~ days일 후)"""
    return [s.to_dict() for s in await service.schedules.list_upcoming(user_id, days)]


@router.get("/overdue")
async def list_overdue(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[dict[str, Any]]:
    """지연된 스케줄 (미완료, 예정일 경과)"""
    return [s.to_dict() for s in await service.schedules.list_overdue(user_id)]


@router.post("", status_code=201)
async def create_schedule(
    user_id: str,
    request: ScheduleCreateRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """스케줄 생성"""
    scheduled = await service.schedules.create(user_id, request.to_input())
    return scheduled.to_dict()


@router.get("/{schedule_id}")
async def get_schedule(
    user_id: str,
    schedule_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """스케줄 단건 (삭제된 스케줄 포함)"""
    scheduled = await service.schedules.get(user_id, schedule_id)
    return scheduled.to_dict()


@router.patch("/{schedule_id}")
async def update_schedule(
    user_id: str,
    schedule_id: str,
    request: ScheduleUpdateRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """스케줄 수정 (종료된 스케줄은 변경 없음)"""
    scheduled = await service.schedules.edit(user_id, schedule_id, request.to_patch())
    return scheduled.to_dict()


@router.post("/{schedule_id}/complete")
async def complete_schedule(
    user_id: str,
    schedule_id: str,
    request: ScheduleCompleteRequest | None = None,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """스케줄 완료"""
    outcome = request.to_outcome() if request is not None else None
    scheduled = await service.schedules.complete(user_id, schedule_id, outcome)
    return scheduled.to_dict()


@router.delete("/{schedule_id}")
async def delete_schedule(
    user_id: str,
    schedule_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """스케줄 삭제"""
    scheduled = await service.schedules.delete(user_id, schedule_id)
    return scheduled.to_dict()
