"""
장비 API 라우트

장비 등록/수정은 equipment 엔트리로 기록되고 목록은 최신 엔트리 기준.
"""

from typing import Any

from fastapi import APIRouter, Depends

from core.ledger.service import LedgerService
from web.dependencies import get_ledger_service
from web.models.requests import EquipmentRequest

router = APIRouter(prefix="/api/users/{user_id}/equipment", tags=["Equipment"])


@router.get("")
async def list_equipment(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> list[dict[str, Any]]:
    """장비 목록"""
    return [r.to_dict() for r in await service.list_equipment(user_id)]


@router.post("", status_code=201)
async def add_equipment(
    user_id: str,
    request: EquipmentRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """장비 등록"""
    record = await service.record_equipment(user_id, request.to_input())
    return record.to_dict()


@router.put("/{equipment_id}")
async def update_equipment(
    user_id: str,
    equipment_id: str,
    request: EquipmentRequest,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """장비 수정"""
    record = await service.record_equipment(user_id, request.to_input(), equipment_id)
    return record.to_dict()
