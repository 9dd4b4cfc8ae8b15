"""
재고 API 라우트

재고 스냅샷 및 커피별 감사 (엔트리 재생 내역)
"""

from typing import Any

from fastapi import APIRouter, Depends

from core.ledger.service import LedgerService
from web.dependencies import get_ledger_service
from web.models.responses import AuditResponse, EntryResponse, WarningResponse

router = APIRouter(prefix="/api/users/{user_id}/inventory", tags=["Inventory"])


@router.get("")
async def get_inventory(
    user_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> dict[str, Any]:
    """현재 재고 (잔액 0 이하 항목 제외)"""
    snapshot = await service.get_inventory(user_id)
    return snapshot.to_dict()


@router.get("/{entity_type}/{coffee_name}/audit", response_model=AuditResponse)
async def audit_inventory(
    user_id: str,
    entity_type: str,
    coffee_name: str,
    service: LedgerService = Depends(get_ledger_service),
) -> AuditResponse:
    """재고 감사

    스냅샷과 같은 집계로 계산한 합계와 엔트리별 누적 합계.
    """
    audit = await service.audit_inventory(user_id, entity_type, coffee_name)
    return AuditResponse(
        user_id=audit.user_id,
        entity_type=audit.entity_type.value,
        coffee_key=audit.coffee_key,
        total=str(audit.total),
        display_amount=str(audit.display_amount),
        running_totals=[str(t) for t in audit.running_totals],
        entity_totals={k: str(v) for k, v in audit.entity_totals.items()},
        entries=[EntryResponse.from_entry(e) for e in audit.entries],
        warnings=[WarningResponse.from_warning(w) for w in audit.warnings],
    )
