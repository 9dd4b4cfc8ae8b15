"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화
수량은 정밀도 유지를 위해 문자열로 직렬화.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core.ledger.errors import ConsistencyWarning
from core.ledger.models import LedgerEntry


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    version: str = Field(..., description="API 버전")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class ErrorResponse(BaseModel):
    """오류 응답"""

    detail: str = Field(..., description="오류 메시지")
    field: str | None = Field(default=None, description="문제가 된 입력 필드")
    transient: bool | None = Field(default=None, description="재시도 가능 여부")


class WarningResponse(BaseModel):
    """정합성 경고"""

    code: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_warning(cls, warning: ConsistencyWarning) -> "WarningResponse":
        return cls(code=warning.code, message=warning.message, context=warning.context)


class EntryResponse(BaseModel):
    """원장 엔트리 응답"""

    entry_id: str = Field(..., description="엔트리 ID")
    user_id: str = Field(..., description="사용자 ID")
    action_type: str = Field(..., description="행위 유형")
    entity_type: str = Field(..., description="엔티티 유형")
    entity_id: str = Field(..., description="엔티티 ID")
    amount_change: str = Field(..., description="수량 변화 (g)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="행위별 메타데이터")
    created_at: str | None = Field(default=None, description="기록 시각 (UTC)")
    seq: int | None = Field(default=None, description="저장 순번")

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "EntryResponse":
        return cls(**entry.to_dict())


class EntryListResponse(BaseModel):
    """원장 엔트리 목록 응답"""

    entries: list[EntryResponse] = Field(default_factory=list)
    limit: int = Field(..., description="페이지 크기")
    offset: int = Field(..., description="시작 위치")


class RoastResponse(BaseModel):
    """로스팅 완료 응답"""

    roasted_entry: EntryResponse
    green_entry: EntryResponse
    schedule_entry: EntryResponse | None = None
    schedule: dict[str, Any] | None = None


class BrewResponse(BaseModel):
    """브루 기록 응답"""

    brew_entry: EntryResponse
    consumption_entry: EntryResponse


class AuditResponse(BaseModel):
    """재고 감사 응답"""

    user_id: str
    entity_type: str
    coffee_key: str
    total: str = Field(..., description="부호 있는 실제 합계")
    display_amount: str = Field(..., description="표시용 잔액 (음수는 0)")
    running_totals: list[str] = Field(default_factory=list)
    entity_totals: dict[str, str] = Field(default_factory=dict)
    entries: list[EntryResponse] = Field(default_factory=list)
    warnings: list[WarningResponse] = Field(default_factory=list)
