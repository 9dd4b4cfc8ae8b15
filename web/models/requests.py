"""
요청 스키마 (Pydantic)

Web API 요청 데이터 파싱.
값의 의미 검증(양수 무게, 허용 사유 등)은 EntryFactory가 담당하고
실패 시 ValidationError → 422 응답.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from core.ledger.models import (
    AdjustmentInput,
    BrewInput,
    ConsumptionInput,
    EquipmentInput,
    GreenPurchaseInput,
    RoastCompletedInput,
    RoastOutcome,
    ScheduleInput,
    SchedulePatch,
)


class GreenPurchaseRequest(BaseModel):
    """생두 구매 요청"""

    name: str = Field(..., description="생두 이름")
    origin: str = Field(..., description="원산지")
    weight: Decimal = Field(..., description="구매 무게 (g)")
    farm: str | None = Field(default=None, description="농장")
    variety: str | None = Field(default=None, description="품종")
    process: str | None = Field(default=None, description="가공 방식")
    cost: Decimal | None = Field(default=None, description="구매 비용")
    purchase_date: date | None = Field(default=None, description="구매일 (기본: 오늘)")
    supplier: str | None = Field(default=None, description="공급처")
    notes: str | None = Field(default=None, description="메모")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Ethiopia Sidamo",
                    "origin": "Ethiopia",
                    "weight": "1000",
                    "process": "washed",
                    "supplier": "Green Bean Co.",
                },
            ]
        }
    }

    def to_input(self) -> GreenPurchaseInput:
        return GreenPurchaseInput(**self.model_dump())


class RoastCompletedRequest(BaseModel):
    """로스팅 완료 요청"""

    green_coffee_name: str = Field(..., description="사용한 생두 이름")
    roast_level: str = Field(..., description="로스팅 레벨 (light ~ dark)")
    green_weight: Decimal = Field(..., description="투입 생두 무게 (g)")
    roasted_weight: Decimal = Field(..., description="배출 원두 무게 (g)")
    name: str | None = Field(default=None, description="원두 이름 (기본: 생두 이름)")
    roast_date: date | None = Field(default=None, description="로스팅일 (기본: 오늘)")
    batch_number: int | None = Field(default=None, description="배치 번호 (기본: 자동 할당)")
    roast_notes: str | None = Field(default=None, description="로스팅 메모")
    equipment_id: str | None = Field(default=None, description="로스터 장비 ID")
    roast_profile: dict[str, Any] | None = Field(default=None, description="로스팅 프로파일")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "green_coffee_name": "Ethiopia Sidamo",
                    "roast_level": "medium",
                    "green_weight": "220",
                    "roasted_weight": "185",
                },
            ]
        }
    }

    def to_input(self) -> RoastCompletedInput:
        return RoastCompletedInput(**self.model_dump())


class ConsumptionRequest(BaseModel):
    """소비 요청"""

    coffee_name: str = Field(..., description="커피 이름")
    amount: Decimal = Field(..., description="소비량 (g)")
    entity_type: str = Field(default="roasted_coffee", description="green_coffee | roasted_coffee")
    consumption_type: str = Field(default="brew", description="brew, gift, sample, waste")
    notes: str | None = Field(default=None, description="메모")

    def to_input(self) -> ConsumptionInput:
        return ConsumptionInput(**self.model_dump())


class AdjustmentRequest(BaseModel):
    """재고 조정 요청"""

    coffee_name: str = Field(..., description="커피 이름")
    new_amount: Decimal = Field(..., description="실사 후 잔액 (g)")
    reason: str = Field(..., description="조정 사유 (physical_count, spillage, ...)")
    old_amount: Decimal | None = Field(default=None, description="화면에 표시된 기존 잔액")
    notes: str | None = Field(default=None, description="메모")

    def to_input(self) -> AdjustmentInput:
        return AdjustmentInput(**self.model_dump())


class ScheduleCreateRequest(BaseModel):
    """로스팅 스케줄 생성 요청"""

    coffee_name: str = Field(..., description="로스팅할 커피 이름")
    scheduled_date: date = Field(..., description="예정일")
    green_weight: Decimal = Field(..., description="투입 예정 생두 무게 (g)")
    target_roast_level: str = Field(..., description="목표 로스팅 레벨")
    green_coffee_name: str | None = Field(default=None, description="사용할 생두 이름")
    equipment_id: str | None = Field(default=None, description="로스터 장비 ID")
    notes: str | None = Field(default=None, description="메모")
    priority: str = Field(default="medium", description="low | medium | high")

    def to_input(self) -> ScheduleInput:
        return ScheduleInput(**self.model_dump())


class ScheduleUpdateRequest(BaseModel):
    """로스팅 스케줄 수정 요청 (지정한 필드만 변경)"""

    coffee_name: str | None = None
    scheduled_date: date | None = None
    green_weight: Decimal | None = None
    target_roast_level: str | None = None
    green_coffee_name: str | None = None
    equipment_id: str | None = None
    notes: str | None = None
    priority: str | None = None

    def to_patch(self) -> SchedulePatch:
        return SchedulePatch(**self.model_dump())


class ScheduleCompleteRequest(BaseModel):
    """로스팅 스케줄 완료 요청"""

    actual_roasted_weight: Decimal | None = Field(default=None, description="실제 원두 무게 (g)")
    actual_roast_level: str | None = Field(default=None, description="실제 로스팅 레벨")
    roast_notes: str | None = Field(default=None, description="로스팅 메모")
    completed_date: date | None = Field(default=None, description="완료일 (기본: 오늘)")

    def to_outcome(self) -> RoastOutcome:
        return RoastOutcome(**self.model_dump())


class BrewRequest(BaseModel):
    """브루 기록 요청"""

    coffee_name: str = Field(..., description="원두 이름")
    brew_method: str = Field(..., description="추출 방식 (V60, espresso, ...)")
    coffee_amount: Decimal = Field(..., description="원두 사용량 (g)")
    water_amount: Decimal = Field(..., description="물 사용량 (g)")
    grind_setting: str | None = Field(default=None, description="분쇄도")
    brew_time: int | None = Field(default=None, description="추출 시간 (초)")
    water_temp: Decimal | None = Field(default=None, description="물 온도 (℃)")
    rating: int | None = Field(default=None, description="평점 (1~5)")
    notes: str | None = Field(default=None, description="메모")
    equipment_id: str | None = Field(default=None, description="사용 장비 ID")

    def to_input(self) -> BrewInput:
        return BrewInput(**self.model_dump())


class EquipmentRequest(BaseModel):
    """장비 등록/수정 요청"""

    equipment_type: str = Field(..., description="grinder | roaster | brewer")
    brand: str = Field(..., description="제조사")
    model: str = Field(..., description="모델명")
    settings: dict[str, Any] | None = Field(default=None, description="장비 설정")
    is_active: bool = Field(default=True, description="사용 중 여부")

    def to_input(self) -> EquipmentInput:
        return EquipmentInput(**self.model_dump())
