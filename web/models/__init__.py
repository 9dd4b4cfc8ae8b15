"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    AdjustmentRequest,
    BrewRequest,
    ConsumptionRequest,
    EquipmentRequest,
    GreenPurchaseRequest,
    RoastCompletedRequest,
    ScheduleCompleteRequest,
    ScheduleCreateRequest,
    ScheduleUpdateRequest,
)
from web.models.responses import (
    AuditResponse,
    BrewResponse,
    EntryListResponse,
    EntryResponse,
    ErrorResponse,
    HealthResponse,
    RoastResponse,
    WarningResponse,
)

__all__ = [
    # Requests
    "GreenPurchaseRequest",
    "RoastCompletedRequest",
    "ConsumptionRequest",
    "AdjustmentRequest",
    "ScheduleCreateRequest",
    "ScheduleUpdateRequest",
    "ScheduleCompleteRequest",
    "BrewRequest",
    "EquipmentRequest",
    # Responses
    "AuditResponse",
    "BrewResponse",
    "EntryListResponse",
    "EntryResponse",
    "ErrorResponse",
    "HealthResponse",
    "RoastResponse",
    "WarningResponse",
]
