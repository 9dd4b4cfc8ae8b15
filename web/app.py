"""
FastAPI 애플리케이션

라우터 등록, 예외 변환 및 앱 설정.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.errors import PersistenceError, ValidationError
from core.ledger.schema import init_ledger_schema
from core.logging import setup_logging
from web.routes import equipment, health, inventory, ledger, schedules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    settings = get_settings()
    setup_logging("web", level=settings.config.log_level)

    # 시작 시 - DB 스키마 자동 초기화
    async with SQLiteAdapter(settings.db_path) as db:
        await init_ledger_schema(db)
    logger.info("Web: 원장 스키마 준비 완료", extra={"db_path": str(settings.db_path)})

    yield


app = FastAPI(
    title="RoastLedger API",
    description="커피 로스팅 원장 / 재고 API",
    version=health.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS 설정 (개발용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================================================
# 예외 변환
# =========================================================================


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """입력 검증 실패 → 422"""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    """저장소 오류 → 503 (재시도 가능) / 409 (제약 위반)"""
    logger.error(
        "저장소 오류",
        extra={"path": request.url.path, "transient": exc.transient, "error": str(exc)},
    )
    return JSONResponse(
        status_code=503 if exc.transient else 409,
        content={"detail": str(exc), "transient": exc.transient},
    )


# =========================================================================
# API 라우터 등록
# =========================================================================

for module in (health, ledger, inventory, schedules, equipment):
    app.include_router(module.router)
