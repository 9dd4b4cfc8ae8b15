"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수 (settings.yaml에 값이 없을 때 사용)"""

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    # PersistenceError(transient) 재시도
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SEC: float = 0.1

    # 스케줄 매칭 허용 오차 (그램)
    SCHEDULE_MATCH_TOLERANCE_G: Decimal = Decimal("5")
    UPCOMING_HORIZON_DAYS: int = 7

    # 원장 조회 페이지
    ENTRIES_PAGE_SIZE: int = 50
    ENTRIES_MAX_PAGE_SIZE: int = 500


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    DEFAULT_DB: Path = DATA_DIR / "roastledger.db"
