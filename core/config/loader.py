"""
설정 로더

settings.yaml 로드 및 애플리케이션 설정 생성
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppConfig:
    """애플리케이션 설정 (settings.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    db_path: Path
    log_level: str = Defaults.LOG_LEVEL
    retry_max_attempts: int = Defaults.RETRY_MAX_ATTEMPTS
    retry_base_delay_sec: float = Defaults.RETRY_BASE_DELAY_SEC
    schedule_match_tolerance_g: Decimal = Defaults.SCHEDULE_MATCH_TOLERANCE_G
    upcoming_horizon_days: int = Defaults.UPCOMING_HORIZON_DAYS
    web_host: str = Defaults.WEB_HOST
    web_port: int = Defaults.WEB_PORT


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def default_config() -> AppConfig:
    """settings.yaml 없이 사용할 기본 설정"""
    return AppConfig(db_path=Paths.DEFAULT_DB)


def _require_int(section: str, key: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigLoadError(f"{section}.{key}는 정수여야 합니다: {value!r}")
    if value < minimum:
        raise ConfigLoadError(f"{section}.{key}는 {minimum} 이상이어야 합니다: {value}")
    return value


def _require_number(section: str, key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ConfigLoadError(f"{section}.{key}는 숫자여야 합니다: {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigLoadError(f"{section}.{key}는 숫자여야 합니다: {value!r}") from e
    if number < 0:
        raise ConfigLoadError(f"{section}.{key}는 음수일 수 없습니다: {value}")
    return number


def load_settings(path: Path | None = None) -> AppConfig:
    """settings.yaml 파일 로드

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        AppConfig 인스턴스

    Raises:
        ConfigLoadError: 명시한 파일이 없거나 형식이 잘못된 경우
    """
    explicit = path is not None
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        if explicit:
            raise ConfigLoadError(f"settings.yaml 파일을 찾을 수 없습니다: {path}")
        logger.info("settings.yaml 없음, 기본 설정 사용", extra={"path": str(path)})
        return default_config()

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        return default_config()
    if not isinstance(data, dict):
        raise ConfigLoadError("settings.yaml 최상위는 매핑이어야 합니다")

    database = data.get("database") or {}
    logging_cfg = data.get("logging") or {}
    retry = data.get("retry") or {}
    schedule = data.get("schedule") or {}
    web = data.get("web") or {}

    db_path_value = database.get("path")
    if db_path_value:
        db_path = Path(db_path_value)
        # 상대 경로는 프로젝트 루트 기준
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path
    else:
        db_path = Paths.DEFAULT_DB

    log_level = str(logging_cfg.get("level", Defaults.LOG_LEVEL)).upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigLoadError(f"유효하지 않은 로그 레벨입니다: '{log_level}'")

    retry_max_attempts = _require_int(
        "retry", "max_attempts", retry.get("max_attempts", Defaults.RETRY_MAX_ATTEMPTS), 1
    )
    retry_base_delay_sec = float(
        _require_number("retry", "base_delay_sec", retry.get("base_delay_sec", Defaults.RETRY_BASE_DELAY_SEC))
    )
    tolerance = _require_number(
        "schedule", "match_tolerance_g",
        schedule.get("match_tolerance_g", Defaults.SCHEDULE_MATCH_TOLERANCE_G),
    )
    horizon = _require_int(
        "schedule", "upcoming_horizon_days",
        schedule.get("upcoming_horizon_days", Defaults.UPCOMING_HORIZON_DAYS), 0,
    )
    web_port = _require_int("web", "port", web.get("port", Defaults.WEB_PORT), 1)

    return AppConfig(
        db_path=db_path,
        log_level=log_level,
        retry_max_attempts=retry_max_attempts,
        retry_base_delay_sec=retry_base_delay_sec,
        schedule_match_tolerance_g=tolerance,
        upcoming_horizon_days=horizon,
        web_host=str(web.get("host", Defaults.WEB_HOST)),
        web_port=web_port,
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _config: AppConfig | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._config is None:
            type(self)._config = load_settings(settings_path)

    @property
    def config(self) -> AppConfig:
        """로드된 설정"""
        assert self._config is not None
        return self._config

    @property
    def db_path(self) -> Path:
        """DB 경로"""
        return self.config.db_path

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._config = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        settings_path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
