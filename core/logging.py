"""
로깅 설정 유틸리티

Web 서버와 감사 스크립트가 공유하는 로깅 설정.
루트 로거에 콘솔 핸들러와 프로세스별 일 단위 롤링 파일 핸들러를 붙인다.
레벨은 settings.yaml의 logging.level을 따른다.

사용법:
    from core.logging import setup_logging
    setup_logging("web", level=settings.config.log_level)
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Paths

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_RETENTION_DAYS = 7

# 요청/쿼리마다 로그를 남기는 라이브러리 로거
QUIET_LOGGERS = ("aiosqlite", "asyncio", "uvicorn.access", "httpx")


def log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    """프로세스별 로그 파일 경로 (logs/<process>.log)"""
    return (log_dir or Paths.LOGS_DIR) / f"{process_name}.log"


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=path,
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"
    return handler


def setup_logging(
    process_name: str,
    level: str | int = logging.INFO,
    log_dir: Path | None = None,
    to_file: bool = True,
) -> logging.Logger:
    """루트 로거 초기화

    여러 번 호출해도 핸들러가 중복되지 않도록 기존 핸들러를 교체한다.

    Args:
        process_name: 프로세스 이름 ("web", "audit"), 로그 파일 이름으로 사용
        level: 로그 레벨 이름 또는 숫자
        log_dir: 로그 디렉토리 (None이면 Paths.LOGS_DIR)
        to_file: False면 콘솔만 사용

    Returns:
        루트 Logger
    """
    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    path = log_file_path(process_name, log_dir)
    if to_file:
        handlers.append(_file_handler(path))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        f"로깅 초기화: {process_name}",
        extra={
            "level": logging.getLevelName(numeric_level),
            "log_file": str(path) if to_file else None,
        },
    )
    return root
