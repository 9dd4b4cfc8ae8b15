"""
저장소 재시도 정책

transient PersistenceError(DB lock, busy, 연결 끊김)만 지수 백오프로 재시도.
재시도 단위는 커밋 전까지의 쓰기 블록 하나여야 한다
(커밋 이후의 조회를 같은 단위에 넣으면 재시도 시 쓰기가 중복됨).
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from core.constants import Defaults
from core.ledger.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """지수 백오프 재시도

    n번째 재시도 전 대기: base_delay_sec * 2**(n-1)

    Args:
        max_attempts: 최대 시도 횟수 (첫 시도 포함)
        base_delay_sec: 첫 재시도 전 대기
        sleep: 대기 함수 (테스트에서 주입)
    """

    def __init__(
        self,
        max_attempts: int = Defaults.RETRY_MAX_ATTEMPTS,
        base_delay_sec: float = Defaults.RETRY_BASE_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("retry_max_attempts는 1 이상이어야 합니다")
        self.max_attempts = max_attempts
        self.base_delay_sec = base_delay_sec
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_sec * (2 ** (attempt - 1))

    async def run(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            try:
                return await func()
            except PersistenceError as e:
                attempt += 1
                if not e.transient or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "일시적 저장소 오류, 재시도",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "delay_sec": delay,
                        "error": str(e),
                    },
                )
                await self._sleep(delay)
