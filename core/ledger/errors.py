"""
Ledger 예외 정의

- ValidationError: 저장 전 입력 검증 실패 (호출자가 입력을 고쳐야 함, 재시도 없음)
- PersistenceError: 저장소 오류 (transient면 재시도 대상)
- ConsistencyWarning: 데이터 품질 신호 (raise하지 않고 로깅 + 결과에 첨부)
"""

from typing import Any


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""
    pass


class ValidationError(LedgerError):
    """입력 검증 실패

    Args:
        field: 문제가 된 입력 필드명
        message: 사람이 읽을 수 있는 설명
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class PersistenceError(LedgerError):
    """저장소 오류

    Args:
        message: 오류 설명
        transient: 일시적 오류 여부 (연결 끊김, DB lock 등 → 재시도 가능)
        cause: 원본 예외
    """

    def __init__(
        self,
        message: str,
        transient: bool = False,
        cause: BaseException | None = None,
    ):
        self.transient = transient
        self.cause = cause
        super().__init__(message)


class ConsistencyWarning(UserWarning):
    """정합성 경고 (관측 전용)

    음수 잔액, 보정 엔트리 삽입 등 복구 가능한 데이터 품질 신호.
    """

    NEGATIVE_BALANCE = "negative_balance"
    STALE_ADJUSTMENT_BASE = "stale_adjustment_base"
    COMPENSATING_ENTRY = "compensating_entry"
    AUDIT_DIVERGENCE = "audit_divergence"

    def __init__(self, code: str, message: str, context: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ConsistencyWarning(code={self.code!r}, message={self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConsistencyWarning):
            return NotImplemented
        return (self.code, self.message, self.context) == (other.code, other.message, other.context)

    def __hash__(self) -> int:
        return hash((self.code, self.message))
