"""
State Machines

원장에서 재생(fold)되는 로스팅 스케줄의 상태 전이.
스케줄 엔트리는 순서대로 적용되고, 허용되지 않는 전이의 엔트리는 거부된다.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ScheduleState(str, Enum):
    """로스팅 스케줄 상태

    전이 규칙:
    - SCHEDULED → SCHEDULED: 수정 (상태 변화 없음)
    - SCHEDULED → COMPLETED: 로스팅 완료 (수정/재완료 불가)
    - SCHEDULED, COMPLETED → DELETED: 삭제 (종료, 목록에서 숨김)
    """
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    DELETED = "deleted"

    @property
    def is_closed(self) -> bool:
        """수정/완료 불가 (완료 또는 삭제)"""
        return self is not ScheduleState.SCHEDULED

    @property
    def is_terminal(self) -> bool:
        """나가는 전이 없음"""
        return self is ScheduleState.DELETED


class StateMachineError(Exception):
    """허용되지 않은 스케줄 전이"""

    def __init__(self, current: ScheduleState, target: ScheduleState):
        self.current = current
        self.target = target
        super().__init__(f"스케줄 상태 전이 불가: {current.value} → {target.value}")


_ALLOWED: dict[ScheduleState, frozenset[ScheduleState]] = {
    ScheduleState.SCHEDULED: frozenset(ScheduleState),
    ScheduleState.COMPLETED: frozenset({ScheduleState.DELETED}),
    ScheduleState.DELETED: frozenset(),
}


class ScheduleStateMachine:
    """로스팅 스케줄 상태 머신

    completed 이후에는 삭제만 가능, deleted 이후 엔트리는 상태를 바꾸지 못함.
    """

    def __init__(self, state: ScheduleState | str = ScheduleState.SCHEDULED):
        self.state = ScheduleState(state)
        self._history: list[tuple[ScheduleState, ScheduleState]] = []

    @staticmethod
    def target_for(completed: bool, deleted: bool) -> ScheduleState:
        """엔트리 플래그 → 목표 상태 (삭제 우선)"""
        if deleted:
            return ScheduleState.DELETED
        if completed:
            return ScheduleState.COMPLETED
        return ScheduleState.SCHEDULED

    @property
    def is_open(self) -> bool:
        """완료/삭제 전 (로스팅 매칭 대상)"""
        return not self.state.is_closed

    def can_apply(self, target: ScheduleState | str) -> bool:
        return ScheduleState(target) in _ALLOWED[self.state]

    def apply(self, target: ScheduleState | str) -> ScheduleState:
        """목표 상태로 전이

        Raises:
            StateMachineError: 완료 후 수정/재완료, 삭제 후 모든 전이
        """
        target = ScheduleState(target)
        if not self.can_apply(target):
            raise StateMachineError(self.state, target)

        self._history.append((self.state, target))
        if target is not self.state:
            logger.debug(f"스케줄 상태 전이: {self.state.value} → {target.value}")
        self.state = target
        return target

    @property
    def history(self) -> list[tuple[ScheduleState, ScheduleState]]:
        """적용된 전이 이력 (사본)"""
        return list(self._history)
