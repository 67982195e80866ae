"""
运行器状态机
"""
from enum import Enum
from typing import Dict, FrozenSet, Optional

from ..adapters.errors import StateTransitionError
from ..data_models.records import Variant


class RunnerState(str, Enum):
    IDLE = "idle"
    DATA_GENERATED = "data_generated"
    PHASE_BASIC_RUNNING = "phase_basic_running"
    PHASE_RELATIONAL_RUNNING = "phase_relational_running"
    PHASE_INDEXED_RUNNING = "phase_indexed_running"
    AGGREGATION_RUNNING = "aggregation_running"
    DONE = "done"
    ABORTED = "aborted"


PHASE_STATES: Dict[Variant, RunnerState] = {
    Variant.BASIC: RunnerState.PHASE_BASIC_RUNNING,
    Variant.RELATIONAL: RunnerState.PHASE_RELATIONAL_RUNNING,
    Variant.INDEXED: RunnerState.PHASE_INDEXED_RUNNING,
}

# 阶段固定顺序
PHASE_ORDER = (Variant.BASIC, Variant.RELATIONAL, Variant.INDEXED)

_PHASES = frozenset(PHASE_STATES.values())
_PHASE_VARIANTS = {state: variant for variant, state in PHASE_STATES.items()}

TRANSITIONS: Dict[RunnerState, FrozenSet[RunnerState]] = {
    RunnerState.IDLE: frozenset({RunnerState.DATA_GENERATED}),
    # 每个阶段（以及聚合阶段）之前都会生成该阶段的数据集，具体进入哪个阶段由 StateMachine 按顺序收窄
    RunnerState.DATA_GENERATED: _PHASES | {RunnerState.AGGREGATION_RUNNING},
    RunnerState.PHASE_BASIC_RUNNING: frozenset({RunnerState.DATA_GENERATED}),
    RunnerState.PHASE_RELATIONAL_RUNNING: frozenset({RunnerState.DATA_GENERATED}),
    RunnerState.PHASE_INDEXED_RUNNING: frozenset({RunnerState.DATA_GENERATED, RunnerState.DONE}),
    RunnerState.AGGREGATION_RUNNING: frozenset({RunnerState.DONE}),
    RunnerState.DONE: frozenset(),
    RunnerState.ABORTED: frozenset(),
}


class StateMachine:
    """记录状态转换历史，拒绝非法转换与跳过阶段"""

    def __init__(self):
        self.state = RunnerState.IDLE
        self.history = [RunnerState.IDLE]
        # 最近进入的阶段
        self.last_phase: Optional[Variant] = None

    def allowed_targets(self) -> FrozenSet[RunnerState]:
        if self.state != RunnerState.DATA_GENERATED:
            return TRANSITIONS[self.state]
        if self.last_phase is None:
            return frozenset({PHASE_STATES[PHASE_ORDER[0]]})
        if self.last_phase == PHASE_ORDER[-1]:
            # 一个规模的全部阶段已完成：开始下一个规模，或进入聚合阶段
            return frozenset({PHASE_STATES[PHASE_ORDER[0]], RunnerState.AGGREGATION_RUNNING})
        next_phase = PHASE_ORDER[PHASE_ORDER.index(self.last_phase) + 1]
        return frozenset({PHASE_STATES[next_phase]})

    def transition(self, target: RunnerState):
        target = RunnerState(target)
        if target == RunnerState.ABORTED:
            if self.finished:
                raise StateTransitionError(f"Cannot abort from {self.state.value}")
        elif target not in self.allowed_targets():
            raise StateTransitionError(f"Illegal transition {self.state.value} -> {target.value}")
        if target in _PHASES:
            self.last_phase = _PHASE_VARIANTS[target]
        self.state = target
        self.history.append(target)

    @property
    def finished(self) -> bool:
        return self.state in (RunnerState.DONE, RunnerState.ABORTED)
