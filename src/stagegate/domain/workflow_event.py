"""Workflow execution trace models."""

from dataclasses import dataclass
from enum import Enum


class WorkflowEventType(str, Enum):
    """Types of workflow execution events."""

    RUN_START = "RUN_START"
    PHASE_ENTER = "PHASE_ENTER"
    STAGE_START = "STAGE_START"
    STAGE_PASS = "STAGE_PASS"
    STAGE_FAIL = "STAGE_FAIL"
    GATE_EVALUATED = "GATE_EVALUATED"
    RETRY = "RETRY"
    ACCEPT_WITH_WARNINGS = "ACCEPT_WITH_WARNINGS"
    ABORT = "ABORT"
    RUN_END = "RUN_END"


@dataclass(frozen=True)
class WorkflowEvent:
    """Single workflow state transition.

    Captures state changes of a run for observability and debugging.
    """

    event_id: str
    event_type: WorkflowEventType
    run_id: str
    phase: str = ""
    stage_name: str | None = None
    attempt: int | None = None
    score: float | None = None
    verdict: str | None = None  # "PASS", "FAIL", "RETRY", "ACCEPT", "ABORT"
    targets: tuple[str, ...] = ()
    summary: str = ""
    created_at: str = ""  # ISO 8601
