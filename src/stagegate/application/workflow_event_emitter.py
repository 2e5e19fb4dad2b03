"""Workflow event emission service."""

import uuid
from datetime import datetime, timezone

from stagegate.domain.interfaces import WorkflowEventStoreInterface
from stagegate.domain.models import FeedbackAction, QualityGateResult, WorkflowPhase
from stagegate.domain.workflow_event import WorkflowEvent, WorkflowEventType


class WorkflowEventEmitter:
    """Emits workflow events to a store.

    Provides convenience methods for emitting common run events during
    execution, handling ID generation and timestamps.
    """

    def __init__(self, event_store: WorkflowEventStoreInterface, run_id: str) -> None:
        self._store = event_store
        self._run_id = run_id

    def _emit(
        self,
        event_type: WorkflowEventType,
        phase: str = "",
        stage_name: str | None = None,
        attempt: int | None = None,
        score: float | None = None,
        verdict: str | None = None,
        targets: tuple[str, ...] = (),
        summary: str = "",
    ) -> str:
        return self._store.store_event(
            WorkflowEvent(
                event_id=str(uuid.uuid4()),
                event_type=event_type,
                run_id=self._run_id,
                phase=phase,
                stage_name=stage_name,
                attempt=attempt,
                score=score,
                verdict=verdict,
                targets=targets,
                summary=summary,
                created_at=self._now(),
            )
        )

    def _now(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    def run_start(self, summary: str) -> None:
        """Emit RUN_START when a run begins."""
        self._emit(WorkflowEventType.RUN_START, summary=summary[:500])

    def phase_enter(self, phase: WorkflowPhase) -> None:
        """Emit PHASE_ENTER on every state machine transition."""
        self._emit(WorkflowEventType.PHASE_ENTER, phase=phase.value)

    def stage_start(self, phase: WorkflowPhase, stage_name: str, attempt: int) -> None:
        """Emit STAGE_START when a stage attempt begins."""
        self._emit(
            WorkflowEventType.STAGE_START,
            phase=phase.value,
            stage_name=stage_name,
            attempt=attempt,
        )

    def stage_pass(self, phase: WorkflowPhase, stage_name: str, attempt: int) -> None:
        """Emit STAGE_PASS when a stage attempt succeeds."""
        self._emit(
            WorkflowEventType.STAGE_PASS,
            phase=phase.value,
            stage_name=stage_name,
            attempt=attempt,
            verdict="PASS",
        )

    def stage_fail(
        self, phase: WorkflowPhase, stage_name: str, attempt: int, errors: str
    ) -> None:
        """Emit STAGE_FAIL when a stage attempt fails."""
        self._emit(
            WorkflowEventType.STAGE_FAIL,
            phase=phase.value,
            stage_name=stage_name,
            attempt=attempt,
            verdict="FAIL",
            summary=errors[:500],
        )

    def gate_evaluated(self, result: QualityGateResult) -> None:
        """Emit GATE_EVALUATED with the aggregate score and verdict."""
        self._emit(
            WorkflowEventType.GATE_EVALUATED,
            phase=result.phase.value,
            score=result.score,
            verdict="PASS" if result.passed else "FAIL",
            summary=f"{result.severity.value}: threshold {result.threshold}",
        )

    def feedback(self, action: FeedbackAction) -> None:
        """Emit RETRY, ACCEPT_WITH_WARNINGS or ABORT for a feedback decision."""
        event_type, verdict = {
            "retry": (WorkflowEventType.RETRY, "RETRY"),
            "accept_with_warnings": (WorkflowEventType.ACCEPT_WITH_WARNINGS, "ACCEPT"),
            "abort": (WorkflowEventType.ABORT, "ABORT"),
        }[action.kind.value]
        self._emit(
            event_type,
            phase=action.phase.value,
            verdict=verdict,
            attempt=action.retry_count,
            targets=action.target_stages,
            summary=action.reason[:500],
        )

    def run_end(self, final_phase: WorkflowPhase, score: float | None) -> None:
        """Emit RUN_END once the run reaches a terminal phase."""
        self._emit(
            WorkflowEventType.RUN_END,
            phase=final_phase.value,
            score=score,
            verdict="PASS" if final_phase == WorkflowPhase.COMPLETED else "FAIL",
        )
