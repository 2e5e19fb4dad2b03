"""
Domain models for the stage orchestration engine.

These are pure data structures. Everything except the WorkflowRun aggregate
root is immutable (frozen dataclasses), so snapshots can be handed to stages,
scorers and concurrent runs without defensive copying.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from stagegate.domain.exceptions import RetryExhausted, WorkflowStateError


def utc_now() -> str:
    """ISO-8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


def _frozen_mapping(data: Mapping[Any, Any] | None = None) -> Mapping[Any, Any]:
    return MappingProxyType(dict(data or {}))


# =============================================================================
# ENUMERATIONS
# =============================================================================


class RequestCategory(Enum):
    """Discrete category of an incoming change request."""

    NEW_PROJECT = "new_project"
    BUG_FIX = "bug_fix"
    ENHANCEMENT = "enhancement"
    REFACTOR = "refactor"

    @property
    def tag(self) -> str:
        """Short tag used inside iteration identifiers."""
        return _CATEGORY_TAGS[self]


_CATEGORY_TAGS = {
    RequestCategory.NEW_PROJECT: "new-project",
    RequestCategory.BUG_FIX: "bugfix",
    RequestCategory.ENHANCEMENT: "enhancement",
    RequestCategory.REFACTOR: "refactor",
}


class WorkflowPhase(Enum):
    """Phase of a WorkflowRun (state machine nodes)."""

    CONTEXT_ANALYSIS = "context_analysis"
    PLANNING = "planning"
    DEVELOPMENT = "development"
    VALIDATION = "validation"
    COMPLETED = "completed"  # Terminal
    FAILED = "failed"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowPhase.COMPLETED, WorkflowPhase.FAILED)


# Phases that end with a quality gate, in execution order
GATED_PHASES: tuple[WorkflowPhase, ...] = (
    WorkflowPhase.PLANNING,
    WorkflowPhase.DEVELOPMENT,
    WorkflowPhase.VALIDATION,
)

_PHASE_TRANSITIONS: dict[WorkflowPhase, frozenset[WorkflowPhase]] = {
    WorkflowPhase.CONTEXT_ANALYSIS: frozenset(
        {WorkflowPhase.PLANNING, WorkflowPhase.FAILED}
    ),
    WorkflowPhase.PLANNING: frozenset(
        {WorkflowPhase.DEVELOPMENT, WorkflowPhase.FAILED}
    ),
    WorkflowPhase.DEVELOPMENT: frozenset(
        {WorkflowPhase.VALIDATION, WorkflowPhase.FAILED}
    ),
    WorkflowPhase.VALIDATION: frozenset(
        {WorkflowPhase.COMPLETED, WorkflowPhase.FAILED}
    ),
    WorkflowPhase.COMPLETED: frozenset(),
    WorkflowPhase.FAILED: frozenset(),
}


class StageStatus(Enum):
    """Lifecycle status of a single stage execution."""

    IDLE = "idle"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class Severity(Enum):
    """Severity of a quality gate verdict."""

    INFO = "info"
    WARNING = "warning"
    BLOCKING = "blocking"


class ArtifactKind(Enum):
    """What kind of document or output an artifact is."""

    REQUIREMENTS = "requirements"
    DESIGN = "design"
    IMPLEMENTATION = "implementation"
    TEST = "test"
    VALIDATION = "validation"
    OTHER = "other"


class StageRole(Enum):
    """Structural role of a stage inside a pipeline (used for insertion rules)."""

    REQUIREMENTS = "requirements"
    ARCHITECTURE = "architecture"
    IMPLEMENTATION = "implementation"
    TESTING = "testing"
    VALIDATION = "validation"
    SPECIALIST = "specialist"


class IterationStatus(Enum):
    """Status of an allocated iteration."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FeedbackActionKind(Enum):
    """Decision taken by the feedback loop after a failed gate or stage."""

    RETRY = "retry"
    ACCEPT_WITH_WARNINGS = "accept_with_warnings"
    ABORT = "abort"


# =============================================================================
# PROJECT CONTEXT
# =============================================================================


@dataclass(frozen=True)
class ProjectContext:
    """Immutable snapshot of a target project, created once per invocation."""

    project_id: str
    root: str = ""
    has_existing_project: bool = False
    artifact_paths: tuple[str, ...] = ()
    open_issues: tuple[str, ...] = ()
    recent_changes: tuple[str, ...] = ()
    current_iteration_id: str | None = None


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of request classification."""

    category: RequestCategory
    confidence: float  # 0.0 - 1.0
    match_counts: Mapping[RequestCategory, int] = field(
        default_factory=_frozen_mapping
    )
    reason: str = ""


# =============================================================================
# ARTIFACTS
# =============================================================================


@dataclass(frozen=True)
class Artifact:
    """
    A recorded, revisioned output of a stage.

    The logical identity of an artifact is its path; every update of the same
    path gets the next revision number and never replaces earlier revisions.
    """

    artifact_id: str
    path: str  # Logical path, the identity used for revisioning
    stage_name: str  # Producing stage
    iteration_id: str
    created_at: str  # ISO timestamp
    revision: int
    kind: ArtifactKind
    content: str = ""  # Opaque to the core


@dataclass(frozen=True)
class ProducedArtifact:
    """An artifact as returned by a stage runner, before revisioning."""

    path: str
    content: str = ""
    kind: ArtifactKind | None = None  # None: the stage's default kind


@dataclass(frozen=True)
class StageOutput:
    """What a stage task runner hands back to the executor."""

    artifacts: tuple[ProducedArtifact, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def failed(self) -> bool:
        return bool(self.errors)


# =============================================================================
# STAGES
# =============================================================================


@dataclass(frozen=True)
class StageSpec:
    """A planned unit of pipeline work. Immutable once planned."""

    name: str
    phase: WorkflowPhase
    role: StageRole
    artifact_kind: ArtifactKind
    payload: Mapping[str, Any] = field(default_factory=_frozen_mapping)
    requires_quality_check: bool = True
    depends_on: tuple[str, ...] = ()

    def with_feedback(self, feedback: str, attempt: int) -> "StageSpec":
        """Return a copy carrying re-work instructions for a retry."""
        payload = dict(self.payload)
        payload["feedback"] = feedback
        payload["attempt"] = attempt
        return replace(self, payload=MappingProxyType(payload))


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage execution attempt. Never reused across retries."""

    stage_name: str
    phase: WorkflowPhase  # Run phase during which the stage executed
    status: StageStatus
    attempt: int = 1
    artifacts: tuple[Artifact, ...] = ()
    errors: tuple[str, ...] = ()
    started_at: str = ""
    ended_at: str = ""
    cancelled: bool = False
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == StageStatus.SUCCEEDED


# =============================================================================
# QUALITY GATES
# =============================================================================


@dataclass(frozen=True)
class ScoreReport:
    """Score produced by a criterion scorer.

    ``critical`` flags a hard sub-condition (e.g. critical security findings)
    that fails the gate regardless of the aggregate score.
    """

    score: float
    critical: bool = False
    findings: tuple[str, ...] = ()


@dataclass(frozen=True)
class QualityCriterion:
    """Definition of one weighted quality dimension within a phase."""

    name: str
    weight: float  # 0.0 - 1.0, weights within a phase sum to 1.0
    threshold: float | None = None  # None: use the phase threshold
    description: str = ""


@dataclass(frozen=True)
class CriterionEvaluation:
    """A criterion together with its measured score."""

    name: str
    weight: float
    score: float
    threshold: float
    critical: bool = False
    findings: tuple[str, ...] = ()

    @property
    def passed(self) -> bool:
        return self.score >= self.threshold and not self.critical

    @property
    def shortfall(self) -> float:
        return max(0.0, self.threshold - self.score)


@dataclass(frozen=True)
class QualityGateResult:
    """Verdict of a quality gate evaluation."""

    phase: WorkflowPhase
    score: float  # Weighted aggregate, deterministic in criteria
    threshold: float
    passed: bool
    severity: Severity
    criteria: tuple[CriterionEvaluation, ...] = ()
    recommendations: tuple[str, ...] = ()
    critical_override: bool = False

    @property
    def shortfall(self) -> float:
        return max(0.0, self.threshold - self.score)

    def failing_criteria(self) -> tuple[CriterionEvaluation, ...]:
        return tuple(c for c in self.criteria if not c.passed)


# =============================================================================
# FEEDBACK AND ITERATIONS
# =============================================================================


@dataclass(frozen=True)
class FeedbackAction:
    """Decision of the feedback loop manager."""

    kind: FeedbackActionKind
    phase: WorkflowPhase
    target_stages: tuple[str, ...] = ()
    feedback: str = ""
    stage_feedback: Mapping[str, str] = field(default_factory=_frozen_mapping)
    reason: str = ""
    retry_count: int = 0


@dataclass(frozen=True)
class IterationRecord:
    """One allocated, ordinal-numbered iteration of a project."""

    ordinal: int
    iteration_id: str  # <ordinal>-<category-tag>-<timestamp>
    project_id: str
    category: RequestCategory
    run_id: str
    started_at: str
    status: IterationStatus = IterationStatus.RUNNING
    summary: str = ""


# =============================================================================
# WORKFLOW RUN (aggregate root) AND REPORT
# =============================================================================


@dataclass(frozen=True)
class RunMetrics:
    """Summary metrics of a run."""

    started_at: str
    finished_at: str | None = None
    score: float | None = None  # Mean of evaluated gate scores
    completion_fraction: float = 0.0


@dataclass
class WorkflowRun:
    """
    Mutable aggregate root for one orchestrator invocation.

    Owned exclusively by the orchestrator that created it and passed
    explicitly to every component call. Once a terminal phase is reached
    every mutator raises WorkflowStateError.
    """

    run_id: str
    project_id: str
    started_at: str = field(default_factory=utc_now)
    phase: WorkflowPhase = WorkflowPhase.CONTEXT_ANALYSIS
    category: RequestCategory | None = None
    iteration_id: str | None = None
    plan: tuple[StageSpec, ...] = ()
    skipped_stages: tuple[str, ...] = ()
    stage_history: list[StageResult] = field(default_factory=list)
    gate_results: dict[WorkflowPhase, QualityGateResult] = field(default_factory=dict)
    retry_counts: dict[WorkflowPhase, int] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)
    finished_at: str | None = None
    failure_reason: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    def _ensure_mutable(self) -> None:
        if self.is_terminal:
            raise WorkflowStateError(
                f"Run {self.run_id} is {self.phase.value}; no further changes allowed"
            )

    def assign_category(self, category: RequestCategory) -> None:
        self._ensure_mutable()
        if self.category is not None and self.category != category:
            raise WorkflowStateError(
                f"Run {self.run_id} already classified as {self.category.value}"
            )
        self.category = category

    def assign_iteration(self, iteration_id: str) -> None:
        self._ensure_mutable()
        self.iteration_id = iteration_id

    def assign_plan(
        self, plan: tuple[StageSpec, ...], skipped: tuple[str, ...] = ()
    ) -> None:
        self._ensure_mutable()
        self.plan = plan
        self.skipped_stages = skipped

    def enter_phase(self, phase: WorkflowPhase) -> None:
        """Transition the state machine; invalid transitions raise."""
        self._ensure_mutable()
        if phase not in _PHASE_TRANSITIONS[self.phase]:
            raise WorkflowStateError(
                f"Invalid transition {self.phase.value} -> {phase.value}"
            )
        self.phase = phase
        if phase.is_terminal:
            self.finished_at = utc_now()

    def complete(self) -> None:
        self.enter_phase(WorkflowPhase.COMPLETED)

    def fail(self, reason: str) -> None:
        self._ensure_mutable()
        self.failure_reason = reason
        self.notes.append(reason)
        self.phase = WorkflowPhase.FAILED
        self.finished_at = utc_now()

    def record_stage(self, result: StageResult) -> None:
        self._ensure_mutable()
        self.stage_history.append(result)

    def record_gate(self, result: QualityGateResult) -> None:
        self._ensure_mutable()
        self.gate_results[result.phase] = result

    def add_note(self, note: str) -> None:
        self._ensure_mutable()
        self.notes.append(note)

    def retry_count(self, phase: WorkflowPhase) -> int:
        return self.retry_counts.get(phase, 0)

    def increment_retry(self, phase: WorkflowPhase, max_retries: int) -> int:
        """Increment the phase retry counter; never beyond ``max_retries``."""
        self._ensure_mutable()
        current = self.retry_count(phase)
        if current + 1 > max_retries:
            raise RetryExhausted(phase.value, current, max_retries)
        self.retry_counts[phase] = current + 1
        return current + 1

    def attempts_of(self, stage_name: str) -> int:
        return sum(
            1
            for r in self.stage_history
            if r.stage_name == stage_name and r.status != StageStatus.SKIPPED
        )

    def artifacts(self) -> tuple[Artifact, ...]:
        """Every artifact recorded in this run, in recording order."""
        return tuple(a for r in self.stage_history for a in r.artifacts)

    def latest_artifacts(
        self, phase: WorkflowPhase | None = None
    ) -> tuple[Artifact, ...]:
        """Latest revision of each logical path (optionally for one phase)."""
        latest: dict[str, Artifact] = {}
        for result in self.stage_history:
            if phase is not None and result.phase != phase:
                continue
            for artifact in result.artifacts:
                current = latest.get(artifact.path)
                if current is None or artifact.revision > current.revision:
                    latest[artifact.path] = artifact
        return tuple(latest.values())

    def completion_fraction(self) -> float:
        planned = [s.name for s in self.plan if s.name not in self.skipped_stages]
        if not planned:
            return 0.0
        done = {r.stage_name for r in self.stage_history if r.succeeded}
        return round(sum(1 for name in planned if name in done) / len(planned), 4)

    def metrics(self) -> RunMetrics:
        scores = [g.score for g in self.gate_results.values()]
        return RunMetrics(
            started_at=self.started_at,
            finished_at=self.finished_at,
            score=round(sum(scores) / len(scores), 2) if scores else None,
            completion_fraction=self.completion_fraction(),
        )


@dataclass(frozen=True)
class WorkflowReport:
    """Complete account of a run, produced even for aborted runs."""

    run_id: str
    project_id: str
    iteration_id: str | None
    category: RequestCategory | None
    final_phase: WorkflowPhase
    overall_score_per_phase: Mapping[WorkflowPhase, float]
    gate_results: Mapping[WorkflowPhase, QualityGateResult]
    artifacts: tuple[Artifact, ...]
    stage_history: tuple[StageResult, ...]
    recommendations: tuple[str, ...]
    retry_counts: Mapping[WorkflowPhase, int]
    metrics: RunMetrics
    explanation: str = ""

    @property
    def succeeded(self) -> bool:
        return self.final_phase == WorkflowPhase.COMPLETED
