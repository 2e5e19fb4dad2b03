"""
WorkflowOrchestrator: drives a request through the phase state machine.

ContextAnalysis -> Planning -> Development -> Validation -> Completed,
with Failed reachable from every non-terminal phase. Each gated phase runs
its planned stages, evaluates its quality gate and acts on the feedback
loop's decision. Recoverable errors are converted into the WorkflowReport;
only configuration problems and malformed requests raise.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from stagegate.application.classifier import RequestClassifier
from stagegate.application.feedback_loop import FeedbackLoopManager
from stagegate.application.iteration_tracker import IterationTracker
from stagegate.application.planner import PipelinePlanner
from stagegate.application.quality_gate import QualityGateEvaluator
from stagegate.application.request import WorkflowRequest
from stagegate.application.stage_executor import StageExecutor
from stagegate.application.workflow_event_emitter import WorkflowEventEmitter
from stagegate.domain.cancellation import CancellationToken
from stagegate.domain.exceptions import ClassificationAmbiguous, WorkflowCancelled
from stagegate.domain.interfaces import (
    CriterionScorerInterface,
    StageTaskRunnerInterface,
    WorkflowEventStoreInterface,
)
from stagegate.domain.models import (
    GATED_PHASES,
    Artifact,
    FeedbackAction,
    FeedbackActionKind,
    IterationStatus,
    ProjectContext,
    StageResult,
    StageSpec,
    StageStatus,
    WorkflowPhase,
    WorkflowReport,
    WorkflowRun,
)
from stagegate.domain.rules import CRITERION_OWNERS, GateConfiguration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Static orchestrator settings, shared by every run."""

    gates: GateConfiguration = field(default_factory=GateConfiguration)
    max_retries: int = 2  # Per phase
    stage_timeout_seconds: float | None = None


@dataclass
class _RunSession:
    """Per-invocation collaborators; keeps the orchestrator reentrant."""

    run: WorkflowRun
    request: WorkflowRequest
    context: ProjectContext
    cancellation: CancellationToken
    evaluator: QualityGateEvaluator
    feedback: FeedbackLoopManager
    emitter: WorkflowEventEmitter | None
    last_phase: WorkflowPhase = WorkflowPhase.CONTEXT_ANALYSIS
    warnings: list[str] = field(default_factory=list)


class WorkflowOrchestrator:
    """
    Runs change requests end to end.

    A single orchestrator may serve concurrent runs on separate threads;
    all per-run state lives in the WorkflowRun and its session.
    """

    def __init__(
        self,
        runners: Mapping[str, StageTaskRunnerInterface],
        scorers: Mapping[str, CriterionScorerInterface],
        tracker: IterationTracker,
        config: OrchestratorConfig | None = None,
        classifier: RequestClassifier | None = None,
        planner: PipelinePlanner | None = None,
        event_store: WorkflowEventStoreInterface | None = None,
        ownership: Mapping[str, tuple[str, ...]] = CRITERION_OWNERS,
    ):
        """
        Args:
            runners: Task runner per stage name
            scorers: Scorer per criterion name
            tracker: Iteration and artifact tracker (shared across runs)
            config: Gate tables, retry budget and stage timeout
            classifier: Request classifier (default rule table if None)
            planner: Pipeline planner (default tables if None)
            event_store: Optional sink for the execution trace
            ownership: Criterion name -> stages that can fix it

        Raises:
            PlanningInvariantViolation: If a criterion has no scorer
        """
        self._config = config or OrchestratorConfig()
        self._evaluator = QualityGateEvaluator(self._config.gates, scorers)
        self._executor = StageExecutor(
            runners, tracker, self._config.stage_timeout_seconds
        )
        self._tracker = tracker
        self._classifier = classifier or RequestClassifier()
        self._planner = planner or PipelinePlanner()
        self._event_store = event_store
        self._ownership = ownership

    @property
    def config(self) -> OrchestratorConfig:
        return self._config

    def run(
        self,
        request: WorkflowRequest,
        context: ProjectContext,
        cancellation: CancellationToken | None = None,
    ) -> WorkflowReport:
        """
        Execute a request against a project.

        Args:
            request: Validated change request
            context: Immutable project snapshot
            cancellation: Optional token; cancelling it stops the run at the
                next stage boundary

        Returns:
            WorkflowReport, for successful and aborted runs alike
        """
        run = WorkflowRun(run_id=str(uuid.uuid4()), project_id=context.project_id)

        evaluator = self._evaluator
        if request.quality_threshold_overrides:
            evaluator = evaluator.with_configuration(
                self._config.gates.with_threshold_overrides(
                    request.threshold_overrides()
                )
            )
        max_retries = (
            request.max_retries
            if request.max_retries is not None
            else self._config.max_retries
        )

        session = _RunSession(
            run=run,
            request=request,
            context=context,
            cancellation=cancellation or CancellationToken(),
            evaluator=evaluator,
            feedback=FeedbackLoopManager(self._ownership, max_retries),
            emitter=(
                WorkflowEventEmitter(self._event_store, run.run_id)
                if self._event_store is not None
                else None
            ),
        )

        logger.info(f"[Orchestrator] Run {run.run_id} started for {run.project_id}")
        if session.emitter:
            session.emitter.run_start(request.description)

        try:
            if self._analyse(session):
                for phase in GATED_PHASES:
                    self._enter(session, phase)
                    self._run_phase(session, phase)
                    if run.is_terminal:
                        break
                if not run.is_terminal:
                    run.complete()
        except WorkflowCancelled as e:
            if not run.is_terminal:
                run.fail(f"Run cancelled: {e}")

        return self._finish(session)

    # -------------------------------------------------------------------------
    # Context analysis
    # -------------------------------------------------------------------------

    def _analyse(self, session: _RunSession) -> bool:
        """Classify, allocate the iteration and plan. False if the run failed."""
        run, request = session.run, session.request
        if session.emitter:
            session.emitter.phase_enter(run.phase)

        try:
            classification = self._classifier.classify(
                request.description, session.context, request.override_category
            )
        except ClassificationAmbiguous as e:
            run.fail(
                f"Request could not be classified: {e}. "
                f"Resubmit with override_category set."
            )
            return False

        run.assign_category(classification.category)
        logger.info(
            f"[Orchestrator] Classified as {classification.category.value} "
            f"(confidence {classification.confidence:.2f}, {classification.reason})"
        )

        record = self._tracker.allocate_iteration(
            run.project_id, classification.category, run.run_id
        )
        run.assign_iteration(record.iteration_id)

        session.cancellation.raise_if_cancelled()

        plan = self._planner.plan(
            classification.category, request.description, session.context
        )
        planned = {s.name for s in plan}
        for name in request.skip_stages:
            if name not in planned:
                run.add_note(f"Skip request ignored: '{name}' is not in the plan")
        skipped = tuple(s.name for s in plan if s.name in request.skip_stages)
        run.assign_plan(plan, skipped)

        for spec in plan:
            if spec.name in skipped:
                run.record_stage(
                    StageResult(
                        stage_name=spec.name,
                        phase=spec.phase,
                        status=StageStatus.SKIPPED,
                        attempt=0,
                    )
                )
        return True

    # -------------------------------------------------------------------------
    # Gated phases
    # -------------------------------------------------------------------------

    def _enter(self, session: _RunSession, phase: WorkflowPhase) -> None:
        session.run.enter_phase(phase)
        session.last_phase = phase
        if session.emitter:
            session.emitter.phase_enter(phase)

    def _run_phase(self, session: _RunSession, phase: WorkflowPhase) -> None:
        run = session.run
        stages = tuple(
            s for s in run.plan if s.phase == phase and s.name not in run.skipped_stages
        )
        by_name = {s.name: s for s in run.plan}
        pending: list[StageSpec] = list(stages)

        while True:
            if not self._run_stages(session, pending):
                return
            if not self._gate_required(run, phase, stages):
                return

            result = session.evaluator.evaluate(
                phase, self._gate_scope(run, phase), session.context
            )
            run.record_gate(result)
            if session.emitter:
                session.emitter.gate_evaluated(result)
            if result.passed:
                return

            action = session.feedback.decide(result, run, run.plan)
            if not self._apply(session, action):
                return
            pending = [
                by_name[name].with_feedback(
                    action.stage_feedback.get(name, action.feedback),
                    run.attempts_of(name) + 1,
                )
                for name in action.target_stages
            ]

    def _run_stages(self, session: _RunSession, pending: list[StageSpec]) -> bool:
        """Run stages in order, retrying failures. False if the run failed."""
        run = session.run
        queue = list(pending)
        while queue:
            session.cancellation.raise_if_cancelled()
            spec = queue.pop(0)
            attempt = run.attempts_of(spec.name) + 1
            if session.emitter:
                session.emitter.stage_start(run.phase, spec.name, attempt)

            result = self._executor.execute(
                spec, run, session.context, session.cancellation, attempt
            )
            run.record_stage(result)

            if result.succeeded:
                if session.emitter:
                    session.emitter.stage_pass(run.phase, spec.name, attempt)
                continue

            if session.emitter:
                session.emitter.stage_fail(
                    run.phase, spec.name, attempt, "; ".join(result.errors)
                )
            action = session.feedback.decide_stage_failure(result, run, run.plan)
            if not self._apply(session, action):
                return False
            queue.insert(
                0, spec.with_feedback(action.feedback, run.attempts_of(spec.name) + 1)
            )
        return True

    def _apply(self, session: _RunSession, action: FeedbackAction) -> bool:
        """Record a feedback decision. True if the phase should go on."""
        if session.emitter:
            session.emitter.feedback(action)

        if action.kind == FeedbackActionKind.RETRY:
            logger.info(
                f"[Orchestrator] Retry {action.retry_count} in {action.phase.value}: "
                f"{', '.join(action.target_stages)}"
            )
            return True

        if action.kind == FeedbackActionKind.ACCEPT_WITH_WARNINGS:
            session.warnings.append(action.reason)
            session.run.add_note(action.reason)
            return False

        session.cancellation.raise_if_cancelled()
        session.run.fail(action.reason)
        return False

    def _gate_required(
        self,
        run: WorkflowRun,
        phase: WorkflowPhase,
        stages: tuple[StageSpec, ...],
    ) -> bool:
        if any(s.requires_quality_check for s in stages):
            return True
        return phase == WorkflowPhase.VALIDATION and not stages and bool(run.artifacts())

    def _gate_scope(self, run: WorkflowRun, phase: WorkflowPhase) -> tuple[Artifact, ...]:
        if phase == WorkflowPhase.VALIDATION:
            return run.latest_artifacts()
        return run.latest_artifacts(phase)

    # -------------------------------------------------------------------------
    # Terminal
    # -------------------------------------------------------------------------

    def _finish(self, session: _RunSession) -> WorkflowReport:
        run = session.run
        explanation = self._explain(session)

        if run.iteration_id is not None:
            status = (
                IterationStatus.COMPLETED
                if run.phase == WorkflowPhase.COMPLETED
                else IterationStatus.FAILED
            )
            summary = f"{run.category.value if run.category else 'unclassified'}: "
            summary += session.request.description.strip()[:120]
            if status == IterationStatus.FAILED:
                summary += " [failed]"
            self._tracker.finalize_iteration(
                run.project_id, run.iteration_id, status, summary
            )

        metrics = run.metrics()
        if session.emitter:
            session.emitter.run_end(run.phase, metrics.score)

        logger.info(
            f"[Orchestrator] Run {run.run_id} {run.phase.value}: {explanation}"
        )

        return WorkflowReport(
            run_id=run.run_id,
            project_id=run.project_id,
            iteration_id=run.iteration_id,
            category=run.category,
            final_phase=run.phase,
            overall_score_per_phase=MappingProxyType(
                {p: g.score for p, g in run.gate_results.items()}
            ),
            gate_results=MappingProxyType(dict(run.gate_results)),
            artifacts=run.artifacts(),
            stage_history=tuple(run.stage_history),
            recommendations=self._recommendations(run),
            retry_counts=MappingProxyType(dict(run.retry_counts)),
            metrics=metrics,
            explanation=explanation,
        )

    def _recommendations(self, run: WorkflowRun) -> tuple[str, ...]:
        lines: list[str] = []
        for phase in GATED_PHASES:
            gate = run.gate_results.get(phase)
            if gate is not None and not gate.passed:
                lines.extend(f"[{phase.value}] {r}" for r in gate.recommendations)
        lines.extend(run.notes)
        # Keep first occurrence, drop repeats
        return tuple(dict.fromkeys(lines))

    def _explain(self, session: _RunSession) -> str:
        run = session.run
        gates = ", ".join(
            f"{p.value} {g.score:.1f}/{g.threshold:.1f}"
            f" ({'pass' if g.passed else 'fail'})"
            for p, g in run.gate_results.items()
        )
        if run.phase == WorkflowPhase.COMPLETED:
            plan = " -> ".join(
                s.name for s in run.plan if s.name not in run.skipped_stages
            )
            text = f"Completed {run.category.value if run.category else ''} run: {plan}"
            if gates:
                text += f"; gates: {gates}"
            if session.warnings:
                text += f"; {len(session.warnings)} gate(s) accepted with warnings"
            return text

        text = f"Failed during {session.last_phase.value}: {run.failure_reason}"
        if gates:
            text += f"; gates: {gates}"
        return text
