"""
FeedbackLoopManager: turns failed gates and failed stages into decisions.

A failed gate is routed back to the stages that own the failing criteria
while the phase's retry budget lasts. Once the budget is spent the run
either continues with warnings or aborts, depending on severity.
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType

from stagegate.domain.exceptions import (
    CriticalOverrideTriggered,
    QualityGateFailure,
    RetryExhausted,
)
from stagegate.domain.models import (
    CriterionEvaluation,
    FeedbackAction,
    FeedbackActionKind,
    QualityGateResult,
    Severity,
    StageResult,
    StageSpec,
    WorkflowRun,
)
from stagegate.domain.rules import CRITERION_OWNERS

logger = logging.getLogger(__name__)


class FeedbackLoopManager:
    """Decides RETRY, ACCEPT_WITH_WARNINGS or ABORT.

    The retry counter lives on the WorkflowRun, one per phase, and is
    shared between gate retries and stage-failure retries of that phase.
    """

    MAX_FINDINGS = 5  # Findings quoted per criterion

    def __init__(
        self,
        ownership: Mapping[str, tuple[str, ...]] = CRITERION_OWNERS,
        max_retries: int = 2,
    ):
        """
        Args:
            ownership: Criterion name -> stages responsible for it
            max_retries: Retry budget per phase
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._ownership = ownership
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def decide(
        self,
        gate_result: QualityGateResult,
        run: WorkflowRun,
        plan: tuple[StageSpec, ...],
    ) -> FeedbackAction:
        """
        Decide what to do about a failed gate.

        Args:
            gate_result: The failed gate
            run: The owning run (its retry counter may be incremented)
            plan: The run's stage plan

        Returns:
            FeedbackAction; RETRY carries target stages and re-work text
        """
        if gate_result.passed:
            raise ValueError(f"{gate_result.phase.value} gate passed; nothing to decide")

        phase = gate_result.phase

        if gate_result.critical_override:
            reason = str(CriticalOverrideTriggered(gate_result))
            logger.warning(f"[FeedbackLoop] {reason}")
            return FeedbackAction(
                kind=FeedbackActionKind.ABORT,
                phase=phase,
                reason=reason,
                retry_count=run.retry_count(phase),
            )

        failing = self._failing_criteria(gate_result)
        owners = self._owners(failing, run, plan)

        if owners:
            try:
                count = run.increment_retry(phase, self._max_retries)
            except RetryExhausted as e:
                logger.info(f"[FeedbackLoop] {e}")
            else:
                stage_feedback = {
                    stage: self.generate_feedback(
                        gate_result,
                        tuple(
                            c for c in failing if stage in self._ownership.get(c.name, ())
                        ),
                    )
                    for stage in owners
                }
                logger.info(
                    f"[FeedbackLoop] {phase.value} retry {count}/{self._max_retries} "
                    f"-> {', '.join(owners)}"
                )
                return FeedbackAction(
                    kind=FeedbackActionKind.RETRY,
                    phase=phase,
                    target_stages=owners,
                    feedback=self.generate_feedback(gate_result, failing),
                    stage_feedback=MappingProxyType(stage_feedback),
                    reason=(
                        f"{phase.value} gate failed "
                        f"({gate_result.score:.2f} < {gate_result.threshold:.2f})"
                    ),
                    retry_count=count,
                )

        summary = (
            f"{QualityGateFailure(gate_result)}, short by {gate_result.shortfall:.2f}; "
            f"failing: {', '.join(c.name for c in failing)}; "
            f"retries used {run.retry_count(phase)}/{self._max_retries}"
        )
        if gate_result.severity == Severity.BLOCKING:
            logger.warning(f"[FeedbackLoop] Abort: {summary}")
            return FeedbackAction(
                kind=FeedbackActionKind.ABORT,
                phase=phase,
                reason=f"Blocking gate failure: {summary}",
                retry_count=run.retry_count(phase),
            )

        logger.info(f"[FeedbackLoop] Accepting with warnings: {summary}")
        return FeedbackAction(
            kind=FeedbackActionKind.ACCEPT_WITH_WARNINGS,
            phase=phase,
            reason=f"Accepted with warnings: {summary}",
            retry_count=run.retry_count(phase),
        )

    def decide_stage_failure(
        self,
        result: StageResult,
        run: WorkflowRun,
        plan: tuple[StageSpec, ...],
    ) -> FeedbackAction:
        """
        Decide what to do about a failed stage attempt.

        The stage is retried within the phase's budget. Cancelled stages,
        and stages whose budget is spent, abort the run: later stages
        depend on their output.
        """
        phase = run.phase
        errors = "; ".join(result.errors) or "unknown error"

        if result.cancelled:
            return FeedbackAction(
                kind=FeedbackActionKind.ABORT,
                phase=phase,
                target_stages=(result.stage_name,),
                reason=f"Stage '{result.stage_name}' cancelled: {errors}",
                retry_count=run.retry_count(phase),
            )

        try:
            count = run.increment_retry(phase, self._max_retries)
        except RetryExhausted as e:
            return FeedbackAction(
                kind=FeedbackActionKind.ABORT,
                phase=phase,
                target_stages=(result.stage_name,),
                reason=f"Stage '{result.stage_name}' failed: {errors} ({e})",
                retry_count=run.retry_count(phase),
            )

        feedback = "\n".join(
            [
                "## Previous Attempt Failed",
                "",
                f"Attempt {result.attempt} of '{result.stage_name}' failed:",
                *(f"- {err}" for err in result.errors),
            ]
        )
        return FeedbackAction(
            kind=FeedbackActionKind.RETRY,
            phase=phase,
            target_stages=(result.stage_name,),
            feedback=feedback,
            stage_feedback=MappingProxyType({result.stage_name: feedback}),
            reason=f"Stage '{result.stage_name}' failed: {errors}",
            retry_count=count,
        )

    def _failing_criteria(
        self, gate_result: QualityGateResult
    ) -> tuple[CriterionEvaluation, ...]:
        failing = gate_result.failing_criteria()
        if failing or not gate_result.criteria:
            return failing
        # Aggregate failed although every criterion met its own threshold
        return (min(gate_result.criteria, key=lambda c: c.score),)

    def _owners(
        self,
        failing: tuple[CriterionEvaluation, ...],
        run: WorkflowRun,
        plan: tuple[StageSpec, ...],
    ) -> tuple[str, ...]:
        """Stages owning any failing criterion, in plan order.

        Only stages that already produced work in this run qualify; a
        stage of a later phase is never pulled forward into the current one.
        """
        wanted = {stage for c in failing for stage in self._ownership.get(c.name, ())}
        produced = {r.stage_name for r in run.stage_history if r.succeeded}
        return tuple(
            s.name
            for s in plan
            if s.name in wanted
            and s.name in produced
            and s.name not in run.skipped_stages
        )

    def generate_feedback(
        self,
        gate_result: QualityGateResult,
        criteria: tuple[CriterionEvaluation, ...],
    ) -> str:
        """Generate re-work instructions for the criteria a stage must fix.

        Args:
            gate_result: The failed gate
            criteria: The failing criteria to describe

        Returns:
            Markdown text for the stage payload
        """
        lines = [f"## Quality Gate Feedback: {gate_result.phase.value}", ""]
        lines.append(
            f"Aggregate score {gate_result.score:.2f} is below the threshold "
            f"{gate_result.threshold:.2f} (short by {gate_result.shortfall:.2f})."
        )
        lines.append("")

        if criteria:
            lines.append("### Failing Criteria")
            for c in criteria:
                lines.append(
                    f"- {c.name}: {c.score:.1f} / {c.threshold:.1f} "
                    f"(short by {c.shortfall:.1f})"
                )
                for finding in c.findings[: self.MAX_FINDINGS]:
                    lines.append(f"  - {finding}")
            lines.append("")

        lines.append(
            "**Constraint**: Revise your output to close these gaps without "
            "regressing criteria that already pass."
        )
        return "\n".join(lines)
