"""
QualityGateEvaluator: scores a phase's artifacts against weighted criteria.
"""

import logging
import math
from collections.abc import Mapping

from stagegate.domain.exceptions import PlanningInvariantViolation
from stagegate.domain.interfaces import CriterionScorerInterface
from stagegate.domain.models import (
    Artifact,
    CriterionEvaluation,
    ProjectContext,
    QualityCriterion,
    QualityGateResult,
    ScoreReport,
    Severity,
    WorkflowPhase,
)
from stagegate.domain.rules import GateConfiguration

logger = logging.getLogger(__name__)

# Failing this far below the threshold makes the verdict blocking
BLOCKING_MARGIN = 10.0


def _clamp(score: float) -> float:
    if math.isnan(score):
        return 0.0
    return min(100.0, max(0.0, float(score)))


def _as_report(raw: object) -> ScoreReport:
    """Normalise a scorer's return value; bare numbers are accepted."""
    if isinstance(raw, ScoreReport):
        score = raw.score
    elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return ScoreReport(score=float(raw))
    else:
        raise TypeError(f"expected ScoreReport or number, got {type(raw).__name__}")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise TypeError(f"score must be a number, got {type(score).__name__}")
    return ScoreReport(
        score=float(score), critical=bool(raw.critical), findings=tuple(raw.findings)
    )


class QualityGateEvaluator:
    """
    Deterministic gate: identical scorer outputs give identical results.

    The aggregate is the weight-sum of clamped criterion scores. A critical
    criterion fails the gate regardless of the aggregate.
    """

    def __init__(
        self,
        configuration: GateConfiguration,
        scorers: Mapping[str, CriterionScorerInterface],
    ):
        """
        Args:
            configuration: Validated criteria and thresholds
            scorers: Scorer per criterion name

        Raises:
            PlanningInvariantViolation: If a configured criterion has no scorer
        """
        missing = sorted(configuration.criterion_names() - set(scorers))
        if missing:
            raise PlanningInvariantViolation(
                f"No scorer registered for criteria: {', '.join(missing)}"
            )
        self._configuration = configuration
        self._scorers = dict(scorers)

    @property
    def configuration(self) -> GateConfiguration:
        return self._configuration

    def with_configuration(self, configuration: GateConfiguration) -> "QualityGateEvaluator":
        """Same scorers, different thresholds or criteria."""
        return QualityGateEvaluator(configuration, self._scorers)

    def evaluate(
        self,
        phase: WorkflowPhase,
        artifacts: tuple[Artifact, ...],
        context: ProjectContext,
    ) -> QualityGateResult:
        """
        Evaluate the gate of a phase.

        Args:
            phase: Gated phase
            artifacts: Artifacts in the gate's scope
            context: Immutable project snapshot

        Returns:
            QualityGateResult with aggregate score, verdict and severity
        """
        threshold = self._configuration.threshold_for(phase)
        evaluations = tuple(
            self._evaluate_criterion(criterion, threshold, phase, artifacts, context)
            for criterion in self._configuration.criteria_for(phase)
        )

        score = round(math.fsum(e.weight * e.score for e in evaluations), 4)
        critical = any(e.critical for e in evaluations)
        passed = score >= threshold and not critical

        if critical or score < threshold - BLOCKING_MARGIN:
            severity = Severity.BLOCKING
        elif not passed:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO

        result = QualityGateResult(
            phase=phase,
            score=score,
            threshold=threshold,
            passed=passed,
            severity=severity,
            criteria=evaluations,
            recommendations=self._recommendations(evaluations),
            critical_override=critical,
        )

        logger.info(
            f"[QualityGate] {phase.value}: {score:.2f}/{threshold:.2f} "
            f"{'PASS' if passed else 'FAIL'} ({severity.value})"
        )
        return result

    def _evaluate_criterion(
        self,
        criterion: QualityCriterion,
        phase_threshold: float,
        phase: WorkflowPhase,
        artifacts: tuple[Artifact, ...],
        context: ProjectContext,
    ) -> CriterionEvaluation:
        scorer = self._scorers[criterion.name]
        try:
            report = _as_report(scorer.evaluate(phase, artifacts, context))
        except Exception as e:
            # A broken scorer counts as a zero, not as a crashed run
            logger.warning(f"[QualityGate] Scorer '{criterion.name}' failed: {e}")
            report = ScoreReport(
                score=0.0, findings=(f"Scorer error: {type(e).__name__}: {e}",)
            )

        return CriterionEvaluation(
            name=criterion.name,
            weight=criterion.weight,
            score=_clamp(report.score),
            threshold=(
                criterion.threshold
                if criterion.threshold is not None
                else phase_threshold
            ),
            critical=report.critical,
            findings=tuple(report.findings),
        )

    def _recommendations(
        self, evaluations: tuple[CriterionEvaluation, ...]
    ) -> tuple[str, ...]:
        lines = []
        for e in evaluations:
            if e.critical:
                lines.append(f"{e.name}: critical findings must be resolved")
            elif not e.passed:
                lines.append(
                    f"{e.name}: score {e.score:.1f} below {e.threshold:.1f} "
                    f"(short by {e.shortfall:.1f})"
                )
            else:
                continue
            lines.extend(f"{e.name}: {finding}" for finding in e.findings)
        return tuple(lines)
