"""
Domain exceptions for the stage orchestration engine.

Recoverable conditions are raised inside components and converted into
typed results (StageResult, FeedbackAction, WorkflowReport) at the
orchestrator boundary. Only PlanningInvariantViolation, ConfigurationError
and malformed requests escape the orchestrator.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stagegate.domain.models import QualityGateResult


class StagegateError(Exception):
    """Base class for all stagegate errors."""


class ConfigurationError(StagegateError):
    """Raised when configuration files are invalid or missing."""


class ClassificationAmbiguous(StagegateError):
    """
    Raised when a request cannot be classified without an explicit override.

    Recoverable: the caller must supply an override category.
    """


class PlanningInvariantViolation(StagegateError):
    """
    Raised when static workflow tables violate an invariant.

    Criterion weights that do not sum to 1.0, unknown phases or criteria
    without a scorer. Fatal at startup, never raised per run.
    """


class StageExecutionFailure(StagegateError):
    """Raised by stage runners to signal a failed stage with a clean message."""

    def __init__(self, stage_name: str, message: str):
        super().__init__(f"{stage_name}: {message}")
        self.stage_name = stage_name
        self.message = message


class QualityGateFailure(StagegateError):
    """A quality gate did not pass. Drives the retry/accept/abort decision."""

    def __init__(self, result: "QualityGateResult"):
        super().__init__(
            f"{result.phase.value} gate failed: "
            f"{result.score:.1f} < {result.threshold:.1f} ({result.severity.value})"
        )
        self.result = result


class RetryExhausted(StagegateError):
    """
    Raised when a phase would exceed its retry budget.

    Non-fatal: surfaces as accept-with-warnings unless the gate was blocking.
    """

    def __init__(self, phase: str, retries: int, max_retries: int):
        super().__init__(
            f"Retry budget exhausted for {phase}: {retries}/{max_retries} retries used"
        )
        self.phase = phase
        self.retries = retries
        self.max_retries = max_retries


class CriticalOverrideTriggered(StagegateError):
    """A criterion reported a critical finding; the phase must abort."""

    def __init__(self, result: "QualityGateResult"):
        critical = [c.name for c in result.criteria if c.critical]
        super().__init__(
            f"Critical findings in {result.phase.value} gate: {', '.join(critical)}"
        )
        self.result = result
        self.criteria = tuple(critical)


class WorkflowCancelled(StagegateError):
    """Caller-initiated cancellation; the run stops at the next stage boundary."""


class WorkflowStateError(StagegateError):
    """Invalid mutation of a WorkflowRun (terminal run or bad transition)."""
