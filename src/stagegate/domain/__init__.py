"""
Domain layer for the stage orchestration engine.

Contains core data structures, rule tables and ports with no external
dependencies.
"""

from stagegate.domain.cancellation import CancellationToken
from stagegate.domain.exceptions import (
    ClassificationAmbiguous,
    ConfigurationError,
    CriticalOverrideTriggered,
    PlanningInvariantViolation,
    QualityGateFailure,
    RetryExhausted,
    StageExecutionFailure,
    StagegateError,
    WorkflowCancelled,
    WorkflowStateError,
)
from stagegate.domain.interfaces import (
    ArtifactStoreInterface,
    CriterionScorerInterface,
    ProjectContextLoaderInterface,
    StageTaskRunnerInterface,
    WorkflowEventStoreInterface,
)
from stagegate.domain.models import (
    GATED_PHASES,
    Artifact,
    ArtifactKind,
    ClassificationResult,
    CriterionEvaluation,
    FeedbackAction,
    FeedbackActionKind,
    IterationRecord,
    IterationStatus,
    ProducedArtifact,
    ProjectContext,
    QualityCriterion,
    QualityGateResult,
    RequestCategory,
    RunMetrics,
    ScoreReport,
    Severity,
    StageOutput,
    StageResult,
    StageRole,
    StageSpec,
    StageStatus,
    WorkflowPhase,
    WorkflowReport,
    WorkflowRun,
)
from stagegate.domain.rules import (
    CRITERION_OWNERS,
    DEFAULT_CLASSIFICATION_RULES,
    DEFAULT_INSERTION_POLICIES,
    ClassificationRule,
    GateConfiguration,
    InsertionRule,
    StageDefinition,
    StageInsertionPolicy,
    TriggerGroup,
)
from stagegate.domain.workflow_event import WorkflowEvent, WorkflowEventType

__all__ = [
    # Models
    "Artifact",
    "ArtifactKind",
    "ClassificationResult",
    "CriterionEvaluation",
    "FeedbackAction",
    "FeedbackActionKind",
    "GATED_PHASES",
    "IterationRecord",
    "IterationStatus",
    "ProducedArtifact",
    "ProjectContext",
    "QualityCriterion",
    "QualityGateResult",
    "RequestCategory",
    "RunMetrics",
    "ScoreReport",
    "Severity",
    "StageOutput",
    "StageResult",
    "StageRole",
    "StageSpec",
    "StageStatus",
    "WorkflowPhase",
    "WorkflowReport",
    "WorkflowRun",
    "WorkflowEvent",
    "WorkflowEventType",
    "CancellationToken",
    # Rule tables
    "CRITERION_OWNERS",
    "DEFAULT_CLASSIFICATION_RULES",
    "DEFAULT_INSERTION_POLICIES",
    "ClassificationRule",
    "GateConfiguration",
    "InsertionRule",
    "StageDefinition",
    "StageInsertionPolicy",
    "TriggerGroup",
    # Interfaces
    "ArtifactStoreInterface",
    "CriterionScorerInterface",
    "ProjectContextLoaderInterface",
    "StageTaskRunnerInterface",
    "WorkflowEventStoreInterface",
    # Exceptions
    "StagegateError",
    "ClassificationAmbiguous",
    "ConfigurationError",
    "CriticalOverrideTriggered",
    "PlanningInvariantViolation",
    "QualityGateFailure",
    "RetryExhausted",
    "StageExecutionFailure",
    "WorkflowCancelled",
    "WorkflowStateError",
]
