"""
Stagegate: quality-gated workflow orchestration for change requests.

Classifies a free-text change request, plans a pipeline of specialised
stages, executes them through pluggable runners, and gates every phase
with weighted quality criteria and a bounded feedback loop.

Example:
    from stagegate import (
        GateConfiguration, InMemoryArtifactStore, IterationTracker,
        MockStageRunner, ProjectContext, StaticScorer, WorkflowOrchestrator,
        WorkflowRequest,
    )

    orchestrator = WorkflowOrchestrator(
        runners={
            name: MockStageRunner()
            for name in ("requirements-analyst", "system-architect", "developer")
        },
        scorers={
            name: StaticScorer(97) for name in GateConfiguration().criterion_names()
        },
        tracker=IterationTracker(InMemoryArtifactStore()),
    )
    report = orchestrator.run(
        WorkflowRequest(description="Build a task tracker"),
        ProjectContext(project_id="plant"),
    )
"""

# Application layer (orchestration)
from stagegate.application import (
    FeedbackLoopManager,
    IterationTracker,
    OrchestratorConfig,
    PipelinePlanner,
    QualityGateEvaluator,
    RequestClassifier,
    StageExecutor,
    WorkflowOrchestrator,
    WorkflowRequest,
)
from stagegate.config import load_orchestrator_config, load_runner_config

# Domain
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
    Artifact,
    ArtifactKind,
    FeedbackActionKind,
    ProducedArtifact,
    ProjectContext,
    QualityCriterion,
    QualityGateResult,
    RequestCategory,
    ScoreReport,
    Severity,
    StageOutput,
    StageSpec,
    StageStatus,
    WorkflowPhase,
    WorkflowReport,
)
from stagegate.domain.rules import GateConfiguration

# Infrastructure (explicit import encouraged for dependency injection)
from stagegate.infrastructure import (
    FilesystemArtifactStore,
    FilesystemProjectContextLoader,
    FilesystemWorkflowEventStore,
    InMemoryArtifactStore,
    InMemoryWorkflowEventStore,
    MockScorer,
    MockStageRunner,
    StageRunnerRegistry,
    StaticScorer,
)
from stagegate.logging_setup import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Domain models
    "Artifact",
    "ArtifactKind",
    "FeedbackActionKind",
    "ProducedArtifact",
    "ProjectContext",
    "QualityCriterion",
    "QualityGateResult",
    "RequestCategory",
    "ScoreReport",
    "Severity",
    "StageOutput",
    "StageSpec",
    "StageStatus",
    "WorkflowPhase",
    "WorkflowReport",
    "GateConfiguration",
    "CancellationToken",
    # Domain interfaces
    "ArtifactStoreInterface",
    "CriterionScorerInterface",
    "ProjectContextLoaderInterface",
    "StageTaskRunnerInterface",
    "WorkflowEventStoreInterface",
    # Domain exceptions
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
    # Application layer
    "FeedbackLoopManager",
    "IterationTracker",
    "OrchestratorConfig",
    "PipelinePlanner",
    "QualityGateEvaluator",
    "RequestClassifier",
    "StageExecutor",
    "WorkflowOrchestrator",
    "WorkflowRequest",
    # Configuration and logging
    "load_orchestrator_config",
    "load_runner_config",
    "setup_logging",
    # Infrastructure
    "InMemoryArtifactStore",
    "FilesystemArtifactStore",
    "InMemoryWorkflowEventStore",
    "FilesystemWorkflowEventStore",
    "FilesystemProjectContextLoader",
    "MockStageRunner",
    "MockScorer",
    "StaticScorer",
    "StageRunnerRegistry",
]
