"""
Application layer for the stage orchestration engine.

Contains the workflow components and the orchestrator that coordinates them.
"""

from stagegate.application.classifier import RequestClassifier
from stagegate.application.feedback_loop import FeedbackLoopManager
from stagegate.application.iteration_tracker import IterationTracker
from stagegate.application.orchestrator import OrchestratorConfig, WorkflowOrchestrator
from stagegate.application.planner import PipelinePlanner
from stagegate.application.quality_gate import QualityGateEvaluator
from stagegate.application.request import WorkflowRequest
from stagegate.application.stage_executor import StageExecutor
from stagegate.application.workflow_event_emitter import WorkflowEventEmitter

__all__ = [
    "FeedbackLoopManager",
    "IterationTracker",
    "OrchestratorConfig",
    "PipelinePlanner",
    "QualityGateEvaluator",
    "RequestClassifier",
    "StageExecutor",
    "WorkflowEventEmitter",
    "WorkflowOrchestrator",
    "WorkflowRequest",
]
