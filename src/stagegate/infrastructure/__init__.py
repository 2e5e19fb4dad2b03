"""
Infrastructure layer for the stage orchestration engine.

Contains adapters for external concerns (persistence, project context,
runners, registry).
"""

from stagegate.infrastructure.context_loader import FilesystemProjectContextLoader
from stagegate.infrastructure.persistence import (
    FilesystemArtifactStore,
    FilesystemWorkflowEventStore,
    InMemoryArtifactStore,
    InMemoryWorkflowEventStore,
)
from stagegate.infrastructure.registry import StageRunnerRegistry
from stagegate.infrastructure.runners import MockScorer, MockStageRunner, StaticScorer

__all__ = [
    # Persistence
    "InMemoryArtifactStore",
    "FilesystemArtifactStore",
    "InMemoryWorkflowEventStore",
    "FilesystemWorkflowEventStore",
    # Project context
    "FilesystemProjectContextLoader",
    # Runners
    "MockStageRunner",
    "MockScorer",
    "StaticScorer",
    # Registry
    "StageRunnerRegistry",
]
