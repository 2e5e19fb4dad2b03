"""
Persistence adapters for artifacts, iterations and workflow events.
"""

from stagegate.infrastructure.persistence.filesystem import FilesystemArtifactStore
from stagegate.infrastructure.persistence.memory import InMemoryArtifactStore
from stagegate.infrastructure.persistence.workflow_events import (
    FilesystemWorkflowEventStore,
    InMemoryWorkflowEventStore,
)

__all__ = [
    "InMemoryArtifactStore",
    "FilesystemArtifactStore",
    "InMemoryWorkflowEventStore",
    "FilesystemWorkflowEventStore",
]
