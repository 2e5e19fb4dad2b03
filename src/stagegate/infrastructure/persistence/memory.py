"""
In-memory implementation of the artifact store.

Useful for testing and ephemeral runs.
"""

from stagegate.domain.interfaces import ArtifactStoreInterface
from stagegate.domain.models import Artifact, IterationRecord


class InMemoryArtifactStore(ArtifactStoreInterface):
    """Simple in-memory store for testing."""

    def __init__(self) -> None:
        # project_id -> ordinal -> record
        self._iterations: dict[str, dict[int, IterationRecord]] = {}
        # project_id -> path -> revisions (oldest first)
        self._artifacts: dict[str, dict[str, list[Artifact]]] = {}

    def highest_ordinal(self, project_id: str) -> int:
        return max(self._iterations.get(project_id, {}), default=0)

    def store_iteration(self, record: IterationRecord) -> None:
        self._iterations.setdefault(record.project_id, {})[record.ordinal] = record

    def get_iterations(self, project_id: str) -> list[IterationRecord]:
        records = self._iterations.get(project_id, {})
        return [records[o] for o in sorted(records)]

    def get_iteration(self, project_id: str, iteration_id: str) -> IterationRecord:
        for record in self._iterations.get(project_id, {}).values():
            if record.iteration_id == iteration_id:
                return record
        raise KeyError(f"Iteration not found: {iteration_id}")

    def store_artifact(self, project_id: str, artifact: Artifact) -> str:
        paths = self._artifacts.setdefault(project_id, {})
        paths.setdefault(artifact.path, []).append(artifact)
        return artifact.artifact_id

    def latest_revision(self, project_id: str, path: str) -> int:
        revisions = self._artifacts.get(project_id, {}).get(path, [])
        return revisions[-1].revision if revisions else 0

    def get_history(self, project_id: str, path: str) -> list[Artifact]:
        return list(self._artifacts.get(project_id, {}).get(path, []))

    def get_paths(self, project_id: str) -> list[str]:
        return sorted(self._artifacts.get(project_id, {}))
