"""
IterationTracker: allocates iteration identifiers and assigns artifact revisions.

All writes for a project go through one lock, so concurrent runs against
the same project never reuse an ordinal and never produce two artifacts
with the same (path, revision).
"""

import logging
import threading
import uuid
from datetime import datetime, timezone

from stagegate.domain.interfaces import ArtifactStoreInterface
from stagegate.domain.models import (
    Artifact,
    ArtifactKind,
    IterationRecord,
    IterationStatus,
    ProducedArtifact,
    RequestCategory,
)

logger = logging.getLogger(__name__)

ITERATION_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"


class IterationTracker:
    """Serialises iteration and artifact bookkeeping per project."""

    def __init__(self, store: ArtifactStoreInterface):
        self._store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> ArtifactStoreInterface:
        return self._store

    def _lock_for(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[project_id] = lock
            return lock

    def allocate_iteration(
        self,
        project_id: str,
        category: RequestCategory,
        run_id: str,
        now: datetime | None = None,
    ) -> IterationRecord:
        """
        Reserve the next ordinal for a project and record it as running.

        The record is persisted before returning, so an aborted run still
        consumes its ordinal.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock_for(project_id):
            ordinal = self._store.highest_ordinal(project_id) + 1
            stamp = now.astimezone(timezone.utc).strftime(ITERATION_TIMESTAMP_FORMAT)
            record = IterationRecord(
                ordinal=ordinal,
                iteration_id=f"{ordinal}-{category.tag}-{stamp}",
                project_id=project_id,
                category=category,
                run_id=run_id,
                started_at=now.isoformat(),
            )
            self._store.store_iteration(record)

        logger.info(f"[IterationTracker] Allocated {record.iteration_id} for {project_id}")
        return record

    def finalize_iteration(
        self,
        project_id: str,
        iteration_id: str,
        status: IterationStatus,
        summary: str = "",
    ) -> IterationRecord:
        with self._lock_for(project_id):
            record = self._store.get_iteration(project_id, iteration_id)
            updated = IterationRecord(
                ordinal=record.ordinal,
                iteration_id=record.iteration_id,
                project_id=record.project_id,
                category=record.category,
                run_id=record.run_id,
                started_at=record.started_at,
                status=status,
                summary=summary,
            )
            self._store.store_iteration(updated)
        return updated

    def record_artifact(
        self,
        project_id: str,
        iteration_id: str,
        stage_name: str,
        produced: ProducedArtifact,
        default_kind: ArtifactKind = ArtifactKind.OTHER,
    ) -> Artifact:
        """
        Record a produced artifact as the next revision of its logical path.

        Args:
            project_id: Owning project
            iteration_id: Iteration the artifact belongs to
            stage_name: Producing stage
            produced: Artifact as returned by the stage runner
            default_kind: Kind used when the runner did not set one

        Returns:
            The stored Artifact with its revision number
        """
        with self._lock_for(project_id):
            revision = self._store.latest_revision(project_id, produced.path) + 1
            artifact = Artifact(
                artifact_id=str(uuid.uuid4()),
                path=produced.path,
                stage_name=stage_name,
                iteration_id=iteration_id,
                created_at=datetime.now(timezone.utc).isoformat(),
                revision=revision,
                kind=produced.kind or default_kind,
                content=produced.content,
            )
            self._store.store_artifact(project_id, artifact)

        logger.debug(
            f"[IterationTracker] {stage_name} -> {artifact.path} r{artifact.revision}"
        )
        return artifact

    def history(self, project_id: str, path: str) -> list[Artifact]:
        return self._store.get_history(project_id, path)

    def latest_artifacts(self, project_id: str) -> list[Artifact]:
        """Latest revision of every logical path known for the project."""
        latest = []
        for path in self._store.get_paths(project_id):
            revisions = self._store.get_history(project_id, path)
            if revisions:
                latest.append(revisions[-1])
        return latest

    def iterations(self, project_id: str) -> list[IterationRecord]:
        return self._store.get_iterations(project_id)
