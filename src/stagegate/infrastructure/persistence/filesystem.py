"""
Filesystem implementation of the artifact store.

Provides persistent, append-only storage of artifact revisions and
iteration records, one directory per project.
"""

import json
from pathlib import Path
from typing import Any

from stagegate.domain.interfaces import ArtifactStoreInterface
from stagegate.domain.models import (
    Artifact,
    ArtifactKind,
    IterationRecord,
    IterationStatus,
    RequestCategory,
)


class FilesystemArtifactStore(ArtifactStoreInterface):
    """
    Persistent, append-only artifact store.

    Layout per project::

        <base_dir>/<project_id>/index.json
        <base_dir>/<project_id>/objects/<prefix>/<artifact_id>.json

    The index holds iterations keyed by ordinal and, per logical path, the
    ordered list of revisions. Artifact bodies live in object files.
    """

    def __init__(self, base_dir: str):
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._indexes: dict[str, dict[str, Any]] = {}
        self._cache: dict[str, Artifact] = {}

    def _project_dir(self, project_id: str) -> Path:
        return self._base_dir / project_id

    def _index_path(self, project_id: str) -> Path:
        return self._project_dir(project_id) / "index.json"

    def _load_or_create_index(self, project_id: str) -> dict[str, Any]:
        """Load existing index or create new one."""
        if project_id in self._indexes:
            return self._indexes[project_id]

        index_path = self._index_path(project_id)
        if index_path.exists():
            with open(index_path) as f:
                index: dict[str, Any] = json.load(f)
        else:
            index = {"version": "1.0", "iterations": {}, "paths": {}}

        self._indexes[project_id] = index
        return index

    def _update_index_atomic(self, project_id: str) -> None:
        """Atomically update index.json using write-to-temp + rename."""
        index_path = self._index_path(project_id)
        index_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = index_path.with_suffix(".tmp")
        with open(temp_path, "w") as f:
            json.dump(self._indexes[project_id], f, indent=2)
        temp_path.replace(index_path)  # Atomic on POSIX

    def _get_object_path(self, project_id: str, artifact_id: str) -> Path:
        """Get filesystem path for artifact (using prefix directories)."""
        prefix = artifact_id[:2]
        return self._project_dir(project_id) / "objects" / prefix / f"{artifact_id}.json"

    # -------------------------------------------------------------------------
    # Serialisation
    # -------------------------------------------------------------------------

    def _artifact_to_dict(self, artifact: Artifact) -> dict[str, Any]:
        return {
            "artifact_id": artifact.artifact_id,
            "path": artifact.path,
            "stage_name": artifact.stage_name,
            "iteration_id": artifact.iteration_id,
            "created_at": artifact.created_at,
            "revision": artifact.revision,
            "kind": artifact.kind.value,
            "content": artifact.content,
        }

    def _dict_to_artifact(self, data: dict[str, Any]) -> Artifact:
        return Artifact(
            artifact_id=data["artifact_id"],
            path=data["path"],
            stage_name=data["stage_name"],
            iteration_id=data["iteration_id"],
            created_at=data["created_at"],
            revision=data["revision"],
            kind=ArtifactKind(data["kind"]),
            content=data.get("content", ""),
        )

    def _iteration_to_dict(self, record: IterationRecord) -> dict[str, Any]:
        return {
            "ordinal": record.ordinal,
            "iteration_id": record.iteration_id,
            "category": record.category.value,
            "run_id": record.run_id,
            "started_at": record.started_at,
            "status": record.status.value,
            "summary": record.summary,
        }

    def _dict_to_iteration(self, project_id: str, data: dict[str, Any]) -> IterationRecord:
        return IterationRecord(
            ordinal=data["ordinal"],
            iteration_id=data["iteration_id"],
            project_id=project_id,
            category=RequestCategory(data["category"]),
            run_id=data["run_id"],
            started_at=data["started_at"],
            status=IterationStatus(data["status"]),
            summary=data.get("summary", ""),
        )

    # -------------------------------------------------------------------------
    # Iterations
    # -------------------------------------------------------------------------

    def highest_ordinal(self, project_id: str) -> int:
        index = self._load_or_create_index(project_id)
        return max((int(o) for o in index["iterations"]), default=0)

    def store_iteration(self, record: IterationRecord) -> None:
        index = self._load_or_create_index(record.project_id)
        # JSON object keys are strings
        index["iterations"][str(record.ordinal)] = self._iteration_to_dict(record)
        self._update_index_atomic(record.project_id)

    def get_iterations(self, project_id: str) -> list[IterationRecord]:
        index = self._load_or_create_index(project_id)
        return [
            self._dict_to_iteration(project_id, index["iterations"][key])
            for key in sorted(index["iterations"], key=int)
        ]

    def get_iteration(self, project_id: str, iteration_id: str) -> IterationRecord:
        for record in self.get_iterations(project_id):
            if record.iteration_id == iteration_id:
                return record
        raise KeyError(f"Iteration not found: {iteration_id}")

    # -------------------------------------------------------------------------
    # Artifacts
    # -------------------------------------------------------------------------

    def store_artifact(self, project_id: str, artifact: Artifact) -> str:
        """
        Append an artifact revision (immutable, append-only).

        Args:
            project_id: Owning project
            artifact: The artifact to store

        Returns:
            The artifact_id
        """
        # 1. Write to objects/{prefix}/{artifact_id}.json
        object_path = self._get_object_path(project_id, artifact.artifact_id)
        object_path.parent.mkdir(parents=True, exist_ok=True)
        with open(object_path, "w") as f:
            json.dump(self._artifact_to_dict(artifact), f, indent=2)

        # 2. Append the revision under its logical path
        index = self._load_or_create_index(project_id)
        index["paths"].setdefault(artifact.path, []).append(
            {
                "artifact_id": artifact.artifact_id,
                "revision": artifact.revision,
                "object": str(object_path.relative_to(self._project_dir(project_id))),
            }
        )

        # 3. Atomically update index
        self._update_index_atomic(project_id)

        self._cache[artifact.artifact_id] = artifact
        return artifact.artifact_id

    def _load_artifact(self, project_id: str, entry: dict[str, Any]) -> Artifact:
        """Retrieve artifact by index entry (cache-first)."""
        artifact_id = entry["artifact_id"]
        if artifact_id in self._cache:
            return self._cache[artifact_id]

        with open(self._project_dir(project_id) / entry["object"]) as f:
            artifact = self._dict_to_artifact(json.load(f))
        self._cache[artifact_id] = artifact
        return artifact

    def latest_revision(self, project_id: str, path: str) -> int:
        entries = self._load_or_create_index(project_id)["paths"].get(path, [])
        return entries[-1]["revision"] if entries else 0

    def get_history(self, project_id: str, path: str) -> list[Artifact]:
        entries = self._load_or_create_index(project_id)["paths"].get(path, [])
        return [self._load_artifact(project_id, e) for e in entries]

    def get_paths(self, project_id: str) -> list[str]:
        return sorted(self._load_or_create_index(project_id)["paths"])
