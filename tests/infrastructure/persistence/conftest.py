"""Factories for persistence tests."""

from collections.abc import Callable

import pytest

from stagegate.domain.models import (
    Artifact,
    ArtifactKind,
    IterationRecord,
    RequestCategory,
)


@pytest.fixture
def make_artifact() -> Callable[..., Artifact]:
    """Create a test artifact revision."""

    def _make(path: str = "src/app.py", revision: int = 1, **kwargs) -> Artifact:
        defaults = {
            "artifact_id": f"a{revision}{abs(hash(path)) % 10_000:04d}",
            "path": path,
            "stage_name": "developer",
            "iteration_id": "1-bugfix-20250101T000000Z",
            "created_at": "2025-01-01T00:00:00+00:00",
            "revision": revision,
            "kind": ArtifactKind.IMPLEMENTATION,
        }
        defaults.update(kwargs)
        return Artifact(**defaults)

    return _make


@pytest.fixture
def make_iteration() -> Callable[..., IterationRecord]:
    """Create a test iteration record for project 'plant-mes'."""

    def _make(ordinal: int = 1, **kwargs) -> IterationRecord:
        defaults = {
            "ordinal": ordinal,
            "iteration_id": f"{ordinal}-bugfix-20250101T000000Z",
            "project_id": "plant-mes",
            "category": RequestCategory.BUG_FIX,
            "run_id": f"run-{ordinal}",
            "started_at": "2025-01-01T00:00:00+00:00",
        }
        defaults.update(kwargs)
        return IterationRecord(**defaults)

    return _make
