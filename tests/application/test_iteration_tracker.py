"""Tests for IterationTracker."""

import re
import threading
from datetime import datetime, timezone

import pytest

from stagegate.application.iteration_tracker import IterationTracker
from stagegate.domain.models import (
    ArtifactKind,
    IterationStatus,
    ProducedArtifact,
    RequestCategory,
)
from stagegate.infrastructure.persistence.filesystem import FilesystemArtifactStore
from stagegate.infrastructure.persistence.memory import InMemoryArtifactStore

ITERATION_ID = re.compile(r"^\d+-[a-z-]+-\d{8}T\d{6}Z$")


class TestIterationAllocation:
    """Ordinal iteration identifiers."""

    def test_first_iteration(self, tracker: IterationTracker) -> None:
        record = tracker.allocate_iteration(
            "plant-mes",
            RequestCategory.NEW_PROJECT,
            "run-1",
            now=datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc),
        )

        assert record.ordinal == 1
        assert record.iteration_id == "1-new-project-20250304T050607Z"
        assert record.status == IterationStatus.RUNNING

    def test_ordinals_increase(self, tracker: IterationTracker) -> None:
        first = tracker.allocate_iteration("p", RequestCategory.NEW_PROJECT, "r1")
        second = tracker.allocate_iteration("p", RequestCategory.BUG_FIX, "r2")

        assert second.ordinal == first.ordinal + 1
        assert ITERATION_ID.match(second.iteration_id)
        assert "-bugfix-" in second.iteration_id

    def test_ordinals_are_per_project(self, tracker: IterationTracker) -> None:
        tracker.allocate_iteration("a", RequestCategory.NEW_PROJECT, "r1")

        record = tracker.allocate_iteration("b", RequestCategory.NEW_PROJECT, "r2")

        assert record.ordinal == 1

    def test_failed_iteration_consumes_ordinal(self, tracker: IterationTracker) -> None:
        """Ordinals are never reused, even after an aborted run."""
        first = tracker.allocate_iteration("p", RequestCategory.BUG_FIX, "r1")
        tracker.finalize_iteration(
            "p", first.iteration_id, IterationStatus.FAILED, "bug_fix: x [failed]"
        )

        second = tracker.allocate_iteration("p", RequestCategory.BUG_FIX, "r2")

        assert second.ordinal == 2
        assert tracker.iterations("p")[0].status == IterationStatus.FAILED

    def test_finalize_records_summary(self, tracker: IterationTracker) -> None:
        record = tracker.allocate_iteration("p", RequestCategory.REFACTOR, "r1")

        updated = tracker.finalize_iteration(
            "p", record.iteration_id, IterationStatus.COMPLETED, "refactor: done"
        )

        assert updated.ordinal == record.ordinal
        assert updated.summary == "refactor: done"
        assert tracker.iterations("p") == [updated]

    def test_finalize_unknown_iteration(self, tracker: IterationTracker) -> None:
        with pytest.raises(KeyError):
            tracker.finalize_iteration("p", "9-bugfix-x", IterationStatus.FAILED)

    def test_concurrent_allocation_never_reuses_ordinals(
        self, tracker: IterationTracker
    ) -> None:
        ordinals: list[int] = []
        lock = threading.Lock()

        def allocate(i: int) -> None:
            record = tracker.allocate_iteration("p", RequestCategory.BUG_FIX, f"r{i}")
            with lock:
                ordinals.append(record.ordinal)

        threads = [threading.Thread(target=allocate, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(ordinals) == list(range(1, 21))


class TestArtifactRevisions:
    """Incremental update of logical artifacts."""

    def test_first_revision(self, tracker: IterationTracker) -> None:
        artifact = tracker.record_artifact(
            "p",
            "1-new-project-x",
            "requirements-analyst",
            ProducedArtifact("docs/requirements.md", "# Requirements"),
            ArtifactKind.REQUIREMENTS,
        )

        assert artifact.revision == 1
        assert artifact.kind == ArtifactKind.REQUIREMENTS
        assert artifact.stage_name == "requirements-analyst"
        assert artifact.content == "# Requirements"

    def test_same_path_increments_revision(self, tracker: IterationTracker) -> None:
        """Updates are revisions of one logical artifact, not duplicates."""
        for i in range(3):
            tracker.record_artifact(
                "p", f"{i + 1}-bugfix-x", "developer", ProducedArtifact("src/app.py", str(i))
            )

        history = tracker.history("p", "src/app.py")

        assert [a.revision for a in history] == [1, 2, 3]
        assert [a.content for a in history] == ["0", "1", "2"]
        assert len(tracker.latest_artifacts("p")) == 1

    def test_runner_kind_wins_over_default(self, tracker: IterationTracker) -> None:
        artifact = tracker.record_artifact(
            "p",
            "1-bugfix-x",
            "developer",
            ProducedArtifact("tests/test_app.py", kind=ArtifactKind.TEST),
            ArtifactKind.IMPLEMENTATION,
        )

        assert artifact.kind == ArtifactKind.TEST

    def test_latest_artifacts_per_path(self, tracker: IterationTracker) -> None:
        tracker.record_artifact("p", "i", "developer", ProducedArtifact("a.py", "1"))
        tracker.record_artifact("p", "i", "developer", ProducedArtifact("a.py", "2"))
        tracker.record_artifact("p", "i", "developer", ProducedArtifact("b.py", "1"))

        latest = {a.path: a.revision for a in tracker.latest_artifacts("p")}

        assert latest == {"a.py": 2, "b.py": 1}

    def test_concurrent_revisions_are_unique(self, tracker: IterationTracker) -> None:
        def record() -> None:
            for _ in range(10):
                tracker.record_artifact(
                    "p", "i", "developer", ProducedArtifact("shared.md")
                )

        threads = [threading.Thread(target=record) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        revisions = [a.revision for a in tracker.history("p", "shared.md")]
        assert sorted(revisions) == list(range(1, 51))

    def test_revisions_survive_store_reload(self, tmp_path) -> None:
        """Revisions continue across tracker instances on a persistent store."""
        first = IterationTracker(FilesystemArtifactStore(str(tmp_path)))
        first.allocate_iteration("p", RequestCategory.NEW_PROJECT, "r1")
        first.record_artifact("p", "i1", "developer", ProducedArtifact("src/app.py"))

        second = IterationTracker(FilesystemArtifactStore(str(tmp_path)))
        record = second.allocate_iteration("p", RequestCategory.BUG_FIX, "r2")
        artifact = second.record_artifact(
            "p", record.iteration_id, "developer", ProducedArtifact("src/app.py")
        )

        assert record.ordinal == 2
        assert artifact.revision == 2

    def test_store_property(self) -> None:
        store = InMemoryArtifactStore()

        assert IterationTracker(store).store is store
