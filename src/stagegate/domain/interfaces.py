"""
Domain interfaces (Ports) for the stage orchestration engine.

These abstract base classes define the contracts collaborators must satisfy.
The core never looks inside a stage's content: runners and scorers are the
only places where domain knowledge about requirements, designs or code lives.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stagegate.domain.cancellation import CancellationToken
    from stagegate.domain.models import (
        Artifact,
        IterationRecord,
        ProjectContext,
        ScoreReport,
        StageOutput,
        StageSpec,
        WorkflowPhase,
    )
    from stagegate.domain.workflow_event import WorkflowEvent, WorkflowEventType


class StageTaskRunnerInterface(ABC):
    """
    Port for executing one stage's task (one runner per stage name).

    Note (Opacity):
        Implementations typically call an LLM agent or another content
        producer. From the orchestrator's perspective the call is atomic:
        only the returned artifacts and errors are observed.

    Note (Cancellation):
        Long-running implementations should poll ``cancellation`` and return
        early once it is set. Output returned after cancellation is discarded.
    """

    @abstractmethod
    def execute(
        self,
        spec: "StageSpec",
        context: "ProjectContext",
        prior_artifacts: tuple["Artifact", ...],
        cancellation: "CancellationToken",
    ) -> "StageOutput":
        """
        Run the stage task.

        Args:
            spec: The planned stage, including its task payload
            context: Immutable project snapshot
            prior_artifacts: Latest revision of every artifact produced so far
            cancellation: Signal set when the run is cancelled or the stage times out

        Returns:
            StageOutput with produced artifacts, or errors on failure
        """
        pass


class CriterionScorerInterface(ABC):
    """
    Port for scoring one quality criterion (one scorer per criterion name).

    Scorers must be deterministic for identical inputs; gate idempotence
    depends on it.
    """

    @abstractmethod
    def evaluate(
        self,
        phase: "WorkflowPhase",
        artifacts: tuple["Artifact", ...],
        context: "ProjectContext",
    ) -> "ScoreReport":
        """
        Score the artifacts of a phase.

        Args:
            phase: Phase whose gate is being evaluated
            artifacts: Artifacts in the gate's scope
            context: Immutable project snapshot

        Returns:
            ScoreReport with a 0-100 score and optional critical flag. A bare
            number is accepted as the score.
        """
        pass


class ArtifactStoreInterface(ABC):
    """
    Port for per-project artifact and iteration persistence.

    Artifact history is append-only and keyed by logical path; iterations are
    keyed by ordinal. Serialisation of writes is the tracker's job.
    """

    @abstractmethod
    def highest_ordinal(self, project_id: str) -> int:
        """Highest iteration ordinal ever recorded for the project (0 if none)."""
        pass

    @abstractmethod
    def store_iteration(self, record: "IterationRecord") -> None:
        """Insert or replace the iteration with ``record.ordinal``."""
        pass

    @abstractmethod
    def get_iterations(self, project_id: str) -> list["IterationRecord"]:
        """All iterations of a project ordered by ordinal."""
        pass

    @abstractmethod
    def get_iteration(self, project_id: str, iteration_id: str) -> "IterationRecord":
        """
        Retrieve an iteration by identifier.

        Raises:
            KeyError: If the iteration is unknown
        """
        pass

    @abstractmethod
    def store_artifact(self, project_id: str, artifact: "Artifact") -> str:
        """Append an artifact revision; returns the artifact_id."""
        pass

    @abstractmethod
    def latest_revision(self, project_id: str, path: str) -> int:
        """Latest revision number recorded for a logical path (0 if none)."""
        pass

    @abstractmethod
    def get_history(self, project_id: str, path: str) -> list["Artifact"]:
        """Every revision of a logical path, oldest first."""
        pass

    @abstractmethod
    def get_paths(self, project_id: str) -> list[str]:
        """All logical paths known for a project, sorted."""
        pass


class ProjectContextLoaderInterface(ABC):
    """Port for reading the current state of a target project."""

    @abstractmethod
    def load(self, project_id: str, root: str) -> "ProjectContext":
        """Build an immutable snapshot of the project."""
        pass


class WorkflowEventStoreInterface(ABC):
    """Port for persisting the workflow execution trace."""

    @abstractmethod
    def store_event(self, event: "WorkflowEvent") -> str:
        """Append an event; returns the event_id."""
        pass

    @abstractmethod
    def get_events(
        self,
        run_id: str,
        event_type: "WorkflowEventType | None" = None,
        stage_name: str | None = None,
    ) -> list["WorkflowEvent"]:
        """Events of a run, optionally filtered, in creation order."""
        pass
