"""Shared pytest fixtures for stagegate tests."""

from collections.abc import Callable

import pytest

from stagegate.application.iteration_tracker import IterationTracker
from stagegate.application.orchestrator import OrchestratorConfig, WorkflowOrchestrator
from stagegate.domain.interfaces import CriterionScorerInterface
from stagegate.domain.models import ProjectContext
from stagegate.domain.rules import STAGE_CATALOGUE, GateConfiguration
from stagegate.infrastructure.persistence.memory import InMemoryArtifactStore
from stagegate.infrastructure.persistence.workflow_events import (
    InMemoryWorkflowEventStore,
)
from stagegate.infrastructure.runners.mock import MockStageRunner, StaticScorer


@pytest.fixture
def memory_store() -> InMemoryArtifactStore:
    """Create an in-memory artifact store."""
    return InMemoryArtifactStore()


@pytest.fixture
def tracker(memory_store: InMemoryArtifactStore) -> IterationTracker:
    """Create an iteration tracker over the in-memory store."""
    return IterationTracker(memory_store)


@pytest.fixture
def event_store() -> InMemoryWorkflowEventStore:
    """Create an in-memory workflow event store."""
    return InMemoryWorkflowEventStore()


@pytest.fixture
def new_project_context() -> ProjectContext:
    """Snapshot of a project directory with nothing in it yet."""
    return ProjectContext(project_id="plant-mes")


@pytest.fixture
def existing_project_context() -> ProjectContext:
    """Snapshot of a project that already has artifacts and history."""
    return ProjectContext(
        project_id="plant-mes",
        root="/srv/plant-mes",
        has_existing_project=True,
        artifact_paths=("requirements-analyst/output.md",),
        open_issues=("Login redirects to a blank page",),
        recent_changes=("new_project: Build the MES core",),
        current_iteration_id="1-new-project-20250101T000000Z",
    )


@pytest.fixture
def passing_scorers() -> dict[str, CriterionScorerInterface]:
    """A scorer above every default threshold for every default criterion."""
    return {name: StaticScorer(97) for name in GateConfiguration().criterion_names()}


@pytest.fixture
def mock_runners() -> dict[str, MockStageRunner]:
    """A default-output mock runner for every catalogued stage."""
    return {name: MockStageRunner() for name in STAGE_CATALOGUE}


@pytest.fixture
def make_orchestrator(
    tracker: IterationTracker,
    mock_runners: dict[str, MockStageRunner],
    passing_scorers: dict[str, CriterionScorerInterface],
    event_store: InMemoryWorkflowEventStore,
) -> Callable[..., WorkflowOrchestrator]:
    """Factory building an orchestrator; keyword arguments replace defaults."""

    def _make(
        runners: dict[str, MockStageRunner] | None = None,
        scorers: dict[str, CriterionScorerInterface] | None = None,
        config: OrchestratorConfig | None = None,
    ) -> WorkflowOrchestrator:
        return WorkflowOrchestrator(
            runners=mock_runners if runners is None else runners,
            scorers=passing_scorers if scorers is None else scorers,
            tracker=tracker,
            config=config,
            event_store=event_store,
        )

    return _make


@pytest.fixture
def scorers_for(
    passing_scorers: dict[str, CriterionScorerInterface],
) -> Callable[..., dict[str, CriterionScorerInterface]]:
    """Passing scorers, with the given criteria replaced."""

    def _make(
        **overrides: CriterionScorerInterface,
    ) -> dict[str, CriterionScorerInterface]:
        scorers = dict(passing_scorers)
        scorers.update(overrides)
        return scorers

    return _make
