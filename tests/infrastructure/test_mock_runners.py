"""Tests for the mock runner and scorers."""

import pytest

from stagegate.domain.cancellation import CancellationToken
from stagegate.domain.models import (
    ArtifactKind,
    ProducedArtifact,
    ProjectContext,
    ScoreReport,
    StageOutput,
    StageRole,
    StageSpec,
    WorkflowPhase,
)
from stagegate.infrastructure.runners.mock import MockScorer, MockStageRunner, StaticScorer

CONTEXT = ProjectContext(project_id="plant-mes")


def run(runner: MockStageRunner, name: str = "developer") -> StageOutput:
    spec = StageSpec(
        name=name,
        phase=WorkflowPhase.DEVELOPMENT,
        role=StageRole.IMPLEMENTATION,
        artifact_kind=ArtifactKind.IMPLEMENTATION,
    )
    return runner.execute(spec, CONTEXT, (), CancellationToken())


class TestMockStageRunner:
    """Tests for MockStageRunner."""

    def test_default_output_per_stage(self) -> None:
        runner = MockStageRunner()

        first = run(runner)
        second = run(runner)

        assert first.artifacts == (
            ProducedArtifact("developer/output.md", "developer attempt 1"),
        )
        assert second.artifacts[0].content == "developer attempt 2"
        assert runner.call_count == 2
        assert [s.name for s in runner.calls] == ["developer", "developer"]

    def test_artifact_path(self) -> None:
        runner = MockStageRunner(artifact_path="docs/design.md")

        assert run(runner, "system-architect").artifacts[0].path == "docs/design.md"

    def test_responses_in_sequence(self) -> None:
        failed = StageOutput(errors=("compile error",))
        ok = StageOutput(artifacts=(ProducedArtifact("src/app.py"),))
        runner = MockStageRunner(responses=[failed, ok])

        assert run(runner) is failed
        assert run(runner) is ok

    def test_exhausted_responses(self) -> None:
        runner = MockStageRunner(responses=[StageOutput()])
        run(runner)

        with pytest.raises(RuntimeError, match="exhausted"):
            run(runner)

    def test_reset(self) -> None:
        runner = MockStageRunner(responses=[StageOutput()])
        run(runner)

        runner.reset()

        assert runner.call_count == 0
        assert runner.calls == []
        run(runner)


class TestScorers:
    """Tests for StaticScorer and MockScorer."""

    def test_static_scorer(self) -> None:
        scorer = StaticScorer(88.0, critical=True, findings=("weak hashing",))

        report = scorer.evaluate(WorkflowPhase.DEVELOPMENT, (), CONTEXT)

        assert report == ScoreReport(score=88.0, critical=True, findings=("weak hashing",))

    def test_mock_scorer_last_report_repeats(self) -> None:
        scorer = MockScorer([70.0, ScoreReport(score=95.0, findings=("ok",))])

        scores = [
            scorer.evaluate(WorkflowPhase.PLANNING, (), CONTEXT).score for _ in range(4)
        ]

        assert scores == [70.0, 95.0, 95.0, 95.0]
        assert scorer.call_count == 4

    def test_mock_scorer_needs_reports(self) -> None:
        with pytest.raises(ValueError):
            MockScorer([])
