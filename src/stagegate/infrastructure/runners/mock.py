"""
Mock runners and scorers for testing without external agents.

Return predefined outputs in sequence.
"""

from stagegate.domain.cancellation import CancellationToken
from stagegate.domain.interfaces import (
    CriterionScorerInterface,
    StageTaskRunnerInterface,
)
from stagegate.domain.models import (
    Artifact,
    ProducedArtifact,
    ProjectContext,
    ScoreReport,
    StageOutput,
    StageSpec,
    WorkflowPhase,
)


class MockStageRunner(StageTaskRunnerInterface):
    """Returns predefined stage outputs for testing.

    Without ``responses`` every call succeeds with one artifact at
    ``artifact_path`` (default ``<stage>/output.md``).
    """

    def __init__(
        self,
        responses: list[StageOutput] | None = None,
        artifact_path: str | None = None,
    ):
        """
        Args:
            responses: Outputs to return in sequence (None: always succeed)
            artifact_path: Logical path used by the default output
        """
        self._responses = responses
        self._artifact_path = artifact_path
        self._call_count = 0
        self.calls: list[StageSpec] = []

    def execute(
        self,
        spec: StageSpec,
        _context: ProjectContext,
        _prior_artifacts: tuple[Artifact, ...],
        _cancellation: CancellationToken,
    ) -> StageOutput:
        """Return the next predefined output."""
        self.calls.append(spec)
        self._call_count += 1

        if self._responses is None:
            path = self._artifact_path or f"{spec.name}/output.md"
            return StageOutput(
                artifacts=(
                    ProducedArtifact(
                        path=path, content=f"{spec.name} attempt {self._call_count}"
                    ),
                )
            )

        if self._call_count > len(self._responses):
            raise RuntimeError("MockStageRunner exhausted responses")
        return self._responses[self._call_count - 1]

    @property
    def call_count(self) -> int:
        """Number of times execute() has been called."""
        return self._call_count

    def reset(self) -> None:
        """Reset the call counter to reuse responses."""
        self._call_count = 0
        self.calls.clear()


class StaticScorer(CriterionScorerInterface):
    """Always returns the same score."""

    def __init__(
        self, score: float, critical: bool = False, findings: tuple[str, ...] = ()
    ):
        self._report = ScoreReport(score=score, critical=critical, findings=findings)

    def evaluate(
        self,
        _phase: WorkflowPhase,
        _artifacts: tuple[Artifact, ...],
        _context: ProjectContext,
    ) -> ScoreReport:
        return self._report


class MockScorer(CriterionScorerInterface):
    """Returns predefined score reports in sequence; the last one repeats."""

    def __init__(self, reports: list[ScoreReport | float]):
        if not reports:
            raise ValueError("MockScorer needs at least one report")
        self._reports = [
            r if isinstance(r, ScoreReport) else ScoreReport(score=r) for r in reports
        ]
        self._call_count = 0

    def evaluate(
        self,
        _phase: WorkflowPhase,
        _artifacts: tuple[Artifact, ...],
        _context: ProjectContext,
    ) -> ScoreReport:
        report = self._reports[min(self._call_count, len(self._reports) - 1)]
        self._call_count += 1
        return report

    @property
    def call_count(self) -> int:
        return self._call_count
