"""
StageExecutor: runs one planned stage through its registered task runner.

The runner call is opaque and may block, so it runs on a worker thread
while the executor watches the run's cancellation token and the stage
deadline. Every failure mode becomes a FAILED StageResult; nothing raised
by a runner escapes.
"""

import logging
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, wait

from stagegate.application.iteration_tracker import IterationTracker
from stagegate.domain.cancellation import CancellationToken
from stagegate.domain.exceptions import StageExecutionFailure, WorkflowStateError
from stagegate.domain.interfaces import StageTaskRunnerInterface
from stagegate.domain.models import (
    ProducedArtifact,
    ProjectContext,
    StageOutput,
    StageResult,
    StageSpec,
    StageStatus,
    WorkflowRun,
    utc_now,
)

logger = logging.getLogger(__name__)


class StageExecutor:
    """Executes stages with timeout and cooperative cancellation."""

    POLL_INTERVAL = 0.05  # seconds between cancellation/deadline checks

    def __init__(
        self,
        runners: Mapping[str, StageTaskRunnerInterface],
        tracker: IterationTracker,
        timeout_seconds: float | None = None,
    ):
        """
        Args:
            runners: Task runner per stage name
            tracker: Records accepted artifacts and assigns revisions
            timeout_seconds: Per-stage deadline (None: no deadline)
        """
        self._runners = dict(runners)
        self._tracker = tracker
        self._timeout = timeout_seconds

    def has_runner(self, stage_name: str) -> bool:
        return stage_name in self._runners

    def execute(
        self,
        spec: StageSpec,
        run: WorkflowRun,
        context: ProjectContext,
        cancellation: CancellationToken,
        attempt: int | None = None,
    ) -> StageResult:
        """
        Execute one stage attempt.

        Args:
            spec: The stage to run (payload may carry retry feedback)
            run: The owning run; supplies prior artifacts and the iteration
            context: Immutable project snapshot
            cancellation: The run's cancellation token
            attempt: Attempt number (defaults to previous attempts + 1)

        Returns:
            StageResult; SUCCEEDED results carry the recorded artifacts
        """
        if run.iteration_id is None:
            raise WorkflowStateError(f"Run {run.run_id} has no iteration allocated")

        attempt = attempt or run.attempts_of(spec.name) + 1
        started_at = utc_now()

        def failed(
            errors: tuple[str, ...], cancelled: bool = False, timed_out: bool = False
        ) -> StageResult:
            logger.warning(
                f"[StageExecutor] {spec.name} attempt {attempt} failed: "
                f"{'; '.join(errors)}"
            )
            return StageResult(
                stage_name=spec.name,
                phase=run.phase,
                status=StageStatus.FAILED,
                attempt=attempt,
                errors=errors,
                started_at=started_at,
                ended_at=utc_now(),
                cancelled=cancelled,
                timed_out=timed_out,
            )

        runner = self._runners.get(spec.name)
        if runner is None:
            return failed((f"No runner registered for stage '{spec.name}'",))

        if cancellation.cancelled:
            return failed((f"Cancelled: {cancellation.reason}",), cancelled=True)

        logger.info(f"[StageExecutor] {spec.name} attempt {attempt} started")

        token = cancellation.child()
        prior = run.latest_artifacts()
        deadline = time.monotonic() + self._timeout if self._timeout else None

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"stage-{spec.name}")
        try:
            future = pool.submit(runner.execute, spec, context, prior, token)
            while True:
                done, _ = wait([future], timeout=self.POLL_INTERVAL)
                if done:
                    break
                if cancellation.cancelled:
                    token.cancel(cancellation.reason)
                    return failed(
                        (f"Cancelled: {cancellation.reason}",), cancelled=True
                    )
                if deadline is not None and time.monotonic() >= deadline:
                    token.cancel("timeout")
                    return failed(
                        (f"Timed out after {self._timeout}s",), timed_out=True
                    )
        finally:
            # Never block on a runner that ignores its token
            pool.shutdown(wait=False, cancel_futures=True)
            token.release()

        exc = future.exception()
        if exc is not None:
            if isinstance(exc, StageExecutionFailure):
                return failed((exc.message,))
            return failed((f"{type(exc).__name__}: {exc}",))

        output = future.result()
        if not isinstance(output, StageOutput):
            return failed(
                (f"Runner returned {type(output).__name__}, expected StageOutput",)
            )
        if output.failed:
            return failed(tuple(output.errors))

        # Output delivered after cancellation is discarded
        if cancellation.cancelled:
            return failed((f"Cancelled: {cancellation.reason}",), cancelled=True)

        if not isinstance(output.artifacts, (tuple, list)):
            return failed(
                (
                    f"Runner returned artifacts as {type(output.artifacts).__name__}, "
                    f"expected a tuple",
                )
            )
        # All or nothing: no artifact is recorded while any item is malformed
        malformed = [
            i
            for i, produced in enumerate(output.artifacts)
            if not isinstance(produced, ProducedArtifact)
            or not isinstance(produced.path, str)
            or not produced.path
        ]
        if malformed:
            return failed(
                tuple(
                    f"Artifact {i} is not a ProducedArtifact with a path: "
                    f"{output.artifacts[i]!r:.80}"
                    for i in malformed
                )
            )

        try:
            artifacts = tuple(
                self._tracker.record_artifact(
                    run.project_id,
                    run.iteration_id,
                    spec.name,
                    produced,
                    spec.artifact_kind,
                )
                for produced in output.artifacts
            )
        except Exception as e:
            return failed((f"Recording artifacts failed: {type(e).__name__}: {e}",))

        logger.info(
            f"[StageExecutor] {spec.name} attempt {attempt} succeeded "
            f"({len(artifacts)} artifact(s))"
        )
        return StageResult(
            stage_name=spec.name,
            phase=run.phase,
            status=StageStatus.SUCCEEDED,
            attempt=attempt,
            artifacts=artifacts,
            started_at=started_at,
            ended_at=utc_now(),
        )
