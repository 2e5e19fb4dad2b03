"""Validated input model for a workflow run.

Malformed requests are rejected here with a pydantic ValidationError,
before a run (or an iteration) is created.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stagegate.domain.models import GATED_PHASES, RequestCategory, WorkflowPhase


class WorkflowRequest(BaseModel):
    """A change request submitted to the orchestrator."""

    model_config = ConfigDict(frozen=True)

    description: str
    override_category: RequestCategory | None = None
    # Phase name (e.g. "planning") -> threshold in 0-100
    quality_threshold_overrides: dict[str, float] = Field(default_factory=dict)
    skip_stages: tuple[str, ...] = ()
    max_retries: int | None = Field(default=None, ge=0)

    @field_validator("quality_threshold_overrides")
    @classmethod
    def _check_thresholds(cls, value: dict[str, float]) -> dict[str, float]:
        gated = {p.value for p in GATED_PHASES}
        for phase, threshold in value.items():
            if phase not in gated:
                raise ValueError(
                    f"Unknown phase '{phase}'; expected one of {sorted(gated)}"
                )
            if not 0.0 <= threshold <= 100.0:
                raise ValueError(f"Threshold for '{phase}' must be within 0-100")
        return value

    def threshold_overrides(self) -> dict[WorkflowPhase, float]:
        return {
            WorkflowPhase(phase): threshold
            for phase, threshold in self.quality_threshold_overrides.items()
        }
