"""
PipelinePlanner: builds the ordered stage plan for a classified request.

The plan is the base sequence of the category, with conditional entries
resolved against the description, followed by insertion of specialised
stages whose trigger vocabulary matches.
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType

from stagegate.domain.exceptions import PlanningInvariantViolation
from stagegate.domain.models import (
    GATED_PHASES,
    ProjectContext,
    RequestCategory,
    StageRole,
    StageSpec,
    WorkflowPhase,
)
from stagegate.domain.rules import (
    BASE_SEQUENCES,
    DEFAULT_INSERTION_POLICIES,
    STAGE_CATALOGUE,
    InsertionRule,
    SequenceEntry,
    StageDefinition,
    StageInsertionPolicy,
)

logger = logging.getLogger(__name__)


class PipelinePlanner:
    """Deterministic planner over data-driven sequence and insertion tables."""

    def __init__(
        self,
        catalogue: Mapping[str, StageDefinition] = STAGE_CATALOGUE,
        base_sequences: Mapping[
            RequestCategory, tuple[SequenceEntry, ...]
        ] = BASE_SEQUENCES,
        insertion_policies: tuple[StageInsertionPolicy, ...] = DEFAULT_INSERTION_POLICIES,
    ):
        self._catalogue = catalogue
        self._sequences = base_sequences
        self._policies = tuple(insertion_policies)
        self._validate()

    def _validate(self) -> None:
        for category in RequestCategory:
            if category not in self._sequences:
                raise PlanningInvariantViolation(
                    f"No base sequence for category '{category.value}'"
                )
            for entry in self._sequences[category]:
                definition = self._catalogue.get(entry.stage)
                if definition is None:
                    raise PlanningInvariantViolation(
                        f"Unknown stage '{entry.stage}' in {category.value} sequence"
                    )
                if definition.phase not in GATED_PHASES:
                    raise PlanningInvariantViolation(
                        f"Base stage '{entry.stage}' must belong to a gated phase"
                    )
        for policy in self._policies:
            if policy.stage not in self._catalogue:
                raise PlanningInvariantViolation(
                    f"Unknown stage '{policy.stage}' in insertion policy"
                )

    def plan(
        self,
        category: RequestCategory,
        description: str,
        context: ProjectContext,
    ) -> tuple[StageSpec, ...]:
        """
        Build the stage plan.

        Args:
            category: Classified request category
            description: Free-text change request (drives conditional stages)
            context: Snapshot of the target project

        Returns:
            Ordered, immutable tuple of StageSpec
        """
        names: list[str] = [
            e.stage for e in self._sequences[category] if e.applies(description)
        ]
        phases: dict[str, WorkflowPhase] = {n: self._base_phase(n) for n in names}
        focus: dict[str, tuple[str, ...]] = {}

        for policy in self._policies:
            matched = policy.matched_groups(description)
            if not matched or policy.stage in names:
                continue
            index, phase = self._insertion_point(policy, names, phases)
            names.insert(index, policy.stage)
            phases[policy.stage] = phase
            focus[policy.stage] = matched
            logger.debug(
                f"[PipelinePlanner] Inserted {policy.stage} at {index} "
                f"({', '.join(matched)})"
            )

        plan = []
        for index, name in enumerate(names):
            definition = self._catalogue[name]
            payload: dict[str, object] = {
                "description": description,
                "category": category.value,
                "project_id": context.project_id,
            }
            if name in focus:
                payload["focus"] = focus[name]
            is_last = index == len(names) - 1
            plan.append(
                StageSpec(
                    name=name,
                    phase=phases[name],
                    role=definition.role,
                    artifact_kind=definition.artifact_kind,
                    payload=MappingProxyType(payload),
                    requires_quality_check=not (
                        category == RequestCategory.REFACTOR and is_last
                    ),
                    depends_on=tuple(names[:index]),
                )
            )

        logger.info(
            f"[PipelinePlanner] {category.value} plan: "
            f"{' -> '.join(s.name for s in plan)}"
        )
        return tuple(plan)

    def _base_phase(self, name: str) -> WorkflowPhase:
        phase = self._catalogue[name].phase
        if phase is None:
            raise PlanningInvariantViolation(f"Stage '{name}' has no fixed phase")
        return phase

    def _insertion_point(
        self,
        policy: StageInsertionPolicy,
        names: list[str],
        phases: dict[str, WorkflowPhase],
    ) -> tuple[int, WorkflowPhase]:
        """Index to insert at and the phase the inserted stage inherits."""
        roles = [self._catalogue[n].role for n in names]

        if policy.rule == InsertionRule.AFTER_ARCHITECTURE:
            architecture = [i for i, r in enumerate(roles) if r == StageRole.ARCHITECTURE]
            if architecture:
                anchor = architecture[-1]
                # Stay behind stages already inserted after the same anchor
                index = anchor + 1
                while (
                    index < len(names)
                    and self._catalogue[names[index]].role == StageRole.SPECIALIST
                ):
                    index += 1
                return index, phases[names[anchor]]

        if policy.rule in (
            InsertionRule.AFTER_ARCHITECTURE,
            InsertionRule.BEFORE_IMPLEMENTATION,
        ):
            for i, role in enumerate(roles):
                if role == StageRole.IMPLEMENTATION:
                    return i, phases[names[i]]

        if names:
            return len(names), phases[names[-1]]
        return 0, WorkflowPhase.PLANNING
