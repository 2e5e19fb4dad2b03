"""Tests for PipelinePlanner."""

import pytest

from stagegate.application.planner import PipelinePlanner
from stagegate.domain.exceptions import PlanningInvariantViolation
from stagegate.domain.models import (
    ProjectContext,
    RequestCategory,
    StageSpec,
    WorkflowPhase,
)
from stagegate.domain.rules import (
    BASE_SEQUENCES,
    DATABASE_SPECIALIST,
    INTEGRATION_TERMS,
    InsertionRule,
    SequenceEntry,
    StageInsertionPolicy,
)


@pytest.fixture
def planner() -> PipelinePlanner:
    return PipelinePlanner()


def _names(plan: tuple[StageSpec, ...]) -> list[str]:
    return [s.name for s in plan]


class TestBasePlans:
    """Base sequences without trigger terms."""

    def test_new_project(
        self, planner: PipelinePlanner, new_project_context: ProjectContext
    ) -> None:
        """'build a thing' gets the 3-stage sequence with no insertion."""
        plan = planner.plan(RequestCategory.NEW_PROJECT, "build a thing", new_project_context)

        assert _names(plan) == ["requirements-analyst", "system-architect", "developer"]
        assert [s.phase for s in plan] == [
            WorkflowPhase.PLANNING,
            WorkflowPhase.PLANNING,
            WorkflowPhase.DEVELOPMENT,
        ]

    def test_bug_fix(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.BUG_FIX,
            "the login is broken after the auth update",
            existing_project_context,
        )

        assert _names(plan) == ["developer", "test-engineer"]

    def test_enhancement_without_architecture_terms(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        """The conditional architecture review is dropped."""
        plan = planner.plan(
            RequestCategory.ENHANCEMENT, "Add a dark theme", existing_project_context
        )

        assert _names(plan) == ["requirements-analyst", "developer"]

    def test_enhancement_with_architecture_terms(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.ENHANCEMENT,
            "Add a new endpoint to the orders API",
            existing_project_context,
        )

        assert _names(plan) == ["requirements-analyst", "architecture-review", "developer"]

    def test_refactor(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.REFACTOR, "Simplify the billing code", existing_project_context
        )

        assert _names(plan) == ["developer", "compliance-validator"]


class TestSpecialisedInsertion:
    """Trigger vocabularies insert the database specialist."""

    def test_after_architecture_stage(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        """Inserted right after the architecture review and joins its phase."""
        plan = planner.plan(
            RequestCategory.ENHANCEMENT,
            "Add a real-time historian service for line sensors",
            existing_project_context,
        )

        assert _names(plan) == [
            "requirements-analyst",
            "architecture-review",
            DATABASE_SPECIALIST,
            "developer",
        ]
        assert plan[2].phase == WorkflowPhase.PLANNING

    def test_before_implementation_without_architecture(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        """Without an architecture stage, inserted right before the developer."""
        plan = planner.plan(
            RequestCategory.ENHANCEMENT,
            "Add real-time historian trends",
            existing_project_context,
        )

        assert _names(plan) == ["requirements-analyst", DATABASE_SPECIALIST, "developer"]
        assert plan[1].phase == WorkflowPhase.DEVELOPMENT

    def test_new_project_after_system_architect(
        self, planner: PipelinePlanner, new_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.NEW_PROJECT,
            "build a batch genealogy tracker",
            new_project_context,
        )

        assert _names(plan) == [
            "requirements-analyst",
            "system-architect",
            DATABASE_SPECIALIST,
            "developer",
        ]

    def test_bug_fix_inserts_first(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.BUG_FIX,
            "fix the slow query on the batch report",
            existing_project_context,
        )

        assert _names(plan) == [DATABASE_SPECIALIST, "developer", "test-engineer"]

    def test_focus_names_matched_groups(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.ENHANCEMENT,
            "Add real-time historian trends with an audit trail",
            existing_project_context,
        )
        specialist = next(s for s in plan if s.name == DATABASE_SPECIALIST)

        assert specialist.payload["focus"] == ("time-series", "regulatory-compliance")
        assert "focus" not in plan[0].payload

    def test_inserted_once(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        """Several matching vocabularies still insert a single stage."""
        plan = planner.plan(
            RequestCategory.ENHANCEMENT,
            "Add telemetry, lot tracking, SCADA integration and better throughput",
            existing_project_context,
        )

        assert _names(plan).count(DATABASE_SPECIALIST) == 1

    def test_append_rule(self, existing_project_context: ProjectContext) -> None:
        planner = PipelinePlanner(
            insertion_policies=(
                StageInsertionPolicy(
                    DATABASE_SPECIALIST, (INTEGRATION_TERMS,), InsertionRule.APPEND
                ),
            )
        )

        plan = planner.plan(
            RequestCategory.BUG_FIX,
            "fix the webhook retries",
            existing_project_context,
        )

        assert _names(plan) == ["developer", "test-engineer", DATABASE_SPECIALIST]
        assert plan[-1].phase == WorkflowPhase.VALIDATION

    def test_before_implementation_rule_ignores_architecture(
        self, new_project_context: ProjectContext
    ) -> None:
        planner = PipelinePlanner(
            insertion_policies=(
                StageInsertionPolicy(
                    DATABASE_SPECIALIST,
                    (INTEGRATION_TERMS,),
                    InsertionRule.BEFORE_IMPLEMENTATION,
                ),
            )
        )

        plan = planner.plan(
            RequestCategory.NEW_PROJECT,
            "build a SCADA bridge",
            new_project_context,
        )

        assert _names(plan).index(DATABASE_SPECIALIST) == 2
        assert plan[2].phase == WorkflowPhase.DEVELOPMENT


class TestStageSpecs:
    """Quality flags, dependencies and payloads."""

    def test_dependencies_are_all_preceding_stages(
        self, planner: PipelinePlanner, new_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(RequestCategory.NEW_PROJECT, "build a thing", new_project_context)

        assert plan[0].depends_on == ()
        assert plan[2].depends_on == ("requirements-analyst", "system-architect")

    def test_refactor_final_stage_skips_quality_check(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.REFACTOR, "Simplify the billing code", existing_project_context
        )

        assert [s.requires_quality_check for s in plan] == [True, False]

    @pytest.mark.parametrize(
        "category",
        [
            RequestCategory.NEW_PROJECT,
            RequestCategory.BUG_FIX,
            RequestCategory.ENHANCEMENT,
        ],
    )
    def test_other_categories_check_every_stage(
        self,
        planner: PipelinePlanner,
        existing_project_context: ProjectContext,
        category: RequestCategory,
    ) -> None:
        plan = planner.plan(category, "change things", existing_project_context)

        assert all(s.requires_quality_check for s in plan)

    def test_payload_carries_request(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        plan = planner.plan(
            RequestCategory.BUG_FIX, "fix the crash", existing_project_context
        )

        assert plan[0].payload["description"] == "fix the crash"
        assert plan[0].payload["category"] == "bug_fix"
        assert plan[0].payload["project_id"] == "plant-mes"

    def test_planning_is_deterministic(
        self, planner: PipelinePlanner, existing_project_context: ProjectContext
    ) -> None:
        description = "Add real-time historian trends"

        first = planner.plan(RequestCategory.ENHANCEMENT, description, existing_project_context)
        second = planner.plan(RequestCategory.ENHANCEMENT, description, existing_project_context)

        assert first == second


class TestPlannerValidation:
    """Tables are validated at construction."""

    def test_unknown_stage_in_sequence(self) -> None:
        sequences = dict(BASE_SEQUENCES)
        sequences[RequestCategory.BUG_FIX] = (SequenceEntry("ghost"),)

        with pytest.raises(PlanningInvariantViolation, match="Unknown stage 'ghost'"):
            PipelinePlanner(base_sequences=sequences)

    def test_missing_category(self) -> None:
        sequences = dict(BASE_SEQUENCES)
        del sequences[RequestCategory.REFACTOR]

        with pytest.raises(PlanningInvariantViolation, match="refactor"):
            PipelinePlanner(base_sequences=sequences)

    def test_specialist_cannot_be_a_base_stage(self) -> None:
        sequences = dict(BASE_SEQUENCES)
        sequences[RequestCategory.BUG_FIX] = (SequenceEntry(DATABASE_SPECIALIST),)

        with pytest.raises(PlanningInvariantViolation, match="gated phase"):
            PipelinePlanner(base_sequences=sequences)

    def test_unknown_policy_stage(self) -> None:
        with pytest.raises(PlanningInvariantViolation, match="insertion policy"):
            PipelinePlanner(
                insertion_policies=(StageInsertionPolicy("ghost", (INTEGRATION_TERMS,)),)
            )
