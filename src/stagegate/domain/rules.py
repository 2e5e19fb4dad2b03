"""
Static rule tables for classification, planning and quality gates.

Everything here is data: the components in the application layer evaluate
these tables uniformly, so adding a keyword, a specialised stage or a
criterion never touches control flow. Tables are validated once, at
construction of the component (or GateConfiguration) that consumes them.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType

from stagegate.domain.exceptions import PlanningInvariantViolation
from stagegate.domain.models import (
    GATED_PHASES,
    ArtifactKind,
    QualityCriterion,
    RequestCategory,
    StageRole,
    WorkflowPhase,
)


def _contains_any(text: str, terms: tuple[str, ...]) -> tuple[str, ...]:
    lowered = text.lower()
    return tuple(term for term in terms if term in lowered)


# =============================================================================
# CLASSIFICATION RULES
# =============================================================================


@dataclass(frozen=True)
class ClassificationRule:
    """Keyword set voting for one request category."""

    category: RequestCategory
    keywords: tuple[str, ...]

    def matches(self, description: str) -> tuple[str, ...]:
        """Keywords found as case-insensitive substrings of the description."""
        return _contains_any(description, self.keywords)


# Ordered by tie-break priority: the narrowest interpretation comes first.
DEFAULT_CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        RequestCategory.BUG_FIX,
        (
            "bug",
            "fix",
            "broken",
            "error",
            "crash",
            "fail",
            "defect",
            "regression",
            "not working",
            "exception",
            "incorrect",
            "wrong",
            "issue",
        ),
    ),
    ClassificationRule(
        RequestCategory.ENHANCEMENT,
        (
            "add",
            "feature",
            "extend",
            "enhance",
            "new endpoint",
            "support for",
            "introduce",
            "enable",
            "allow",
            "integrate",
            "capability",
            "new option",
        ),
    ),
    ClassificationRule(
        RequestCategory.REFACTOR,
        (
            "refactor",
            "restructure",
            "clean up",
            "cleanup",
            "reorganize",
            "reorganise",
            "simplify",
            "modularize",
            "decouple",
            "rename",
            "technical debt",
            "tech debt",
            "extract",
        ),
    ),
    ClassificationRule(
        RequestCategory.NEW_PROJECT,
        (
            "from scratch",
            "new project",
            "greenfield",
            "bootstrap",
            "scaffold",
            "build a",
            "create a new",
            "start a new",
            "initial version",
        ),
    ),
)


# =============================================================================
# STAGE CATALOGUE AND BASE SEQUENCES
# =============================================================================

REQUIREMENTS_ANALYST = "requirements-analyst"
SYSTEM_ARCHITECT = "system-architect"
ARCHITECTURE_REVIEW = "architecture-review"
DEVELOPER = "developer"
TEST_ENGINEER = "test-engineer"
COMPLIANCE_VALIDATOR = "compliance-validator"
DATABASE_SPECIALIST = "database-specialist"


@dataclass(frozen=True)
class StageDefinition:
    """Catalogue entry for a stage name."""

    name: str
    phase: WorkflowPhase | None  # None: inherited from the insertion anchor
    role: StageRole
    artifact_kind: ArtifactKind


STAGE_CATALOGUE: Mapping[str, StageDefinition] = MappingProxyType(
    {
        d.name: d
        for d in (
            StageDefinition(
                REQUIREMENTS_ANALYST,
                WorkflowPhase.PLANNING,
                StageRole.REQUIREMENTS,
                ArtifactKind.REQUIREMENTS,
            ),
            StageDefinition(
                SYSTEM_ARCHITECT,
                WorkflowPhase.PLANNING,
                StageRole.ARCHITECTURE,
                ArtifactKind.DESIGN,
            ),
            StageDefinition(
                ARCHITECTURE_REVIEW,
                WorkflowPhase.PLANNING,
                StageRole.ARCHITECTURE,
                ArtifactKind.DESIGN,
            ),
            StageDefinition(
                DEVELOPER,
                WorkflowPhase.DEVELOPMENT,
                StageRole.IMPLEMENTATION,
                ArtifactKind.IMPLEMENTATION,
            ),
            StageDefinition(
                TEST_ENGINEER,
                WorkflowPhase.VALIDATION,
                StageRole.TESTING,
                ArtifactKind.TEST,
            ),
            StageDefinition(
                COMPLIANCE_VALIDATOR,
                WorkflowPhase.VALIDATION,
                StageRole.VALIDATION,
                ArtifactKind.VALIDATION,
            ),
            StageDefinition(
                DATABASE_SPECIALIST,
                None,
                StageRole.SPECIALIST,
                ArtifactKind.DESIGN,
            ),
        )
    }
)


@dataclass(frozen=True)
class SequenceEntry:
    """One slot of a base sequence; conditional when ``when_any`` is set."""

    stage: str
    when_any: tuple[str, ...] = ()

    def applies(self, description: str) -> bool:
        return not self.when_any or bool(_contains_any(description, self.when_any))


ARCHITECTURE_TERMS: tuple[str, ...] = (
    "architecture",
    "api",
    "schema",
    "database",
    "interface",
    "endpoint",
    "service",
    "module",
    "data model",
)

BASE_SEQUENCES: Mapping[RequestCategory, tuple[SequenceEntry, ...]] = MappingProxyType(
    {
        RequestCategory.NEW_PROJECT: (
            SequenceEntry(REQUIREMENTS_ANALYST),
            SequenceEntry(SYSTEM_ARCHITECT),
            SequenceEntry(DEVELOPER),
        ),
        RequestCategory.BUG_FIX: (
            SequenceEntry(DEVELOPER),
            SequenceEntry(TEST_ENGINEER),
        ),
        RequestCategory.ENHANCEMENT: (
            SequenceEntry(REQUIREMENTS_ANALYST),
            SequenceEntry(ARCHITECTURE_REVIEW, when_any=ARCHITECTURE_TERMS),
            SequenceEntry(DEVELOPER),
        ),
        RequestCategory.REFACTOR: (
            SequenceEntry(DEVELOPER),
            SequenceEntry(COMPLIANCE_VALIDATOR),
        ),
    }
)


# =============================================================================
# SPECIALISED STAGE INSERTION
# =============================================================================


class InsertionRule(Enum):
    """Where a triggered stage goes in an existing plan."""

    # After the architecture stage, else before implementation, else append
    AFTER_ARCHITECTURE = "after_architecture"
    # Before implementation, else append
    BEFORE_IMPLEMENTATION = "before_implementation"
    APPEND = "append"


@dataclass(frozen=True)
class TriggerGroup:
    """Named vocabulary of trigger terms."""

    name: str
    terms: tuple[str, ...]

    def matches(self, description: str) -> bool:
        return bool(_contains_any(description, self.terms))


@dataclass(frozen=True)
class StageInsertionPolicy:
    """Insert ``stage`` when any trigger group matches the description."""

    stage: str
    trigger_groups: tuple[TriggerGroup, ...]
    rule: InsertionRule = InsertionRule.AFTER_ARCHITECTURE

    def matched_groups(self, description: str) -> tuple[str, ...]:
        return tuple(g.name for g in self.trigger_groups if g.matches(description))

    def triggered(self, description: str) -> bool:
        return bool(self.matched_groups(description))


TIME_SERIES_TERMS = TriggerGroup(
    "time-series",
    (
        "time-series",
        "time series",
        "timeseries",
        "historian",
        "real-time",
        "realtime",
        "telemetry",
        "sensor data",
    ),
)
COMPLIANCE_TERMS = TriggerGroup(
    "regulatory-compliance",
    ("compliance", "regulatory", "audit trail", "gdpr", "hipaa", "21 cfr", "fda"),
)
TRACEABILITY_TERMS = TriggerGroup(
    "genealogy-traceability",
    ("genealogy", "traceability", "lineage", "batch tracking", "lot tracking"),
)
PERFORMANCE_TERMS = TriggerGroup(
    "performance",
    (
        "performance",
        "optimization",
        "optimisation",
        "optimize",
        "latency",
        "throughput",
        "slow query",
    ),
)
INTEGRATION_TERMS = TriggerGroup(
    "system-integration",
    (
        "integration",
        "integrate with",
        "scada",
        "opc-ua",
        "opc ua",
        "message queue",
        "webhook",
        "external system",
    ),
)

DEFAULT_INSERTION_POLICIES: tuple[StageInsertionPolicy, ...] = (
    StageInsertionPolicy(
        DATABASE_SPECIALIST,
        (
            TIME_SERIES_TERMS,
            COMPLIANCE_TERMS,
            TRACEABILITY_TERMS,
            PERFORMANCE_TERMS,
            INTEGRATION_TERMS,
        ),
    ),
)


# =============================================================================
# QUALITY CRITERIA
# =============================================================================

DEFAULT_PHASE_THRESHOLDS: Mapping[WorkflowPhase, float] = MappingProxyType(
    {
        WorkflowPhase.PLANNING: 95.0,
        WorkflowPhase.DEVELOPMENT: 90.0,
        WorkflowPhase.VALIDATION: 85.0,
    }
)

DEFAULT_PHASE_CRITERIA: Mapping[WorkflowPhase, tuple[QualityCriterion, ...]] = (
    MappingProxyType(
        {
            WorkflowPhase.PLANNING: (
                QualityCriterion(
                    "requirements_completeness",
                    0.40,
                    description="Requirements cover the request and acceptance criteria",
                ),
                QualityCriterion(
                    "architecture_compliance",
                    0.35,
                    description="Design respects existing architecture and constraints",
                ),
                QualityCriterion(
                    "risk_assessment",
                    0.25,
                    description="Risks and trade-offs are identified",
                ),
            ),
            WorkflowPhase.DEVELOPMENT: (
                QualityCriterion("code_quality", 0.30),
                QualityCriterion("test_coverage", 0.25),
                QualityCriterion(
                    "security",
                    0.25,
                    description="Critical findings force the gate to fail",
                ),
                QualityCriterion("performance", 0.20),
            ),
            WorkflowPhase.VALIDATION: (
                QualityCriterion("functional_correctness", 0.35),
                QualityCriterion("integration_readiness", 0.25),
                QualityCriterion("documentation", 0.20),
                QualityCriterion("security", 0.20),
            ),
        }
    )
)

# Criterion name -> stages responsible for it, in preference order
CRITERION_OWNERS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "requirements_completeness": (REQUIREMENTS_ANALYST,),
        "architecture_compliance": (
            SYSTEM_ARCHITECT,
            ARCHITECTURE_REVIEW,
            DATABASE_SPECIALIST,
        ),
        "risk_assessment": (SYSTEM_ARCHITECT, ARCHITECTURE_REVIEW),
        "code_quality": (DEVELOPER,),
        "test_coverage": (DEVELOPER, TEST_ENGINEER),
        "security": (DEVELOPER,),
        "performance": (DEVELOPER, DATABASE_SPECIALIST),
        "functional_correctness": (DEVELOPER, TEST_ENGINEER),
        "integration_readiness": (DEVELOPER, COMPLIANCE_VALIDATOR),
        "documentation": (REQUIREMENTS_ANALYST, DEVELOPER),
    }
)

WEIGHT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class GateConfiguration:
    """
    Criteria and thresholds for every gated phase.

    Construction validates the invariants, so an invalid table raises
    PlanningInvariantViolation before any run starts.
    """

    criteria: Mapping[WorkflowPhase, tuple[QualityCriterion, ...]] = field(
        default_factory=lambda: DEFAULT_PHASE_CRITERIA
    )
    thresholds: Mapping[WorkflowPhase, float] = field(
        default_factory=lambda: DEFAULT_PHASE_THRESHOLDS
    )

    def __post_init__(self) -> None:
        # Freeze whatever mapping the caller passed in
        object.__setattr__(
            self,
            "criteria",
            MappingProxyType({p: tuple(c) for p, c in self.criteria.items()}),
        )
        object.__setattr__(
            self,
            "thresholds",
            MappingProxyType({p: float(t) for p, t in self.thresholds.items()}),
        )
        validate_gate_tables(self.criteria, self.thresholds)

    def threshold_for(self, phase: WorkflowPhase) -> float:
        return self.thresholds[phase]

    def criteria_for(self, phase: WorkflowPhase) -> tuple[QualityCriterion, ...]:
        return self.criteria[phase]

    def criterion_names(self) -> set[str]:
        return {c.name for crits in self.criteria.values() for c in crits}

    def with_threshold_overrides(
        self, overrides: Mapping[WorkflowPhase, float]
    ) -> "GateConfiguration":
        if not overrides:
            return self
        thresholds = dict(self.thresholds)
        thresholds.update(overrides)
        return replace(self, thresholds=thresholds)


def validate_gate_tables(
    criteria: Mapping[WorkflowPhase, tuple[QualityCriterion, ...]],
    thresholds: Mapping[WorkflowPhase, float],
) -> None:
    """Check the criteria/threshold invariants for every gated phase.

    Raises:
        PlanningInvariantViolation: On the first violated invariant
    """
    for phase in criteria:
        if phase not in GATED_PHASES:
            raise PlanningInvariantViolation(
                f"Criteria defined for non-gated phase '{phase.value}'"
            )

    for phase in GATED_PHASES:
        if phase not in thresholds:
            raise PlanningInvariantViolation(f"No threshold for phase '{phase.value}'")
        threshold = thresholds[phase]
        if not 0.0 <= threshold <= 100.0:
            raise PlanningInvariantViolation(
                f"Threshold for '{phase.value}' must be within 0-100, got {threshold}"
            )

        phase_criteria = criteria.get(phase, ())
        if not phase_criteria:
            raise PlanningInvariantViolation(f"No criteria for phase '{phase.value}'")

        names = [c.name for c in phase_criteria]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PlanningInvariantViolation(
                f"Duplicate criteria in '{phase.value}': {', '.join(duplicates)}"
            )

        for criterion in phase_criteria:
            if not 0.0 <= criterion.weight <= 1.0:
                raise PlanningInvariantViolation(
                    f"Weight of '{criterion.name}' in '{phase.value}' "
                    f"must be within 0-1, got {criterion.weight}"
                )
            if criterion.threshold is not None and not (
                0.0 <= criterion.threshold <= 100.0
            ):
                raise PlanningInvariantViolation(
                    f"Threshold of '{criterion.name}' must be within 0-100"
                )

        total = math.fsum(c.weight for c in phase_criteria)
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise PlanningInvariantViolation(
                f"Criterion weights for '{phase.value}' sum to {total:.6f}, expected 1.0"
            )
