"""
RequestClassifier: maps a free-text change request to a RequestCategory.
"""

import logging
from types import MappingProxyType

from stagegate.domain.exceptions import (
    ClassificationAmbiguous,
    PlanningInvariantViolation,
)
from stagegate.domain.models import (
    ClassificationResult,
    ProjectContext,
    RequestCategory,
)
from stagegate.domain.rules import DEFAULT_CLASSIFICATION_RULES, ClassificationRule

logger = logging.getLogger(__name__)


class RequestClassifier:
    """
    Keyword-vote classifier driven by a rule table.

    Precedence:
    1. An explicit override is authoritative.
    2. A project that does not exist yet is always NEW_PROJECT.
    3. Otherwise the rule with most keyword hits wins; ties go to the rule
       listed first in the table.
    """

    def __init__(
        self, rules: tuple[ClassificationRule, ...] = DEFAULT_CLASSIFICATION_RULES
    ):
        """
        Args:
            rules: Classification rules in tie-break priority order

        Raises:
            PlanningInvariantViolation: If the table does not cover every
                category exactly once or keyword sets overlap
        """
        self._rules = tuple(rules)
        self._validate()

    def _validate(self) -> None:
        categories = [r.category for r in self._rules]
        if sorted(c.value for c in categories) != sorted(
            c.value for c in RequestCategory
        ):
            raise PlanningInvariantViolation(
                "Classification rules must cover every category exactly once"
            )

        seen: dict[str, RequestCategory] = {}
        for rule in self._rules:
            if not rule.keywords:
                raise PlanningInvariantViolation(
                    f"No keywords for category '{rule.category.value}'"
                )
            for keyword in rule.keywords:
                key = keyword.lower()
                if key in seen and seen[key] != rule.category:
                    raise PlanningInvariantViolation(
                        f"Keyword '{keyword}' used by both "
                        f"'{seen[key].value}' and '{rule.category.value}'"
                    )
                seen[key] = rule.category

    def classify(
        self,
        description: str,
        context: ProjectContext,
        override: RequestCategory | None = None,
    ) -> ClassificationResult:
        """
        Classify a request.

        Args:
            description: Free-text change request
            context: Snapshot of the target project
            override: Caller-supplied category, bypasses every other rule

        Returns:
            ClassificationResult with category and confidence in [0, 1]

        Raises:
            ClassificationAmbiguous: If there is nothing to classify
        """
        if override is not None:
            return ClassificationResult(
                category=override, confidence=1.0, reason="explicit override"
            )

        if not context.has_existing_project:
            return ClassificationResult(
                category=RequestCategory.NEW_PROJECT,
                confidence=1.0,
                reason="no existing project",
            )

        if not description or not description.strip():
            raise ClassificationAmbiguous(
                "Empty request description; supply an override category"
            )

        counts = {r.category: len(r.matches(description)) for r in self._rules}
        total = sum(counts.values())

        # max() keeps the first maximal element, i.e. the table's priority order
        winner = max(self._rules, key=lambda r: counts[r.category]).category
        confidence = counts[winner] / total if total else 0.0

        logger.debug(
            f"[RequestClassifier] {winner.value} "
            f"({counts[winner]}/{total} keyword matches)"
        )

        return ClassificationResult(
            category=winner,
            confidence=round(confidence, 4),
            match_counts=MappingProxyType(counts),
            reason=(
                f"{counts[winner]} of {total} keyword matches"
                if total
                else "no keyword matched; tie-break priority applied"
            ),
        )
