"""
Stage runner and scorer adapters.
"""

from stagegate.infrastructure.runners.mock import (
    MockScorer,
    MockStageRunner,
    StaticScorer,
)

__all__ = [
    "MockStageRunner",
    "MockScorer",
    "StaticScorer",
]
