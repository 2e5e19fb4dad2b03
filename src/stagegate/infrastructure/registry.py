"""
Stage Runner Registry with Entry Points Discovery.

Provides dynamic runner loading via Python entry points (stagegate.runners group).
External packages can register runners in their pyproject.toml:

    [project.entry-points."stagegate.runners"]
    MyRunner = "mypackage.runners:MyRunner"
"""

import warnings
from importlib.metadata import entry_points
from typing import Any

from stagegate.domain.interfaces import StageTaskRunnerInterface


class StageRunnerRegistry:
    """
    Registry for StageTaskRunnerInterface implementations.

    Discovers runners via the 'stagegate.runners' entry point group.
    Uses lazy loading - entry points are only loaded on first access.

    Example usage:
        registry = StageRunnerRegistry()
        runner = registry.create("MockStageRunner", artifact_path="design.md")
    """

    _runners: dict[str, type[StageTaskRunnerInterface]] = {}
    _loaded: bool = False

    @classmethod
    def _load_entry_points(cls) -> None:
        """Load runners from entry points (lazy, called once)."""
        if cls._loaded:
            return

        for ep in entry_points(group="stagegate.runners"):
            try:
                cls._runners[ep.name] = ep.load()
            except Exception as e:
                warnings.warn(
                    f"Failed to load runner '{ep.name}' from entry point: {e}",
                    stacklevel=2,
                )

        cls._loaded = True

    @classmethod
    def register(cls, name: str, runner_class: type[StageTaskRunnerInterface]) -> None:
        """
        Manually register a runner class.

        Args:
            name: Runner identifier (e.g., "MockStageRunner")
            runner_class: Class implementing StageTaskRunnerInterface
        """
        cls._runners[name] = runner_class

    @classmethod
    def get(cls, name: str) -> type[StageTaskRunnerInterface]:
        """
        Get a runner class by name.

        Raises:
            KeyError: If runner not found
        """
        cls._load_entry_points()
        if name not in cls._runners:
            available = ", ".join(cls._runners.keys()) or "(none)"
            raise KeyError(f"Runner '{name}' not found. Available runners: {available}")
        return cls._runners[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> StageTaskRunnerInterface:
        """
        Create a runner instance by name.

        Raises:
            KeyError: If runner not found
            TypeError: If config doesn't match constructor signature
        """
        return cls.get(name)(**config)

    @classmethod
    def available(cls) -> list[str]:
        cls._load_entry_points()
        return list(cls._runners.keys())

    @classmethod
    def clear(cls) -> None:
        """
        Clear all registered runners (useful for testing).

        Also resets the loaded flag so entry points can be reloaded.
        """
        cls._runners.clear()
        cls._loaded = False
