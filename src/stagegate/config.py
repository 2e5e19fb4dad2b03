"""Configuration loading utilities."""

import json
from pathlib import Path
from typing import Any

import jsonschema

from stagegate.application.orchestrator import OrchestratorConfig
from stagegate.domain.exceptions import ConfigurationError
from stagegate.domain.interfaces import StageTaskRunnerInterface
from stagegate.domain.models import QualityCriterion, WorkflowPhase
from stagegate.domain.rules import (
    DEFAULT_PHASE_CRITERIA,
    DEFAULT_PHASE_THRESHOLDS,
    GateConfiguration,
)
from stagegate.infrastructure.registry import StageRunnerRegistry
from stagegate.schemas import validate_orchestrator_config, validate_runner_config


def _read_json(path: Path) -> dict[str, Any]:
    """Read a JSON object from disk.

    Raises:
        ConfigurationError: If file is missing, unreadable or not an object
    """
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected dict in {path}, got {type(data).__name__}")

    return data


def build_orchestrator_config(data: dict[str, Any]) -> OrchestratorConfig:
    """
    Build an OrchestratorConfig from already-parsed configuration data.

    Phases not mentioned keep the default criteria and threshold.

    Raises:
        ConfigurationError: If the data does not match the schema
        PlanningInvariantViolation: If criterion weights or thresholds are invalid
    """
    try:
        validate_orchestrator_config(data)
    except jsonschema.ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigurationError(f"Invalid orchestrator config at {location}: {e.message}") from e

    criteria = dict(DEFAULT_PHASE_CRITERIA)
    thresholds = dict(DEFAULT_PHASE_THRESHOLDS)
    for phase_name, gate in data.get("gates", {}).items():
        phase = WorkflowPhase(phase_name)
        if "threshold" in gate:
            thresholds[phase] = float(gate["threshold"])
        if "criteria" in gate:
            criteria[phase] = tuple(
                QualityCriterion(
                    name=c["name"],
                    weight=float(c["weight"]),
                    threshold=c.get("threshold"),
                    description=c.get("description", ""),
                )
                for c in gate["criteria"]
            )

    return OrchestratorConfig(
        gates=GateConfiguration(criteria=criteria, thresholds=thresholds),
        max_retries=data.get("max_retries", 2),
        stage_timeout_seconds=data.get("stage_timeout_seconds"),
    )


def load_orchestrator_config(path: Path) -> OrchestratorConfig:
    """
    Load orchestrator configuration from JSON file.

    Args:
        path: Path to orchestrator.json

    Returns:
        Validated OrchestratorConfig

    Raises:
        ConfigurationError: If file is missing or invalid
        PlanningInvariantViolation: If criterion weights or thresholds are invalid
    """
    return build_orchestrator_config(_read_json(Path(path)))


def load_runner_config(path: Path) -> dict[str, StageTaskRunnerInterface]:
    """
    Load stage runners from JSON file.

    Each entry names a runner class registered with StageRunnerRegistry
    (directly or through the ``stagegate.runners`` entry point group) and
    the keyword arguments for its constructor.

    Args:
        path: Path to runners.json

    Returns:
        Dict mapping stage name to runner instance

    Raises:
        ConfigurationError: If file is invalid or names an unknown runner
    """
    path = Path(path)
    data = _read_json(path)
    try:
        validate_runner_config(data)
    except jsonschema.ValidationError as e:
        raise ConfigurationError(f"Invalid runner config in {path}: {e.message}") from e

    runners: dict[str, StageTaskRunnerInterface] = {}
    for stage_name, entry in data["runners"].items():
        try:
            runners[stage_name] = StageRunnerRegistry.create(
                entry["runner"], **entry.get("config", {})
            )
        except KeyError as e:
            raise ConfigurationError(f"Stage '{stage_name}': {e.args[0]}") from e
        except TypeError as e:
            raise ConfigurationError(
                f"Stage '{stage_name}': invalid config for '{entry['runner']}': {e}"
            ) from e
    return runners
