"""Stagegate JSON Schema definitions and validation utilities.

Schemas:
    - orchestrator.schema.json: Gate tables, retry budget, stage timeout
    - runners.schema.json: Stage name -> registered runner mapping

Usage:
    from stagegate.schemas import validate_orchestrator_config

    with open("orchestrator.json") as f:
        data = json.load(f)
    validate_orchestrator_config(data)  # Raises jsonschema.ValidationError if invalid
"""

import json
from importlib.resources import files
from typing import Any

import jsonschema


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'orchestrator.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("stagegate.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_orchestrator_schema() -> dict[str, Any]:
    """Get the orchestrator configuration schema."""
    return _load_schema("orchestrator.schema.json")


def get_runners_schema() -> dict[str, Any]:
    """Get the stage runner configuration schema."""
    return _load_schema("runners.schema.json")


def validate_orchestrator_config(data: dict[str, Any]) -> None:
    """Validate an orchestrator configuration against the schema.

    Args:
        data: Orchestrator configuration dictionary

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_orchestrator_schema())


def validate_runner_config(data: dict[str, Any]) -> None:
    """Validate a runner configuration against the schema.

    Args:
        data: Runner configuration dictionary

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_runners_schema())


__all__ = [
    "get_orchestrator_schema",
    "get_runners_schema",
    "validate_orchestrator_config",
    "validate_runner_config",
]
