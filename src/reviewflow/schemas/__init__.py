"""reviewflow JSON Schema definitions and validation utilities.

Schemas:
    - orchestration_log.schema.json: The on-disk orchestration log
      (<planDir>/.orchestration/orchestration.log.json)

Usage:
    from reviewflow.schemas import validate_log

    with open(log_path) as f:
        data = json.load(f)
    validate_log(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'orchestration_log.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("reviewflow.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


@cache
def get_log_schema() -> dict[str, Any]:
    """Get the orchestration log schema."""
    return _load_schema("orchestration_log.schema.json")


def validate_log(data: dict[str, Any]) -> None:
    """Validate a decoded orchestration log document against the schema.

    Args:
        data: Decoded log document

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_log_schema())


__all__ = [
    "get_log_schema",
    "validate_log",
]
