"""
Orchestration configuration.

Loaded from an optional JSON file, with REVIEWFLOW_MAX_CHANGE_REQUESTS
overriding the loop guard threshold from the environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reviewflow.domain.exceptions import ConfigurationError
from reviewflow.domain.models import FlowConfig

logger = logging.getLogger(__name__)

MAX_CHANGE_REQUESTS_ENV = "REVIEWFLOW_MAX_CHANGE_REQUESTS"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


class OrchestrationConfig(BaseModel):
    """Settings for one orchestration run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_change_requests: int = Field(
        default=3,
        ge=1,
        description="Change requests allowed per step before the loop guard halts",
    )
    read_only_reviewer: bool = Field(
        default=True, description="Block write tools for the reviewer"
    )
    log_level: LogLevel = Field(default="INFO", description="Console log level")

    def to_flow_config(self, initial_step: str, has_more_steps: bool) -> FlowConfig:
        return FlowConfig(
            max_change_requests=self.max_change_requests,
            initial_step=initial_step,
            has_more_steps=has_more_steps,
        )


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    raw = environ.get(MAX_CHANGE_REQUESTS_ENV)
    if raw is not None and raw.strip():
        try:
            overrides["max_change_requests"] = int(raw)
        except ValueError as e:
            raise ConfigurationError(
                f"{MAX_CHANGE_REQUESTS_ENV} must be an integer, got '{raw}'"
            ) from e
    return overrides


def load_config(
    path: str | Path | None = None, environ: dict[str, str] | None = None
) -> OrchestrationConfig:
    """
    Load configuration from a JSON file and the environment.

    Args:
        path: Optional JSON config file
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated OrchestrationConfig

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        try:
            with open(config_path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config root must be an object: {config_path}")

    data.update(_env_overrides(dict(os.environ if environ is None else environ)))

    try:
        config = OrchestrationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug("Loaded config: %s", config.model_dump())
    return config
