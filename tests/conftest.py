"""Shared pytest fixtures for reviewflow tests."""

from pathlib import Path

import pytest

from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.models import FlowConfig
from reviewflow.domain.step_resolver import ListStepResolver
from reviewflow.infrastructure.persistence.memory import InMemoryLogStore
from reviewflow.infrastructure.plan_store import InMemoryPlanStore

PLAN_PATH = "plans/feature.md"

THREE_STEP_PLAN = """---
title: "Add caching layer"
active_step: "1"
owner: platform
---

# Add caching layer

## Step 1: Define the cache interface
Write the port.

## Step 2: Implement the in-memory cache
Back it with a dict.

## Step 3: Wire it into the service
Inject it.
"""


@pytest.fixture
def plan_text() -> str:
    return THREE_STEP_PLAN


@pytest.fixture
def plan_path() -> str:
    return PLAN_PATH


@pytest.fixture
def plan_store() -> InMemoryPlanStore:
    """In-memory plan store holding the three-step plan at step 1."""
    return InMemoryPlanStore({PLAN_PATH: THREE_STEP_PLAN})


@pytest.fixture
def log_store() -> InMemoryLogStore:
    return InMemoryLogStore()


@pytest.fixture
def plan_file(tmp_path: Path) -> Path:
    """The three-step plan written to disk."""
    path = tmp_path / "plan.md"
    path.write_text(THREE_STEP_PLAN)
    return path


@pytest.fixture
def machine() -> FlowMachine:
    """Machine at step 1 with the default loop guard (3)."""
    return FlowMachine(FlowConfig(initial_step="1"))


@pytest.fixture
def step_resolver() -> ListStepResolver:
    return ListStepResolver(["1", "2", "3"])
