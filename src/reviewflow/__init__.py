"""
reviewflow: coder/reviewer orchestration over multi-step plans.

Drives a plan through alternating coder and reviewer turns until every step
is approved, with an append-only event log that lets an interrupted run
resume where it stopped.

Example:
    from reviewflow import OrchestrationSession, parse_tool_action
    from reviewflow.domain import AgentRole
    from reviewflow.infrastructure import FilesystemLogStore, FilesystemPlanStore

    session = OrchestrationSession.open(
        "plans/feature.md", FilesystemPlanStore(), FilesystemLogStore()
    )
    action = parse_tool_action("request_review", {}, AgentRole.CODER)
    result = session.apply(action, AgentRole.CODER)
    if result.trigger_reviewer:
        ...  # run the reviewer agent
"""

from reviewflow.application import (
    OrchestrationConfig,
    OrchestrationSession,
    ResumeResult,
    ToolExecutionResult,
    ToolExecutor,
    load_config,
    parse_tool_action,
    resume_orchestration,
    sync_log_state,
)
from reviewflow.domain.exceptions import (
    ConfigurationError,
    LogParseError,
    PlanLoadError,
    PlanParseError,
)
from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.models import AgentRole, FlowConfig, FlowState
from reviewflow.domain.step_resolver import ListStepResolver, PlanBodyStepResolver

__version__ = "0.1.0"

__all__ = [
    # Application
    "OrchestrationConfig",
    "OrchestrationSession",
    "ResumeResult",
    "ToolExecutionResult",
    "ToolExecutor",
    "load_config",
    "parse_tool_action",
    "resume_orchestration",
    "sync_log_state",
    # Domain
    "AgentRole",
    "FlowConfig",
    "FlowMachine",
    "FlowState",
    "ListStepResolver",
    "PlanBodyStepResolver",
    # Exceptions
    "ConfigurationError",
    "LogParseError",
    "PlanLoadError",
    "PlanParseError",
]
