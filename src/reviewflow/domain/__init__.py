"""
Domain layer for reviewflow.

Pure models and logic with no I/O: the flow state machine, step resolution,
tool actions, plan documents and the event log.
"""

from reviewflow.domain.event_log import (
    EventLog,
    LifecycleAction,
    LogEntryType,
    create_event_log,
    parse_log,
    serialize_log,
)
from reviewflow.domain.exceptions import (
    ConfigurationError,
    LogParseError,
    PlanLoadError,
    PlanParseError,
)
from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.interfaces import (
    LogStoreInterface,
    PlanStoreInterface,
    StepResolverInterface,
)
from reviewflow.domain.models import (
    AgentRole,
    Approve,
    AskUser,
    FlowConfig,
    FlowContext,
    FlowState,
    ForcedTransition,
    RequestChanges,
    RequestReview,
    SystemFailure,
    TransitionRecord,
    TransitionResult,
    UserReply,
)
from reviewflow.domain.plan import ParsedPlan, parse_plan
from reviewflow.domain.step_resolver import ListStepResolver, PlanBodyStepResolver
from reviewflow.domain.tool_actions import (
    ApproveAction,
    AskUserAction,
    BlockedAction,
    RequestChangesAction,
    RequestReviewAction,
)

__all__ = [
    # Models
    "AgentRole",
    "FlowConfig",
    "FlowContext",
    "FlowState",
    "TransitionRecord",
    "TransitionResult",
    # Events
    "Approve",
    "AskUser",
    "ForcedTransition",
    "RequestChanges",
    "RequestReview",
    "SystemFailure",
    "UserReply",
    # Machine and steps
    "FlowMachine",
    "ListStepResolver",
    "PlanBodyStepResolver",
    # Tool actions
    "ApproveAction",
    "AskUserAction",
    "BlockedAction",
    "RequestChangesAction",
    "RequestReviewAction",
    # Event log
    "EventLog",
    "LifecycleAction",
    "LogEntryType",
    "create_event_log",
    "parse_log",
    "serialize_log",
    # Plans
    "ParsedPlan",
    "parse_plan",
    # Interfaces
    "LogStoreInterface",
    "PlanStoreInterface",
    "StepResolverInterface",
    # Exceptions
    "ConfigurationError",
    "LogParseError",
    "PlanLoadError",
    "PlanParseError",
]
