"""
Domain models for coder/reviewer orchestration.

Pure data structures for the flow state machine. All models are immutable
(frozen dataclasses) so snapshots handed to callers can never be used to
mutate machine state.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

# =============================================================================
# STATES AND ROLES
# =============================================================================


class FlowState(str, Enum):
    """The possible states of the flow state machine."""

    CODER_ACTIVE = "coder_active"
    REVIEWER_ACTIVE = "reviewer_active"
    AWAITING_USER_INPUT = "awaiting_user_input"
    ERROR = "error"


class AgentRole(str, Enum):
    """The two turn-taking agent roles."""

    CODER = "coder"
    REVIEWER = "reviewer"


# =============================================================================
# FLOW EVENTS
# =============================================================================


@dataclass(frozen=True)
class RequestReview:
    """Coder signals the current step is ready for review."""

    type: str = field(default="request_review", init=False)


@dataclass(frozen=True)
class RequestChanges:
    """Reviewer sends the step back to the coder."""

    reason: str
    type: str = field(default="request_changes", init=False)


@dataclass(frozen=True)
class Approve:
    """Reviewer approves the current step."""

    type: str = field(default="approve", init=False)


@dataclass(frozen=True)
class AskUser:
    """Either agent pauses the flow with a question for the operator."""

    message: str
    requester: AgentRole
    type: str = field(default="ask_user", init=False)


@dataclass(frozen=True)
class UserReply:
    """Operator answers a pending prompt."""

    response: str
    type: str = field(default="user_reply", init=False)


@dataclass(frozen=True)
class SystemFailure:
    """Unrecoverable failure reported by the surrounding controller."""

    error: str
    type: str = field(default="system_error", init=False)


FlowEvent = (
    RequestReview | RequestChanges | Approve | AskUser | UserReply | SystemFailure
)

FLOW_EVENT_TYPES = (
    RequestReview,
    RequestChanges,
    Approve,
    AskUser,
    UserReply,
    SystemFailure,
)


@dataclass(frozen=True)
class ForcedTransition:
    """
    Administrative state override.

    Only FlowMachine.force_state() produces these. It is not a
    FlowEvent: send() rejects it and no tool action maps onto it.
    """

    target: FlowState
    reason: str
    type: str = field(default="force_state", init=False)


# =============================================================================
# CONTEXT AND HISTORY
# =============================================================================


@dataclass(frozen=True)
class TransitionRecord:
    """Record of a single state transition."""

    from_state: FlowState
    to_state: FlowState
    event: FlowEvent | ForcedTransition
    timestamp: int  # unix milliseconds


@dataclass(frozen=True)
class FlowContext:
    """Immutable snapshot of everything the state machine tracks."""

    state: FlowState
    active_step: str
    change_request_count: int
    has_more_steps: bool
    awaiting_reply_from: AgentRole | None = None
    user_prompt: str | None = None
    error_message: str | None = None
    reviewer_feedback: str | None = None
    transition_history: tuple[TransitionRecord, ...] = ()


@dataclass(frozen=True)
class FlowConfig:
    """Configuration for the flow state machine."""

    max_change_requests: int = 3  # halts on the (max + 1)th request_changes
    initial_step: str = "1"
    has_more_steps: bool = True


DEFAULT_FLOW_CONFIG = FlowConfig()


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of FlowMachine.send()."""

    success: bool
    state: FlowState
    blocked_reason: str | None = None


def now_ms() -> int:
    """Current time as integer unix milliseconds."""
    return time.time_ns() // 1_000_000
