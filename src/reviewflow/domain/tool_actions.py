"""
Tool actions produced by agent turns.

Agents communicate with the orchestrator through a small set of flow-control
tools. Each tool returns one of these action markers; the ToolExecutor turns
them into FlowMachine events.
"""

from dataclasses import dataclass, field
from typing import Any

from reviewflow.domain.models import AgentRole


@dataclass(frozen=True)
class RequestReviewAction:
    """Coder signals work is ready for review."""

    action: str = field(default="request_review", init=False)


@dataclass(frozen=True)
class RequestChangesAction:
    """Reviewer requests changes from the coder."""

    reason: str
    action: str = field(default="request_changes", init=False)


@dataclass(frozen=True)
class ApproveAction:
    """Reviewer approves the current step."""

    action: str = field(default="approve", init=False)


@dataclass(frozen=True)
class AskUserAction:
    """Either agent asks the operator a question."""

    message: str
    requester: AgentRole
    action: str = field(default="ask_user", init=False)


@dataclass(frozen=True)
class BlockedAction:
    """An upstream guard already rejected the agent's action."""

    reason: str
    action: str = field(default="blocked", init=False)


ToolAction = (
    RequestReviewAction
    | RequestChangesAction
    | ApproveAction
    | AskUserAction
    | BlockedAction
)

# Flow-control tools each role may call
CODER_TOOLS = ("request_review", "ask_user")
REVIEWER_TOOLS = ("request_changes", "approve", "ask_user")


def tools_for_role(role: AgentRole) -> tuple[str, ...]:
    """Names of the orchestration tools available to a role."""
    if role == AgentRole.CODER:
        return CODER_TOOLS
    return REVIEWER_TOOLS


def tool_action_to_dict(action: ToolAction) -> dict[str, Any]:
    """Serialize an action for tool_call log entries."""
    match action:
        case RequestChangesAction(reason=reason):
            return {"action": action.action, "reason": reason}
        case AskUserAction(message=message, requester=requester):
            return {
                "action": action.action,
                "message": message,
                "requester": requester.value,
            }
        case BlockedAction(reason=reason):
            return {"action": action.action, "reason": reason}
        case _:
            return {"action": action.action}
