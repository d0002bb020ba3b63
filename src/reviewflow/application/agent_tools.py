"""
Pydantic models for the orchestration tools agents call.

Agents call request_review, request_changes, approve and ask_user with
loosely typed arguments. These models validate the arguments and turn them
into ToolActions; anything invalid becomes a BlockedAction so the executor
reports it instead of raising.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reviewflow.domain.models import AgentRole
from reviewflow.domain.tool_actions import (
    ApproveAction,
    AskUserAction,
    BlockedAction,
    RequestChangesAction,
    RequestReviewAction,
    ToolAction,
    tools_for_role,
)


class _ToolArgs(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class RequestReviewArgs(_ToolArgs):
    """Coder has finished the step and wants a review."""

    summary: str | None = Field(
        default=None, description="Optional summary of the work done"
    )


class RequestChangesArgs(_ToolArgs):
    """Reviewer sends the step back to the coder."""

    reason: str = Field(min_length=1, description="What needs to change")


class ApproveArgs(_ToolArgs):
    """Reviewer accepts the step."""

    comment: str | None = Field(default=None, description="Optional approval note")


class AskUserArgs(_ToolArgs):
    """Either agent asks the operator a question."""

    message: str = Field(min_length=1, description="Question for the operator")


TOOL_ARGS_MODELS: dict[str, type[_ToolArgs]] = {
    "request_review": RequestReviewArgs,
    "request_changes": RequestChangesArgs,
    "approve": ApproveArgs,
    "ask_user": AskUserArgs,
}


def _format_errors(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}"
        for err in error.errors()
    )


def parse_tool_action(
    tool_name: str, args: dict[str, Any] | None, requester: AgentRole
) -> ToolAction:
    """
    Turn a raw tool call into a ToolAction.

    Args:
        tool_name: Orchestration tool the agent called
        args: Raw arguments from the agent
        requester: Agent that made the call

    Returns:
        The matching ToolAction, or a BlockedAction when the tool is unknown,
        not available to the requester, or its arguments do not validate
    """
    model = TOOL_ARGS_MODELS.get(tool_name)
    if model is None:
        return BlockedAction(reason=f"Unknown orchestration tool: {tool_name}")
    if tool_name not in tools_for_role(requester):
        return BlockedAction(
            reason=f"Tool '{tool_name}' is not available to the {requester.value}"
        )

    try:
        parsed = model.model_validate(args or {})
    except ValidationError as e:
        return BlockedAction(
            reason=f"Invalid arguments for {tool_name}: {_format_errors(e)}"
        )

    match parsed:
        case RequestChangesArgs(reason=reason):
            return RequestChangesAction(reason=reason)
        case AskUserArgs(message=message):
            return AskUserAction(message=message, requester=requester)
        case ApproveArgs():
            return ApproveAction()
        case _:
            return RequestReviewAction()
