"""
Tool executor for coder/reviewer orchestration.

Wires agent tool actions to the FlowMachine, advancing the plan's
active_step on approval and reporting which agent should run next.
"""

import logging
from dataclasses import dataclass

from reviewflow.domain.exceptions import PlanLoadError
from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.interfaces import PlanStoreInterface, StepResolverInterface
from reviewflow.domain.models import (
    AgentRole,
    Approve,
    AskUser,
    FlowState,
    RequestChanges,
    RequestReview,
    TransitionResult,
    UserReply,
)
from reviewflow.domain.tool_actions import (
    ApproveAction,
    AskUserAction,
    BlockedAction,
    RequestChangesAction,
    RequestReviewAction,
    ToolAction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolExecutionResult:
    """
    Outcome of one tool action.

    Attributes:
        success: Whether the action produced a transition
        new_state: Flow state after the action
        blocked_reason: Why the action was refused, if it was
        awaiting_user: Whether the flow now waits for the operator
        user_prompt: What to show the operator when awaiting_user
        trigger_reviewer: Whether the reviewer should run next
        trigger_coder: Whether the coder should run next
        change_request_count: Counter after a request_changes
        advanced_to: Step the plan moved to after an approve
        plan_completed: Whether the final step was approved
    """

    success: bool
    new_state: FlowState
    blocked_reason: str | None = None
    awaiting_user: bool = False
    user_prompt: str | None = None
    trigger_reviewer: bool = False
    trigger_coder: bool = False
    change_request_count: int | None = None
    advanced_to: str | None = None
    plan_completed: bool = False


class ToolExecutor:
    """
    Connects tool invocations to the flow state machine.

    Responsibilities:
    - Dispatch tool actions to the FlowMachine as events
    - Rewrite the plan's active_step when a step is approved
    - Report which agent should run next, or that the operator must answer
    """

    def __init__(
        self,
        flow_machine: FlowMachine,
        plan_path: str,
        step_resolver: StepResolverInterface,
        plan_store: PlanStoreInterface,
    ):
        """
        Args:
            flow_machine: Machine driven by this executor
            plan_path: Plan whose active_step is advanced on approval
            step_resolver: Step ordering for the plan
            plan_store: Plan Loader/Saver used for the active_step rewrite
        """
        self._machine = flow_machine
        self._plan_path = plan_path
        self._step_resolver = step_resolver
        self._plan_store = plan_store

    @property
    def flow_machine(self) -> FlowMachine:
        return self._machine

    def execute(self, action: ToolAction) -> ToolExecutionResult:
        """Execute a tool action and return the result."""
        match action:
            case RequestReviewAction():
                return self._handle_request_review()
            case RequestChangesAction(reason=reason):
                return self._handle_request_changes(reason)
            case ApproveAction():
                return self._handle_approve()
            case AskUserAction(message=message, requester=requester):
                return self._handle_ask_user(message, requester)
            case BlockedAction(reason=reason):
                return self._refused(reason)
            case _:
                return self._refused(f"Unknown action: {action!r}")

    def handle_user_reply(self, response: str) -> ToolExecutionResult:
        """Resume after the operator answers; reports which agent resumes."""
        result = self._machine.send(UserReply(response=response))
        return ToolExecutionResult(
            success=result.success,
            new_state=result.state,
            blocked_reason=result.blocked_reason,
            trigger_reviewer=self._landed(result, FlowState.REVIEWER_ACTIVE),
            trigger_coder=self._landed(result, FlowState.CODER_ACTIVE),
        )

    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------

    def _handle_request_review(self) -> ToolExecutionResult:
        result = self._machine.send(RequestReview())
        return ToolExecutionResult(
            success=result.success,
            new_state=result.state,
            blocked_reason=result.blocked_reason,
            trigger_reviewer=self._landed(result, FlowState.REVIEWER_ACTIVE),
        )

    def _handle_request_changes(self, reason: str) -> ToolExecutionResult:
        result = self._machine.send(RequestChanges(reason=reason))
        loop_guard = self._landed(result, FlowState.AWAITING_USER_INPUT)
        if loop_guard:
            logger.warning(
                "Loop guard triggered on step %s after %d change requests",
                self.get_active_step(),
                self._machine.get_change_request_count(),
            )
        return ToolExecutionResult(
            success=result.success,
            new_state=result.state,
            blocked_reason=result.blocked_reason,
            awaiting_user=loop_guard,
            user_prompt=self.get_pending_user_prompt() if loop_guard else None,
            trigger_coder=self._landed(result, FlowState.CODER_ACTIVE),
            change_request_count=self._machine.get_change_request_count(),
        )

    def _handle_approve(self) -> ToolExecutionResult:
        approve = Approve()
        if not self._machine.can_send(approve):
            result = self._machine.send(approve)
            return self._refused(result.blocked_reason)

        current_step = self.get_active_step()
        next_step = self._step_resolver.get_next_step(current_step)

        if next_step is not None:
            # The plan rewrite is the only disk side effect; it happens
            # before the transition so a failed write leaves state unchanged
            try:
                self._plan_store.update_plan_frontmatter(
                    self._plan_path, {"active_step": next_step}
                )
            except (PlanLoadError, OSError) as e:
                logger.error("Failed to advance plan %s: %s", self._plan_path, e)
                return self._refused(f"Failed to update plan active_step: {e}")

        self._machine.set_has_more_steps(next_step is not None)
        result = self._machine.send(approve)

        if next_step is None:
            logger.info("Final step %s approved", current_step)
            return ToolExecutionResult(
                success=result.success,
                new_state=result.state,
                awaiting_user=True,
                user_prompt=self.get_pending_user_prompt(),
                plan_completed=True,
            )

        further_step = self._step_resolver.get_next_step(next_step)
        self._machine.advance_step(next_step, further_step is not None)
        logger.info("Step %s approved, advanced to %s", current_step, next_step)
        return ToolExecutionResult(
            success=result.success,
            new_state=result.state,
            trigger_coder=self._landed(result, FlowState.CODER_ACTIVE),
            advanced_to=next_step,
        )

    def _handle_ask_user(
        self, message: str, requester: AgentRole
    ) -> ToolExecutionResult:
        result = self._machine.send(AskUser(message=message, requester=requester))
        return ToolExecutionResult(
            success=result.success,
            new_state=result.state,
            blocked_reason=result.blocked_reason,
            awaiting_user=self._landed(result, FlowState.AWAITING_USER_INPUT),
            user_prompt=message,
        )

    def _refused(self, reason: str | None) -> ToolExecutionResult:
        return ToolExecutionResult(
            success=False,
            new_state=self._machine.get_state(),
            blocked_reason=reason,
        )

    @staticmethod
    def _landed(result: TransitionResult, state: FlowState) -> bool:
        return result.success and result.state == state

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    def get_state(self) -> FlowState:
        return self._machine.get_state()

    def get_active_step(self) -> str:
        return self._machine.get_context().active_step

    def get_change_request_count(self) -> int:
        return self._machine.get_change_request_count()

    def is_awaiting_user(self) -> bool:
        return self._machine.get_state() == FlowState.AWAITING_USER_INPUT

    def get_pending_user_prompt(self) -> str | None:
        return self._machine.get_context().user_prompt
