"""
Flow state machine for coder/reviewer orchestration.

Manages guarded transitions between the coder and reviewer roles, including
the loop guard and operator input handling. Transitions are computed as pure
functions of the current context; an event that is not valid in the current
state leaves the machine untouched.
"""

from collections.abc import Callable
from dataclasses import replace

from reviewflow.domain.models import (
    DEFAULT_FLOW_CONFIG,
    FLOW_EVENT_TYPES,
    AgentRole,
    Approve,
    AskUser,
    FlowConfig,
    FlowContext,
    FlowEvent,
    FlowState,
    ForcedTransition,
    RequestChanges,
    RequestReview,
    SystemFailure,
    TransitionRecord,
    TransitionResult,
    UserReply,
    now_ms,
)

TransitionHook = Callable[
    [FlowState, FlowState, FlowEvent | ForcedTransition, FlowContext], None
]


class FlowMachine:
    """
    Guarded state machine over coder_active, reviewer_active,
    awaiting_user_input and error.

    The machine owns its context privately. get_context() returns a frozen
    snapshot, so callers can never mutate machine state through it.
    """

    def __init__(
        self,
        config: FlowConfig | None = None,
        on_transition: TransitionHook | None = None,
    ):
        """
        Args:
            config: Flow configuration (defaults to DEFAULT_FLOW_CONFIG)
            on_transition: Called after every committed transition, including
                forced ones
        """
        self._config = config or DEFAULT_FLOW_CONFIG
        self._on_transition = on_transition
        self._context = FlowContext(
            state=FlowState.CODER_ACTIVE,
            active_step=self._config.initial_step,
            change_request_count=0,
            has_more_steps=self._config.has_more_steps,
        )

    @property
    def config(self) -> FlowConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_state(self) -> FlowState:
        return self._context.state

    def get_context(self) -> FlowContext:
        """Return an immutable snapshot of the current context."""
        return self._context

    def get_change_request_count(self) -> int:
        return self._context.change_request_count

    def can_send(self, event: FlowEvent) -> bool:
        """Check whether an event would be accepted, without applying it."""
        if not isinstance(event, FLOW_EVENT_TYPES):
            return False
        next_context, _ = self._compute_transition(self._context, event)
        return next_context is not None

    # -------------------------------------------------------------------------
    # Guarded transitions
    # -------------------------------------------------------------------------

    def send(self, event: FlowEvent) -> TransitionResult:
        """
        Send an event to the state machine.

        Never raises for invalid input: an event that is not valid in the
        current state returns success=False with a blocked_reason and leaves
        the state unchanged.
        """
        current = self._context
        if not isinstance(event, FLOW_EVENT_TYPES):
            return TransitionResult(
                success=False,
                state=current.state,
                blocked_reason=f"Not a flow event: {type(event).__name__}",
            )

        next_context, blocked_reason = self._compute_transition(current, event)
        if next_context is None:
            return TransitionResult(
                success=False, state=current.state, blocked_reason=blocked_reason
            )

        self._commit(current, next_context, event)
        return TransitionResult(success=True, state=next_context.state)

    def _compute_transition(
        self, ctx: FlowContext, event: FlowEvent
    ) -> tuple[FlowContext | None, str | None]:
        """Compute the next context for an event (pure)."""
        # system_error is accepted from any state
        if isinstance(event, SystemFailure):
            return replace(ctx, state=FlowState.ERROR, error_message=event.error), None

        match (ctx.state, event):
            case (FlowState.CODER_ACTIVE, RequestReview()):
                return replace(ctx, state=FlowState.REVIEWER_ACTIVE), None

            case (FlowState.CODER_ACTIVE | FlowState.REVIEWER_ACTIVE, AskUser()):
                requester = (
                    AgentRole.CODER
                    if ctx.state == FlowState.CODER_ACTIVE
                    else AgentRole.REVIEWER
                )
                return (
                    replace(
                        ctx,
                        state=FlowState.AWAITING_USER_INPUT,
                        awaiting_reply_from=requester,
                        user_prompt=event.message,
                    ),
                    None,
                )

            case (FlowState.REVIEWER_ACTIVE, RequestChanges()):
                return self._request_changes(ctx, event), None

            case (FlowState.REVIEWER_ACTIVE, Approve()):
                if ctx.has_more_steps:
                    return replace(ctx, state=FlowState.CODER_ACTIVE), None
                return (
                    replace(
                        ctx,
                        state=FlowState.AWAITING_USER_INPUT,
                        awaiting_reply_from=None,
                        user_prompt=(
                            f'All steps completed. Step "{ctx.active_step}" approved.'
                        ),
                    ),
                    None,
                )

            case (FlowState.AWAITING_USER_INPUT, UserReply()):
                resume_to = (
                    FlowState.REVIEWER_ACTIVE
                    if ctx.awaiting_reply_from == AgentRole.REVIEWER
                    else FlowState.CODER_ACTIVE
                )
                return (
                    replace(
                        ctx,
                        state=resume_to,
                        awaiting_reply_from=None,
                        user_prompt=None,
                    ),
                    None,
                )

            case (FlowState.AWAITING_USER_INPUT, _):
                return None, (
                    f"Event '{event.type}' not valid in awaiting_user_input "
                    "state. Waiting for user_reply."
                )

            case (FlowState.ERROR, _):
                return None, (
                    f"Event '{event.type}' not valid in error state. "
                    "The orchestration attempt has failed."
                )

            case _:
                return None, (
                    f"Event '{event.type}' not valid in {ctx.state.value} state"
                )

    def _request_changes(self, ctx: FlowContext, event: RequestChanges) -> FlowContext:
        count = ctx.change_request_count + 1

        # Loop guard: the (max + 1)th request halts for the operator
        if count > self._config.max_change_requests:
            return replace(
                ctx,
                state=FlowState.AWAITING_USER_INPUT,
                change_request_count=count,
                reviewer_feedback=event.reason,
                awaiting_reply_from=AgentRole.REVIEWER,
                user_prompt=(
                    f"Loop guard triggered: {count} change requests "
                    f'on step "{ctx.active_step}". Last request: {event.reason}'
                ),
            )

        return replace(
            ctx,
            state=FlowState.CODER_ACTIVE,
            change_request_count=count,
            reviewer_feedback=event.reason,
        )

    def _commit(
        self,
        previous: FlowContext,
        next_context: FlowContext,
        event: FlowEvent | ForcedTransition,
    ) -> None:
        record = TransitionRecord(
            from_state=previous.state,
            to_state=next_context.state,
            event=event,
            timestamp=now_ms(),
        )
        self._context = replace(
            next_context,
            transition_history=previous.transition_history + (record,),
        )
        if self._on_transition is not None:
            self._on_transition(
                previous.state, next_context.state, event, self._context
            )

    # -------------------------------------------------------------------------
    # Administrative operations
    # -------------------------------------------------------------------------

    def force_state(
        self,
        target: FlowState,
        reason: str = "User override",
        *,
        user_prompt: str | None = None,
        awaiting_reply_from: AgentRole | None = None,
    ) -> None:
        """
        Move to a state without consulting the transition table.

        Used by resume only. Records a ForcedTransition in the history; pending
        prompt fields are replaced by the ones given here.
        """
        current = self._context
        error_message = None
        if target == FlowState.ERROR:
            error_message = current.error_message or reason

        next_context = replace(
            current,
            state=target,
            user_prompt=user_prompt,
            awaiting_reply_from=awaiting_reply_from,
            error_message=error_message,
        )
        self._commit(
            current, next_context, ForcedTransition(target=target, reason=reason)
        )

    def advance_step(self, next_step: str, has_more_steps: bool) -> None:
        """Move to the next step. Resets the change request counter."""
        self._context = replace(
            self._context,
            active_step=next_step,
            has_more_steps=has_more_steps,
            change_request_count=0,
            reviewer_feedback=None,
        )

    def set_has_more_steps(self, has_more_steps: bool) -> None:
        self._context = replace(self._context, has_more_steps=has_more_steps)
