"""Application service for resuming orchestration after a restart.

Rebuilds a FlowMachine from the persisted event log so an interrupted
coder/reviewer cycle continues where it stopped. The plan's active_step is the
source of truth for which step is current; the log supplies the state and the
change request counter within that step.
"""

from __future__ import annotations

import logging
from dataclasses import fields, replace
from typing import TYPE_CHECKING, Any

from reviewflow.domain.event_log import (
    ErrorEntry,
    EventLog,
    LifecycleAction,
    create_event_log,
    find_open_ask_user,
    log_lifecycle,
    log_step_change,
    update_log_state,
)
from reviewflow.domain.exceptions import ConfigurationError, LogParseError
from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.models import (
    DEFAULT_FLOW_CONFIG,
    FlowConfig,
    FlowState,
    RequestChanges,
    RequestReview,
    UserReply,
)

if TYPE_CHECKING:
    from reviewflow.domain.interfaces import LogStoreInterface, PlanStoreInterface

logger = logging.getLogger(__name__)

REPLAY_REASON = "resumed"
EXTERNAL_EDIT_REASON = "plan edited externally"

# initial_step always comes from the plan
OVERRIDABLE_FLOW_FIELDS = frozenset(
    f.name for f in fields(FlowConfig) if f.name != "initial_step"
)


class ResumeResult:
    """Result of resume_orchestration.

    Attributes:
        success: Whether a usable machine and log were produced.
        flow_machine: The reconstructed (or fresh) machine.
        log: Log snapshot to continue appending to. Not yet saved.
        error: Non-fatal warning, e.g. a corrupt log that was discarded.
        is_fresh_start: True when no in-progress log was resumed.
    """

    def __init__(
        self,
        success: bool,
        flow_machine: FlowMachine,
        log: EventLog,
        error: str | None = None,
        is_fresh_start: bool = False,
    ) -> None:
        self.success = success
        self.flow_machine = flow_machine
        self.log = log
        self.error = error
        self.is_fresh_start = is_fresh_start


def _build_config(
    active_step: str, overrides: dict[str, Any] | None
) -> FlowConfig:
    overrides = overrides or {}
    unknown = sorted(set(overrides) - OVERRIDABLE_FLOW_FIELDS)
    if unknown:
        raise ConfigurationError(
            f"Unknown flow config override(s): {', '.join(unknown)}. "
            f"Expected one of: {', '.join(sorted(OVERRIDABLE_FLOW_FIELDS))}"
        )
    config = replace(DEFAULT_FLOW_CONFIG, **overrides)
    return replace(config, initial_step=active_step)


def _fresh_start(
    plan_path: str, active_step: str, config: FlowConfig, error: str | None = None
) -> ResumeResult:
    log = create_event_log(plan_path, active_step)
    log = log_lifecycle(log, LifecycleAction.STARTED)
    return ResumeResult(
        success=True,
        flow_machine=FlowMachine(config),
        log=log,
        error=error,
        is_fresh_start=True,
    )


def _replay_change_requests(machine: FlowMachine, target: int) -> None:
    """Drive the machine's own events until its counter reaches target.

    A loop-guard halt on the way is answered with a user_reply, so the point
    where the guard fires matches the original run.
    """
    while machine.get_change_request_count() < target:
        match machine.get_state():
            case FlowState.CODER_ACTIVE:
                event = RequestReview()
            case FlowState.REVIEWER_ACTIVE:
                event = RequestChanges(reason=REPLAY_REASON)
            case FlowState.AWAITING_USER_INPUT:
                event = UserReply(response=REPLAY_REASON)
            case _:
                return
        if not machine.send(event).success:
            return


def _latest_error(log: EventLog) -> str | None:
    for entry in reversed(log.entries):
        if isinstance(entry, ErrorEntry):
            return entry.error
    return None


def _restore_recorded_state(machine: FlowMachine, log: EventLog) -> None:
    recorded = log.current_state
    context = machine.get_context()

    if recorded == FlowState.AWAITING_USER_INPUT:
        open_ask = find_open_ask_user(log)
        if open_ask is not None:
            if (
                context.state != recorded
                or context.user_prompt != open_ask.message
            ):
                machine.force_state(
                    recorded,
                    "Resume from log",
                    user_prompt=open_ask.message,
                    awaiting_reply_from=open_ask.agent,
                )
            return
        if context.state != recorded:
            machine.force_state(
                recorded,
                "Resume from log",
                user_prompt=(
                    f'Resumed on step "{context.active_step}"; '
                    "waiting for operator input."
                ),
            )
        return

    if context.state != recorded:
        reason = "Resume from log"
        if recorded == FlowState.ERROR:
            reason = _latest_error(log) or reason
        machine.force_state(recorded, reason)


def resume_orchestration(
    plan_path: str,
    plan_store: PlanStoreInterface,
    log_store: LogStoreInterface,
    flow_config_overrides: dict[str, Any] | None = None,
) -> ResumeResult:
    """Resume or start orchestration for a plan file.

    Args:
        plan_path: Path to the plan document.
        plan_store: Plan Loader/Saver used to read active_step.
        log_store: Persistence for the orchestration log.
        flow_config_overrides: FlowConfig fields to override (e.g.
            max_change_requests).

    Returns:
        ResumeResult. A missing, corrupt or completed log gives a fresh start;
        a corrupt one also sets error.

    Raises:
        PlanLoadError: If the plan cannot be read or parsed.
        ConfigurationError: If flow_config_overrides names an unknown field.
    """
    plan = plan_store.load_plan(plan_path)
    plan_step = plan.active_step
    config = _build_config(plan_step, flow_config_overrides)

    try:
        existing = log_store.load_log(plan_path)
    except LogParseError as e:
        logger.warning("Discarding corrupt log for %s: %s", plan_path, e)
        return _fresh_start(
            plan_path,
            plan_step,
            config,
            error=f"Previous log was corrupted and discarded: {e}",
        )

    if existing is None:
        logger.info("No log for %s, starting at step %s", plan_path, plan_step)
        return _fresh_start(plan_path, plan_step, config)

    if existing.completed:
        logger.info("Previous run of %s completed, starting a new one", plan_path)
        return _fresh_start(plan_path, plan_step, config)

    log = existing
    if log.active_step != plan_step:
        # The plan pointer wins; the counter belonged to the old step
        logger.info(
            "Plan %s moved from step %s to %s outside orchestration",
            plan_path,
            log.active_step,
            plan_step,
        )
        log = log_step_change(log, log.active_step, plan_step, EXTERNAL_EDIT_REASON)
        log = update_log_state(log, change_request_count=0)

    machine = FlowMachine(config)
    _replay_change_requests(machine, log.change_request_count)
    _restore_recorded_state(machine, log)

    log = log_lifecycle(log, LifecycleAction.RESUMED)
    logger.info(
        "Resumed %s at step %s in %s (%d change requests)",
        plan_path,
        log.active_step,
        machine.get_state().value,
        machine.get_change_request_count(),
    )
    return ResumeResult(
        success=True,
        flow_machine=machine,
        log=sync_log_state(log, machine),
        is_fresh_start=False,
    )


def sync_log_state(log: EventLog, machine: FlowMachine) -> EventLog:
    """Mirror the machine's step, state and counter into the log."""
    context = machine.get_context()
    return update_log_state(
        log,
        active_step=context.active_step,
        current_state=context.state,
        change_request_count=context.change_request_count,
    )
