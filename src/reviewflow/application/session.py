"""
OrchestrationSession: reference controller around ToolExecutor and the log.

Performs the sequence a host controller is expected to follow: resume once on
open, then for every agent turn execute the action, append the matching log
entries, mirror the machine into the log and save. The session never calls an
agent itself; the host decides who runs next from the returned results.
"""

import logging
from typing import Any

from reviewflow.application.config import OrchestrationConfig
from reviewflow.application.resume_service import (
    resume_orchestration,
    sync_log_state,
)
from reviewflow.application.tool_executor import ToolExecutionResult, ToolExecutor
from reviewflow.domain.event_log import (
    EventLog,
    LifecycleAction,
    log_ask_user,
    log_error,
    log_error_recovered,
    log_lifecycle,
    log_state_transition,
    log_step_change,
    log_tool_call,
    log_user_response,
)
from reviewflow.domain.flow_machine import FlowMachine
from reviewflow.domain.interfaces import LogStoreInterface, PlanStoreInterface
from reviewflow.domain.models import AgentRole, FlowState, SystemFailure, now_ms
from reviewflow.domain.step_resolver import PlanBodyStepResolver
from reviewflow.domain.tool_actions import ToolAction, tool_action_to_dict
from reviewflow.guards.tool_filter import (
    ToolFilter,
    ToolFilterResult,
    create_tool_filter,
)

logger = logging.getLogger(__name__)

# Tool results above this many characters go to a transcript file
TRANSCRIPT_THRESHOLD = 4000


def _result_to_dict(result: ToolExecutionResult) -> dict[str, Any]:
    data: dict[str, Any] = {
        "success": result.success,
        "newState": result.new_state.value,
    }
    if result.blocked_reason is not None:
        data["blockedReason"] = result.blocked_reason
    if result.advanced_to is not None:
        data["advancedTo"] = result.advanced_to
    if result.plan_completed:
        data["planCompleted"] = True
    return data


class OrchestrationSession:
    """
    One orchestration attempt over a plan.

    Create with open(); each call that changes state persists the log before
    returning.
    """

    def __init__(
        self,
        plan_path: str,
        executor: ToolExecutor,
        step_resolver: PlanBodyStepResolver,
        log: EventLog,
        log_store: LogStoreInterface,
        config: OrchestrationConfig,
        is_fresh_start: bool = True,
        resume_warning: str | None = None,
    ):
        self.plan_path = plan_path
        self.config = config
        self.is_fresh_start = is_fresh_start
        self.resume_warning = resume_warning
        self._executor = executor
        self._step_resolver = step_resolver
        self._log = log
        self._log_store = log_store
        # Transitions made during resume replay are not re-logged
        self._logged_transitions = len(
            executor.flow_machine.get_context().transition_history
        )

    @classmethod
    def open(
        cls,
        plan_path: str,
        plan_store: PlanStoreInterface,
        log_store: LogStoreInterface,
        config: OrchestrationConfig | None = None,
    ) -> "OrchestrationSession":
        """
        Resume (or start) orchestration for a plan and save the log.

        Raises:
            PlanLoadError: If the plan cannot be read or parsed
        """
        config = config or OrchestrationConfig()
        resumed = resume_orchestration(
            plan_path,
            plan_store,
            log_store,
            {"max_change_requests": config.max_change_requests},
        )
        if resumed.error:
            logger.warning(resumed.error)

        plan = plan_store.load_plan(plan_path)
        resolver = PlanBodyStepResolver(plan.body)
        machine: FlowMachine = resumed.flow_machine
        active_step = machine.get_context().active_step
        machine.set_has_more_steps(resolver.get_next_step(active_step) is not None)

        session = cls(
            plan_path=plan_path,
            executor=ToolExecutor(machine, plan_path, resolver, plan_store),
            step_resolver=resolver,
            log=resumed.log,
            log_store=log_store,
            config=config,
            is_fresh_start=resumed.is_fresh_start,
            resume_warning=resumed.error,
        )
        session._save()
        return session

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def log(self) -> EventLog:
        return self._log

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    @property
    def steps(self) -> tuple[str, ...]:
        return self._step_resolver.steps

    def get_state(self) -> FlowState:
        return self._executor.get_state()

    def tool_filter_for(self, agent: AgentRole) -> ToolFilter:
        return create_tool_filter(agent, self.config.read_only_reviewer)

    # -------------------------------------------------------------------------
    # Agent turns
    # -------------------------------------------------------------------------

    def apply(self, action: ToolAction, agent: AgentRole) -> ToolExecutionResult:
        """Execute an orchestration tool action issued by an agent."""
        step_before = self._executor.get_active_step()
        result = self._executor.execute(action)

        self._log = log_tool_call(
            self._log,
            agent,
            action.action,
            tool_action_to_dict(action),
            result=_result_to_dict(result),
        )
        self._log_new_transitions()

        if result.awaiting_user and result.user_prompt and not result.plan_completed:
            self._log = log_ask_user(self._log, agent, result.user_prompt)
        if result.advanced_to is not None:
            self._log = log_step_change(
                self._log, step_before, result.advanced_to, "approved"
            )
        if not result.success:
            logger.info(
                "%s action %s blocked: %s",
                agent.value,
                action.action,
                result.blocked_reason,
            )

        self._sync_and_save()
        return result

    def reply(self, response: str) -> ToolExecutionResult:
        """Deliver the operator's answer and report which agent resumes."""
        result = self._executor.handle_user_reply(response)
        if result.success:
            self._log = log_user_response(self._log, response)
            self._log_new_transitions()
            self._sync_and_save()
        return result

    def check_tool_call(
        self, agent: AgentRole, tool_name: str, args: dict[str, Any] | None = None
    ) -> ToolFilterResult:
        """Apply the read-only filter to a workspace tool call before it runs."""
        verdict = self.tool_filter_for(agent)(tool_name, args)
        if not verdict.allowed:
            logger.info(
                "Blocked %s tool %s: %s", agent.value, tool_name, verdict.reason
            )
            self._log = log_tool_call(
                self._log,
                agent,
                tool_name,
                args or {},
                result={"blocked": True, "reason": verdict.reason},
            )
            self._save()
        return verdict

    def record_tool_call(
        self,
        agent: AgentRole,
        tool_name: str,
        args: dict[str, Any],
        result: Any = None,
        duration: int | None = None,
    ) -> EventLog:
        """
        Log a workspace tool call made by an agent.

        String results longer than TRANSCRIPT_THRESHOLD are stored as a
        transcript and referenced from the entry instead of inlined.
        """
        transcript_path = None
        if isinstance(result, str) and len(result) > TRANSCRIPT_THRESHOLD:
            transcript_path = self._log_store.save_transcript(
                self.plan_path,
                agent.value,
                tool_name,
                now_ms(),
                {"toolName": tool_name, "args": args, "result": result},
            )
            result = None

        self._log = log_tool_call(
            self._log,
            agent,
            tool_name,
            args,
            result=result,
            duration=duration,
            transcript_path=transcript_path,
        )
        self._save()
        return self._log

    # -------------------------------------------------------------------------
    # Failure and lifecycle
    # -------------------------------------------------------------------------

    def fail(self, error: str, stack: str | None = None) -> None:
        """Record an unrecoverable error and move the flow to error."""
        logger.error("Orchestration of %s failed: %s", self.plan_path, error)
        self._executor.flow_machine.send(SystemFailure(error=error))
        self._log = log_error(self._log, error, stack)
        self._log_new_transitions()
        self._sync_and_save()

    def record_recoverable_error(self, error: str, stack: str | None = None) -> None:
        """Record an error the host retried; state is unchanged."""
        logger.warning("Recoverable error on %s: %s", self.plan_path, error)
        self._log = log_error(self._log, error, stack)
        self._save()

    def mark_recovered(self) -> None:
        self._log = log_error_recovered(self._log)
        self._save()

    def complete(self) -> None:
        self._log = log_lifecycle(
            self._log, LifecycleAction.COMPLETED, total_steps=len(self.steps)
        )
        self._save()
        logger.info("Orchestration of %s completed", self.plan_path)

    def abort(self) -> None:
        self._log = log_lifecycle(self._log, LifecycleAction.ABORTED)
        self._save()
        logger.info("Orchestration of %s aborted", self.plan_path)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _log_new_transitions(self) -> None:
        history = self._executor.flow_machine.get_context().transition_history
        for record in history[self._logged_transitions :]:
            self._log = log_state_transition(
                self._log, record.from_state, record.to_state, record.event
            )
        self._logged_transitions = len(history)

    def _sync_and_save(self) -> None:
        self._log = sync_log_state(self._log, self._executor.flow_machine)
        self._save()

    def _save(self) -> None:
        self._log_store.save_log(self.plan_path, self._log)
