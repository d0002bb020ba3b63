"""Tests for OrchestrationSession: the log written around each agent turn."""

import pytest

from reviewflow.application.config import OrchestrationConfig
from reviewflow.application.session import TRANSCRIPT_THRESHOLD, OrchestrationSession
from reviewflow.domain.event_log import (
    AskUserEntry,
    ErrorEntry,
    LifecycleAction,
    LifecycleEntry,
    StateTransitionEntry,
    StepChangeEntry,
    ToolCallEntry,
)
from reviewflow.domain.exceptions import PlanLoadError
from reviewflow.domain.models import AgentRole, FlowState
from reviewflow.domain.tool_actions import (
    ApproveAction,
    AskUserAction,
    RequestChangesAction,
    RequestReviewAction,
)
from reviewflow.infrastructure.persistence.filesystem import (
    FilesystemLogStore,
    load_transcript,
)
from reviewflow.infrastructure.plan_store import FilesystemPlanStore


@pytest.fixture
def session(plan_path, plan_store, log_store) -> OrchestrationSession:
    return OrchestrationSession.open(plan_path, plan_store, log_store)


def _entries_of(session, entry_type):
    return [e for e in session.log.entries if isinstance(e, entry_type)]


class TestOpen:
    def test_fresh_session_saves_started_log(self, session, log_store, plan_path):
        assert session.is_fresh_start
        assert session.steps == ("1", "2", "3")
        saved = log_store.load_log(plan_path)
        assert saved == session.log
        assert saved.entries[0].action == LifecycleAction.STARTED

    def test_reopen_resumes(self, session, plan_path, plan_store, log_store):
        session.apply(RequestReviewAction(), AgentRole.CODER)

        reopened = OrchestrationSession.open(plan_path, plan_store, log_store)

        assert not reopened.is_fresh_start
        assert reopened.get_state() == FlowState.REVIEWER_ACTIVE
        assert reopened.log.entries[-1].action == LifecycleAction.RESUMED

    def test_replay_transitions_not_logged(
        self, session, plan_path, plan_store, log_store
    ):
        session.apply(RequestReviewAction(), AgentRole.CODER)
        session.apply(RequestChangesAction(reason="x"), AgentRole.REVIEWER)
        before = len(_entries_of(session, StateTransitionEntry))

        reopened = OrchestrationSession.open(plan_path, plan_store, log_store)
        reopened.apply(RequestReviewAction(), AgentRole.CODER)

        assert len(_entries_of(reopened, StateTransitionEntry)) == before + 1

    def test_missing_plan(self, plan_store, log_store):
        with pytest.raises(PlanLoadError):
            OrchestrationSession.open("nope.md", plan_store, log_store)

    def test_corrupt_log_warning(self, plan_path, plan_store, log_store):
        log_store.put_raw(plan_path, "garbage")

        session = OrchestrationSession.open(plan_path, plan_store, log_store)

        assert session.resume_warning.startswith("Previous log was corrupted")
        assert session.is_fresh_start

    def test_config_sets_loop_guard(self, plan_path, plan_store, log_store):
        session = OrchestrationSession.open(
            plan_path,
            plan_store,
            log_store,
            OrchestrationConfig(max_change_requests=1),
        )
        session.apply(RequestReviewAction(), AgentRole.CODER)
        session.apply(RequestChangesAction(reason="a"), AgentRole.REVIEWER)
        session.apply(RequestReviewAction(), AgentRole.CODER)

        result = session.apply(RequestChangesAction(reason="b"), AgentRole.REVIEWER)

        assert result.awaiting_user


class TestApply:
    def test_logs_tool_call_and_transition(self, session, log_store, plan_path):
        session.apply(RequestReviewAction(), AgentRole.CODER)

        tool_call = _entries_of(session, ToolCallEntry)[-1]
        assert tool_call.agent == AgentRole.CODER
        assert tool_call.tool_name == "request_review"
        assert tool_call.result == {"success": True, "newState": "reviewer_active"}
        transition = _entries_of(session, StateTransitionEntry)[-1]
        assert transition.to_state == FlowState.REVIEWER_ACTIVE
        assert log_store.load_log(plan_path).current_state == (
            FlowState.REVIEWER_ACTIVE
        )

    def test_blocked_action_logged_without_transition(self, session):
        result = session.apply(ApproveAction(), AgentRole.REVIEWER)

        assert not result.success
        assert _entries_of(session, StateTransitionEntry) == []
        assert _entries_of(session, ToolCallEntry)[-1].result["blockedReason"]

    def test_ask_user_logged(self, session):
        session.apply(
            AskUserAction(message="Which cache?", requester=AgentRole.CODER),
            AgentRole.CODER,
        )

        ask = _entries_of(session, AskUserEntry)[-1]
        assert ask.message == "Which cache?"
        assert ask.response is None
        assert session.log.current_state == FlowState.AWAITING_USER_INPUT

    def test_approve_logs_step_change(self, session, plan_store, plan_path):
        session.apply(RequestReviewAction(), AgentRole.CODER)
        session.apply(RequestChangesAction(reason="x"), AgentRole.REVIEWER)
        session.apply(RequestReviewAction(), AgentRole.CODER)

        result = session.apply(ApproveAction(), AgentRole.REVIEWER)

        assert result.advanced_to == "2"
        change = _entries_of(session, StepChangeEntry)[-1]
        assert (change.from_step, change.to_step, change.reason) == (
            "1",
            "2",
            "approved",
        )
        assert session.log.active_step == "2"
        assert session.log.change_request_count == 0
        assert plan_store.load_plan(plan_path).active_step == "2"

    def test_loop_guard_prompt_logged_for_resume(self, session):
        for i in range(4):
            session.apply(RequestReviewAction(), AgentRole.CODER)
            session.apply(RequestChangesAction(reason=str(i)), AgentRole.REVIEWER)

        ask = _entries_of(session, AskUserEntry)[-1]
        assert ask.agent == AgentRole.REVIEWER
        assert ask.message.startswith("Loop guard triggered")

    def test_final_step_completion(self, session):
        for _ in range(3):
            session.apply(RequestReviewAction(), AgentRole.CODER)
            result = session.apply(ApproveAction(), AgentRole.REVIEWER)

        assert result.plan_completed
        assert _entries_of(session, AskUserEntry) == []
        assert session.log.current_state == FlowState.AWAITING_USER_INPUT


class TestReply:
    def test_reply_patches_question(self, session):
        session.apply(
            AskUserAction(message="?", requester=AgentRole.CODER), AgentRole.CODER
        )

        result = session.reply("use redis")

        assert result.trigger_coder
        ask = _entries_of(session, AskUserEntry)[-1]
        assert ask.response == "use redis"
        assert session.log.current_state == FlowState.CODER_ACTIVE

    def test_reply_when_not_waiting_changes_nothing(self, session):
        before = session.log

        result = session.reply("hello")

        assert not result.success
        assert session.log == before


class TestToolCalls:
    def test_read_only_reviewer_blocked_and_logged(self, session):
        verdict = session.check_tool_call(
            AgentRole.REVIEWER, "bash", {"command": "rm -rf build"}
        )

        assert not verdict.allowed
        entry = _entries_of(session, ToolCallEntry)[-1]
        assert entry.result == {"blocked": True, "reason": verdict.reason}

    def test_coder_allowed_without_logging(self, session):
        before = len(session.log.entries)

        verdict = session.check_tool_call(AgentRole.CODER, "write", {"path": "a"})

        assert verdict.allowed
        assert len(session.log.entries) == before

    def test_reviewer_unrestricted_when_configured(
        self, plan_path, plan_store, log_store
    ):
        session = OrchestrationSession.open(
            plan_path,
            plan_store,
            log_store,
            OrchestrationConfig(read_only_reviewer=False),
        )

        assert session.check_tool_call(AgentRole.REVIEWER, "write").allowed

    def test_small_result_inlined(self, session):
        session.record_tool_call(
            AgentRole.CODER, "bash", {"command": "ls"}, result="a\nb", duration=5
        )

        entry = _entries_of(session, ToolCallEntry)[-1]
        assert entry.result == "a\nb"
        assert entry.duration == 5
        assert entry.transcript_path is None

    def test_large_result_goes_to_transcript(self, session, log_store):
        output = "x" * (TRANSCRIPT_THRESHOLD + 1)

        session.record_tool_call(AgentRole.REVIEWER, "read", {"path": "a"}, output)

        entry = _entries_of(session, ToolCallEntry)[-1]
        assert entry.result is None
        assert log_store.transcripts[entry.transcript_path]["result"] == output


class TestFailureAndLifecycle:
    def test_fail_moves_to_error(self, session, log_store, plan_path):
        session.fail("model crashed", stack="Traceback")

        assert session.get_state() == FlowState.ERROR
        error = _entries_of(session, ErrorEntry)[-1]
        assert error.error == "model crashed"
        assert not error.recovered
        assert log_store.load_log(plan_path).current_state == FlowState.ERROR

    def test_recoverable_error_keeps_state(self, session):
        session.record_recoverable_error("rate limited")
        session.mark_recovered()

        assert session.get_state() == FlowState.CODER_ACTIVE
        assert _entries_of(session, ErrorEntry)[-1].recovered

    def test_complete(self, session, plan_path, plan_store, log_store):
        session.complete()

        entry = _entries_of(session, LifecycleEntry)[-1]
        assert entry.action == LifecycleAction.COMPLETED
        assert entry.total_steps == 3
        assert session.log.completed
        assert OrchestrationSession.open(
            plan_path, plan_store, log_store
        ).is_fresh_start

    def test_abort(self, session):
        session.abort()

        assert session.log.completed
        assert session.log.entries[-1].action == LifecycleAction.ABORTED


class TestOnDisk:
    """The same flow through the filesystem stores."""

    def test_full_cycle_on_disk(self, plan_file):
        plan_path = str(plan_file)
        plan_store = FilesystemPlanStore()
        log_store = FilesystemLogStore()

        session = OrchestrationSession.open(plan_path, plan_store, log_store)
        session.apply(RequestReviewAction(), AgentRole.CODER)
        session.record_tool_call(
            AgentRole.REVIEWER,
            "read",
            {"path": "src/cache.py"},
            "y" * (TRANSCRIPT_THRESHOLD + 10),
        )
        session.apply(ApproveAction(), AgentRole.REVIEWER)

        assert 'active_step: "2"' in plan_file.read_text()
        loaded = log_store.load_log(plan_path)
        assert loaded == session.log
        transcript_path = _entries_of(session, ToolCallEntry)[1].transcript_path
        assert load_transcript(transcript_path)["toolName"] == "read"

        reopened = OrchestrationSession.open(plan_path, plan_store, log_store)
        assert reopened.executor.get_active_step() == "2"
        assert reopened.get_state() == FlowState.CODER_ACTIVE
