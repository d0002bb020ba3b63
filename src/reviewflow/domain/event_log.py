"""
Event log for coder/reviewer orchestration.

Records state transitions, tool calls, ask-user prompts, errors, step changes
and lifecycle markers. Every function here is pure: it takes a log snapshot
and returns a new one. The log is a checkpoint of the FlowMachine, so resume
can rebuild the machine after a restart.

On disk the log is a JSON document with camelCase keys (see serialize_log).
"""

import json
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TypeVar

from reviewflow.domain.exceptions import LogParseError
from reviewflow.domain.models import (
    AgentRole,
    Approve,
    AskUser,
    FlowEvent,
    FlowState,
    ForcedTransition,
    RequestChanges,
    RequestReview,
    SystemFailure,
    UserReply,
    now_ms,
)

LOG_VERSION = 1

# Upper bound on a persisted changeRequestCount; resume replays every request
MAX_PERSISTED_CHANGE_REQUESTS = 1000

# =============================================================================
# ENTRY MODELS
# =============================================================================


class LogEntryType(str, Enum):
    """Discriminator for log entries."""

    STATE_TRANSITION = "state_transition"
    TOOL_CALL = "tool_call"
    ASK_USER = "ask_user"
    ERROR = "error"
    STEP_CHANGE = "step_change"
    LIFECYCLE = "lifecycle"


class LifecycleAction(str, Enum):
    """Orchestration lifecycle markers."""

    STARTED = "started"
    COMPLETED = "completed"
    ABORTED = "aborted"
    RESUMED = "resumed"


@dataclass(frozen=True)
class StateTransitionEntry:
    id: str
    timestamp: int
    active_step: str
    from_state: FlowState
    to_state: FlowState
    event: FlowEvent | ForcedTransition
    type: LogEntryType = field(default=LogEntryType.STATE_TRANSITION, init=False)


@dataclass(frozen=True)
class ToolCallEntry:
    id: str
    timestamp: int
    active_step: str
    agent: AgentRole
    tool_name: str
    args: dict[str, Any]
    result: Any = None
    duration: int | None = None  # milliseconds
    transcript_path: str | None = None  # large payloads live out of line
    type: LogEntryType = field(default=LogEntryType.TOOL_CALL, init=False)


@dataclass(frozen=True)
class AskUserEntry:
    id: str
    timestamp: int
    active_step: str
    agent: AgentRole
    message: str
    response: str | None = None  # filled in when the operator replies
    response_timestamp: int | None = None
    type: LogEntryType = field(default=LogEntryType.ASK_USER, init=False)


@dataclass(frozen=True)
class ErrorEntry:
    id: str
    timestamp: int
    active_step: str
    error: str
    stack: str | None = None
    recovered: bool = False
    type: LogEntryType = field(default=LogEntryType.ERROR, init=False)


@dataclass(frozen=True)
class StepChangeEntry:
    id: str
    timestamp: int
    active_step: str
    from_step: str
    to_step: str
    reason: str  # approved, user override, ...
    type: LogEntryType = field(default=LogEntryType.STEP_CHANGE, init=False)


@dataclass(frozen=True)
class LifecycleEntry:
    id: str
    timestamp: int
    active_step: str
    action: LifecycleAction
    plan_path: str
    total_steps: int | None = None
    type: LogEntryType = field(default=LogEntryType.LIFECYCLE, init=False)


LogEntry = (
    StateTransitionEntry
    | ToolCallEntry
    | AskUserEntry
    | ErrorEntry
    | StepChangeEntry
    | LifecycleEntry
)

E = TypeVar("E", bound=LogEntry)


@dataclass(frozen=True)
class EventLog:
    """Immutable snapshot of the orchestration log."""

    plan_path: str
    started_at: int
    updated_at: int
    active_step: str
    current_state: FlowState
    change_request_count: int
    completed: bool
    entries: tuple[LogEntry, ...] = ()
    version: int = LOG_VERSION


@dataclass(frozen=True)
class LogSummary:
    """Per-type entry counts; diagnostic only."""

    total_transitions: int = 0
    total_tool_calls: int = 0
    total_ask_user: int = 0
    total_errors: int = 0
    total_step_changes: int = 0
    total_lifecycle: int = 0
    duration: int = 0  # milliseconds from start to last update


# =============================================================================
# MUTATORS (each returns a new snapshot)
# =============================================================================


def generate_event_id() -> str:
    return f"evt_{uuid.uuid4().hex}"


def create_event_log(plan_path: str, active_step: str) -> EventLog:
    """Create an empty log for a new orchestration attempt."""
    now = now_ms()
    return EventLog(
        plan_path=plan_path,
        started_at=now,
        updated_at=now,
        active_step=active_step,
        current_state=FlowState.CODER_ACTIVE,
        change_request_count=0,
        completed=False,
    )


def add_log_entry(log: EventLog, entry_type: type[E], **fields: Any) -> EventLog:
    """
    Append an entry, stamping id, timestamp and the log's active step.

    Args:
        log: Current log snapshot
        entry_type: Entry class to construct
        **fields: Variant-specific fields

    Returns:
        New log snapshot with the entry appended
    """
    now = now_ms()
    entry = entry_type(
        id=generate_event_id(),
        timestamp=now,
        active_step=log.active_step,
        **fields,
    )
    return replace(log, updated_at=now, entries=log.entries + (entry,))


def log_state_transition(
    log: EventLog,
    from_state: FlowState,
    to_state: FlowState,
    event: FlowEvent | ForcedTransition,
) -> EventLog:
    return add_log_entry(
        log,
        StateTransitionEntry,
        from_state=from_state,
        to_state=to_state,
        event=event,
    )


def log_tool_call(
    log: EventLog,
    agent: AgentRole,
    tool_name: str,
    args: dict[str, Any],
    result: Any = None,
    duration: int | None = None,
    transcript_path: str | None = None,
) -> EventLog:
    return add_log_entry(
        log,
        ToolCallEntry,
        agent=agent,
        tool_name=tool_name,
        args=dict(args),
        result=result,
        duration=duration,
        transcript_path=transcript_path,
    )


def log_ask_user(log: EventLog, agent: AgentRole, message: str) -> EventLog:
    return add_log_entry(log, AskUserEntry, agent=agent, message=message)


def _patch_latest(log: EventLog, matches, patch: dict[str, Any]) -> EventLog:
    """Replace the most recent entry satisfying matches(), found by reverse scan."""
    entries = list(log.entries)
    for index in range(len(entries) - 1, -1, -1):
        if matches(entries[index]):
            entries[index] = replace(entries[index], **patch)
            break
    return replace(log, updated_at=now_ms(), entries=tuple(entries))


def log_user_response(log: EventLog, response: str) -> EventLog:
    """Attach the operator's response to the latest unanswered ask_user entry."""
    return _patch_latest(
        log,
        lambda e: isinstance(e, AskUserEntry) and e.response is None,
        {"response": response, "response_timestamp": now_ms()},
    )


def log_error(log: EventLog, error: str, stack: str | None = None) -> EventLog:
    return add_log_entry(log, ErrorEntry, error=error, stack=stack)


def log_error_recovered(log: EventLog) -> EventLog:
    """Mark the latest unrecovered error as recovered."""
    return _patch_latest(
        log,
        lambda e: isinstance(e, ErrorEntry) and not e.recovered,
        {"recovered": True},
    )


def log_step_change(
    log: EventLog, from_step: str, to_step: str, reason: str
) -> EventLog:
    """Record a step change and move the log's active step."""
    updated = add_log_entry(
        log, StepChangeEntry, from_step=from_step, to_step=to_step, reason=reason
    )
    return replace(updated, active_step=to_step)


def log_lifecycle(
    log: EventLog,
    action: LifecycleAction,
    total_steps: int | None = None,
) -> EventLog:
    """Record a lifecycle marker. completed and aborted close the log."""
    updated = add_log_entry(
        log,
        LifecycleEntry,
        action=action,
        plan_path=log.plan_path,
        total_steps=total_steps,
    )
    closes = action in (LifecycleAction.COMPLETED, LifecycleAction.ABORTED)
    return replace(updated, completed=closes)


def update_log_state(
    log: EventLog,
    *,
    active_step: str | None = None,
    current_state: FlowState | None = None,
    change_request_count: int | None = None,
) -> EventLog:
    """Update the quick-resume snapshot fields."""
    return replace(
        log,
        active_step=log.active_step if active_step is None else active_step,
        current_state=log.current_state if current_state is None else current_state,
        change_request_count=(
            log.change_request_count
            if change_request_count is None
            else change_request_count
        ),
        updated_at=now_ms(),
    )


def find_open_ask_user(log: EventLog) -> AskUserEntry | None:
    """Return the latest ask_user entry still waiting for a response."""
    for entry in reversed(log.entries):
        if isinstance(entry, AskUserEntry) and entry.response is None:
            return entry
    return None


def get_log_summary(log: EventLog) -> LogSummary:
    """Reduce entries into per-type counts plus elapsed duration."""
    counts = {entry_type: 0 for entry_type in LogEntryType}
    for entry in log.entries:
        counts[entry.type] += 1
    return LogSummary(
        total_transitions=counts[LogEntryType.STATE_TRANSITION],
        total_tool_calls=counts[LogEntryType.TOOL_CALL],
        total_ask_user=counts[LogEntryType.ASK_USER],
        total_errors=counts[LogEntryType.ERROR],
        total_step_changes=counts[LogEntryType.STEP_CHANGE],
        total_lifecycle=counts[LogEntryType.LIFECYCLE],
        duration=log.updated_at - log.started_at,
    )


# =============================================================================
# SERIALIZATION
# =============================================================================


def event_to_dict(event: FlowEvent | ForcedTransition) -> dict[str, Any]:
    match event:
        case RequestChanges(reason=reason):
            return {"type": event.type, "reason": reason}
        case AskUser(message=message, requester=requester):
            return {
                "type": event.type,
                "message": message,
                "requester": requester.value,
            }
        case UserReply(response=response):
            return {"type": event.type, "response": response}
        case SystemFailure(error=error):
            return {"type": event.type, "error": error}
        case ForcedTransition(target=target, reason=reason):
            return {"type": event.type, "target": target.value, "reason": reason}
        case _:
            return {"type": event.type}


def event_from_dict(data: dict[str, Any]) -> FlowEvent | ForcedTransition:
    match data["type"]:
        case "request_review":
            return RequestReview()
        case "request_changes":
            return RequestChanges(reason=data["reason"])
        case "approve":
            return Approve()
        case "ask_user":
            return AskUser(
                message=data["message"], requester=AgentRole(data["requester"])
            )
        case "user_reply":
            return UserReply(response=data["response"])
        case "system_error":
            return SystemFailure(error=data["error"])
        case "force_state":
            return ForcedTransition(
                target=FlowState(data["target"]), reason=data["reason"]
            )
        case other:
            raise LogParseError(f"Unknown flow event type: {other}")


def _put(data: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        data[key] = value


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": entry.id,
        "type": entry.type.value,
        "timestamp": entry.timestamp,
        "activeStep": entry.active_step,
    }
    match entry:
        case StateTransitionEntry():
            data["fromState"] = entry.from_state.value
            data["toState"] = entry.to_state.value
            data["event"] = event_to_dict(entry.event)
        case ToolCallEntry():
            data["agent"] = entry.agent.value
            data["toolName"] = entry.tool_name
            data["args"] = entry.args
            _put(data, "result", entry.result)
            _put(data, "duration", entry.duration)
            _put(data, "transcriptPath", entry.transcript_path)
        case AskUserEntry():
            data["agent"] = entry.agent.value
            data["message"] = entry.message
            _put(data, "response", entry.response)
            _put(data, "responseTimestamp", entry.response_timestamp)
        case ErrorEntry():
            data["error"] = entry.error
            _put(data, "stack", entry.stack)
            data["recovered"] = entry.recovered
        case StepChangeEntry():
            data["fromStep"] = entry.from_step
            data["toStep"] = entry.to_step
            data["reason"] = entry.reason
        case LifecycleEntry():
            data["action"] = entry.action.value
            data["planPath"] = entry.plan_path
            _put(data, "totalSteps", entry.total_steps)
    return data


def entry_from_dict(data: dict[str, Any]) -> LogEntry:
    base = {
        "id": data["id"],
        "timestamp": data["timestamp"],
        "active_step": data["activeStep"],
    }
    match LogEntryType(data["type"]):
        case LogEntryType.STATE_TRANSITION:
            return StateTransitionEntry(
                **base,
                from_state=FlowState(data["fromState"]),
                to_state=FlowState(data["toState"]),
                event=event_from_dict(data["event"]),
            )
        case LogEntryType.TOOL_CALL:
            return ToolCallEntry(
                **base,
                agent=AgentRole(data["agent"]),
                tool_name=data["toolName"],
                args=data["args"],
                result=data.get("result"),
                duration=data.get("duration"),
                transcript_path=data.get("transcriptPath"),
            )
        case LogEntryType.ASK_USER:
            return AskUserEntry(
                **base,
                agent=AgentRole(data["agent"]),
                message=data["message"],
                response=data.get("response"),
                response_timestamp=data.get("responseTimestamp"),
            )
        case LogEntryType.ERROR:
            return ErrorEntry(
                **base,
                error=data["error"],
                stack=data.get("stack"),
                recovered=bool(data.get("recovered", False)),
            )
        case LogEntryType.STEP_CHANGE:
            return StepChangeEntry(
                **base,
                from_step=data["fromStep"],
                to_step=data["toStep"],
                reason=data["reason"],
            )
        case LogEntryType.LIFECYCLE:
            return LifecycleEntry(
                **base,
                action=LifecycleAction(data["action"]),
                plan_path=data["planPath"],
                total_steps=data.get("totalSteps"),
            )


def log_to_dict(log: EventLog) -> dict[str, Any]:
    return {
        "version": log.version,
        "planPath": log.plan_path,
        "startedAt": log.started_at,
        "updatedAt": log.updated_at,
        "activeStep": log.active_step,
        "currentState": log.current_state.value,
        "changeRequestCount": log.change_request_count,
        "completed": log.completed,
        "entries": [entry_to_dict(entry) for entry in log.entries],
    }


def serialize_log(log: EventLog) -> str:
    """Serialize the log to a JSON document."""
    return json.dumps(log_to_dict(log), indent=2)


def parse_log(text: str) -> EventLog:
    """
    Parse a log from its JSON document.

    Raises:
        LogParseError: If the document is not valid JSON or fails structural
            validation
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as e:
        raise LogParseError(f"Failed to parse log: {e}") from e

    if not isinstance(data, dict):
        raise LogParseError(f"Expected a JSON object, got {type(data).__name__}")

    version = data.get("version")
    if type(version) is not int or version != LOG_VERSION:
        raise LogParseError(
            f"Unsupported log version: {version}. Expected version {LOG_VERSION}."
        )

    plan_path = data.get("planPath")
    if not isinstance(plan_path, str) or not plan_path:
        raise LogParseError("Missing or invalid planPath")

    active_step = data.get("activeStep")
    if not isinstance(active_step, str) or not active_step:
        raise LogParseError("Missing or invalid activeStep")

    entries = data.get("entries")
    if not isinstance(entries, list):
        raise LogParseError("Missing or invalid entries array")

    valid_states = [state.value for state in FlowState]
    current_state = data.get("currentState")
    if current_state not in valid_states:
        raise LogParseError(f"Invalid currentState: {current_state}")

    count = data.get("changeRequestCount", 0)
    if type(count) is not int or not 0 <= count <= MAX_PERSISTED_CHANGE_REQUESTS:
        raise LogParseError(f"Invalid changeRequestCount: {count}")

    try:
        return EventLog(
            plan_path=plan_path,
            started_at=int(data["startedAt"]),
            updated_at=int(data["updatedAt"]),
            active_step=active_step,
            current_state=FlowState(current_state),
            change_request_count=count,
            completed=bool(data.get("completed", False)),
            entries=tuple(entry_from_dict(entry) for entry in entries),
        )
    except LogParseError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise LogParseError(f"Failed to parse log: {e!r}") from e
