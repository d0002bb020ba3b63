"""
Filesystem persistence for orchestration logs and tool-call transcripts.

Directory structure (next to the plan file):
    <planDir>/.orchestration/
        orchestration.log.json
        transcripts/
            <agent>_<toolName>_<unixMillis>.json

A single writer per plan is assumed; nothing here takes a lock.
"""

import json
import logging
from pathlib import Path
from typing import Any

import jsonschema

from reviewflow.domain.event_log import EventLog, parse_log, serialize_log
from reviewflow.domain.exceptions import LogParseError
from reviewflow.domain.interfaces import LogStoreInterface
from reviewflow.schemas import validate_log

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = ".orchestration"
LOG_FILE_NAME = "orchestration.log.json"
TRANSCRIPTS_DIR = "transcripts"


def get_log_path(plan_path: str) -> Path:
    """Path of the orchestration log for a plan file."""
    return Path(plan_path).parent / DEFAULT_LOG_DIR / LOG_FILE_NAME


def get_transcripts_dir(plan_path: str) -> Path:
    return Path(plan_path).parent / DEFAULT_LOG_DIR / TRANSCRIPTS_DIR


def ensure_log_dir(plan_path: str) -> Path:
    """Create the log directory if needed and return it."""
    log_dir = get_log_path(plan_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def create_transcript_path(
    plan_path: str, agent: str, tool_name: str, timestamp: int
) -> Path:
    """
    Build the transcript path for one tool call.

    Args:
        plan_path: Path to the plan file
        agent: Agent role value (coder or reviewer)
        tool_name: Name of the tool that was called
        timestamp: Call time in unix milliseconds

    Returns:
        <planDir>/.orchestration/transcripts/<agent>_<tool_name>_<timestamp>.json
    """
    return get_transcripts_dir(plan_path) / f"{agent}_{tool_name}_{timestamp}.json"


def save_transcript(path: str | Path, content: dict[str, Any]) -> None:
    """Write a transcript, creating the transcripts directory on demand."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(content, f, indent=2)


def load_transcript(path: str | Path) -> dict[str, Any] | None:
    """Read a transcript; None if it does not exist."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        result: dict[str, Any] = json.load(f)
        return result


class FilesystemLogStore(LogStoreInterface):
    """
    Orchestration log stored as pretty-printed JSON beside the plan.

    Saves replace the whole document via write-to-temp + rename, so a crash
    mid-write leaves the previous snapshot intact. Loads check the domain
    structure first and then the bundled JSON Schema.
    """

    def save_log(self, plan_path: str, log: EventLog) -> None:
        ensure_log_dir(plan_path)
        log_path = get_log_path(plan_path)
        temp_path = log_path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(serialize_log(log))
        temp_path.replace(log_path)  # Atomic on POSIX
        logger.debug(
            "Saved log for %s (%d entries, state=%s)",
            plan_path,
            len(log.entries),
            log.current_state.value,
        )

    def load_log(self, plan_path: str) -> EventLog | None:
        log_path = get_log_path(plan_path)
        if not log_path.exists():
            return None

        try:
            text = log_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise LogParseError(f"Log {log_path} is not valid UTF-8: {e}") from e
        log = parse_log(text)
        try:
            validate_log(json.loads(text))
        except jsonschema.ValidationError as e:
            path = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise LogParseError(f"Schema violation at {path}: {e.message}") from e
        return log

    def delete_log(self, plan_path: str) -> None:
        log_path = get_log_path(plan_path)
        if log_path.exists():
            log_path.unlink()
            logger.info("Deleted log %s", log_path)

    def save_transcript(
        self,
        plan_path: str,
        agent: str,
        tool_name: str,
        timestamp: int,
        content: dict[str, Any],
    ) -> str:
        path = create_transcript_path(plan_path, agent, tool_name, timestamp)
        save_transcript(path, content)
        return str(path)
