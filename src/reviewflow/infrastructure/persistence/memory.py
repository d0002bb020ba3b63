"""
In-memory implementation of the log store.

Useful for testing. Logs are kept serialized so a load goes through the same
parse path as the filesystem store.
"""

from typing import Any

from reviewflow.domain.event_log import EventLog, parse_log, serialize_log
from reviewflow.domain.interfaces import LogStoreInterface


class InMemoryLogStore(LogStoreInterface):
    """Simple in-memory log store for testing."""

    def __init__(self) -> None:
        self._logs: dict[str, str] = {}
        self.transcripts: dict[str, dict[str, Any]] = {}

    def save_log(self, plan_path: str, log: EventLog) -> None:
        self._logs[plan_path] = serialize_log(log)

    def load_log(self, plan_path: str) -> EventLog | None:
        if plan_path not in self._logs:
            return None
        return parse_log(self._logs[plan_path])

    def delete_log(self, plan_path: str) -> None:
        self._logs.pop(plan_path, None)

    def save_transcript(
        self,
        plan_path: str,
        agent: str,
        tool_name: str,
        timestamp: int,
        content: dict[str, Any],
    ) -> str:
        key = f"{plan_path}#{agent}_{tool_name}_{timestamp}"
        self.transcripts[key] = dict(content)
        return key

    def put_raw(self, plan_path: str, text: str) -> None:
        """Store raw document text, e.g. to simulate a corrupt log."""
        self._logs[plan_path] = text

