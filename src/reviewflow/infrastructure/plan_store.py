"""
Plan Loader/Saver adapters.

The orchestration engine only reads and rewrites frontmatter["active_step"];
rewrites go through set_frontmatter_field so the rest of the file is kept
byte for byte.
"""

import logging
from pathlib import Path

from reviewflow.domain.exceptions import PlanLoadError, PlanParseError
from reviewflow.domain.interfaces import PlanStoreInterface
from reviewflow.domain.plan import (
    DEFAULT_ACTIVE_STEP,
    ParsedPlan,
    parse_plan,
    set_frontmatter_field,
)

logger = logging.getLogger(__name__)


def _parse_or_raise(path: str, content: str) -> ParsedPlan:
    try:
        return parse_plan(content)
    except PlanParseError as e:
        raise PlanLoadError(f"Failed to parse plan {path}: {e}", path=path) from e


class FilesystemPlanStore(PlanStoreInterface):
    """Plans stored as markdown files with optional frontmatter."""

    def load_plan(self, path: str) -> ParsedPlan:
        plan_file = Path(path)
        try:
            content = plan_file.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise PlanLoadError(f"Plan not found: {path}", path=path) from e
        except OSError as e:
            raise PlanLoadError(f"Failed to read plan {path}: {e}", path=path) from e
        return _parse_or_raise(path, content)

    def update_plan_frontmatter(
        self, path: str, updates: dict[str, str]
    ) -> ParsedPlan:
        plan_file = Path(path)
        try:
            with open(plan_file, encoding="utf-8", newline="") as f:
                content = f.read()
        except OSError as e:
            raise PlanLoadError(f"Failed to read plan {path}: {e}", path=path) from e

        try:
            for key, value in updates.items():
                content = set_frontmatter_field(content, key, value)
        except PlanParseError as e:
            raise PlanLoadError(f"Failed to parse plan {path}: {e}", path=path) from e

        # newline="" keeps CRLF line endings as they were read
        with open(plan_file, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        logger.info("Updated plan %s: %s", path, updates)
        return parse_plan(content)

    def create_plan(
        self, path: str, body: str, active_step: str = DEFAULT_ACTIVE_STEP
    ) -> ParsedPlan:
        """Write a new plan file with an active_step frontmatter field."""
        plan_file = Path(path)
        plan_file.parent.mkdir(parents=True, exist_ok=True)
        content = set_frontmatter_field(body, "active_step", active_step)
        plan_file.write_text(content, encoding="utf-8")
        return parse_plan(content)


class InMemoryPlanStore(PlanStoreInterface):
    """Plan documents held as text, keyed by path. Useful for testing."""

    def __init__(self, plans: dict[str, str] | None = None) -> None:
        self._plans: dict[str, str] = dict(plans or {})
        self.fail_writes = False

    def add_plan(self, path: str, content: str) -> None:
        self._plans[path] = content

    def get_content(self, path: str) -> str:
        return self._plans[path]

    def load_plan(self, path: str) -> ParsedPlan:
        if path not in self._plans:
            raise PlanLoadError(f"Plan not found: {path}", path=path)
        return _parse_or_raise(path, self._plans[path])

    def update_plan_frontmatter(
        self, path: str, updates: dict[str, str]
    ) -> ParsedPlan:
        self.load_plan(path)
        if self.fail_writes:
            raise OSError(f"Simulated write failure: {path}")
        content = self._plans[path]
        for key, value in updates.items():
            content = set_frontmatter_field(content, key, value)
        self._plans[path] = content
        return parse_plan(content)
