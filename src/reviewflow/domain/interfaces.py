"""
Domain interfaces (Ports) for coder/reviewer orchestration.

These abstract base classes define the contracts that collaborators must
satisfy. They have no external dependencies.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from reviewflow.domain.event_log import EventLog
    from reviewflow.domain.plan import ParsedPlan


class StepResolverInterface(ABC):
    """
    Port for step ordering.

    Maps the id of the step just approved to the id of the step that follows.
    """

    @abstractmethod
    def get_next_step(self, current_step: str) -> str | None:
        """
        Resolve the step after current_step.

        Args:
            current_step: Id of the current step

        Returns:
            The next step id, or None if current_step is last or unknown
        """
        pass


class PlanStoreInterface(ABC):
    """
    Port for the Plan Loader/Saver collaborator.

    The engine only reads frontmatter["active_step"] and, on step advance,
    requests a rewrite of that single field. Everything else in the plan
    document must survive the rewrite unchanged.
    """

    @abstractmethod
    def load_plan(self, path: str) -> "ParsedPlan":
        """
        Load a plan document.

        Args:
            path: Path to the plan file

        Returns:
            ParsedPlan with frontmatter and body

        Raises:
            PlanLoadError: If the plan cannot be read or parsed
        """
        pass

    @abstractmethod
    def update_plan_frontmatter(
        self, path: str, updates: dict[str, str]
    ) -> "ParsedPlan":
        """
        Rewrite frontmatter fields in place, preserving the rest of the file.

        Args:
            path: Path to the plan file
            updates: Field name -> new value

        Returns:
            The updated ParsedPlan

        Raises:
            PlanLoadError: If the plan cannot be read or parsed
            OSError: If the file cannot be written
        """
        pass


class LogStoreInterface(ABC):
    """
    Port for orchestration log persistence.

    One log per plan. Implementations hold no state between calls beyond
    what they persist, so a restarted process sees exactly the last save.
    """

    @abstractmethod
    def save_log(self, plan_path: str, log: "EventLog") -> None:
        """
        Persist a log snapshot, replacing the previous one.

        Raises:
            OSError: If the write fails (not retried)
        """
        pass

    @abstractmethod
    def load_log(self, plan_path: str) -> "EventLog | None":
        """
        Load the persisted log for a plan.

        Returns:
            The log, or None if none has been saved

        Raises:
            LogParseError: If the persisted log is corrupt
        """
        pass

    @abstractmethod
    def delete_log(self, plan_path: str) -> None:
        """Remove the persisted log, if any."""
        pass

    @abstractmethod
    def save_transcript(
        self,
        plan_path: str,
        agent: str,
        tool_name: str,
        timestamp: int,
        content: dict[str, Any],
    ) -> str:
        """
        Store a large tool-call payload out of line.

        Returns:
            Reference to the stored transcript, recorded in the tool_call entry
        """
        pass
