"""
Read-only enforcement for the reviewer agent.

Filters and wraps agent tools so a read-only reviewer cannot modify the
workspace. Pure predicates over tool names and arguments; no I/O. This sits
alongside whatever workspace permissions the host environment applies.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from reviewflow.domain.models import AgentRole
from reviewflow.domain.tool_actions import BlockedAction

T = TypeVar("T")

WRITE_TOOL_NAMES = frozenset(
    {
        # File operations
        "write",
        "edit",
        "delete",
        "create",
        "move",
        "rename",
        "mkdir",
        "rmdir",
        "rm",
        # Git operations that modify state
        "git_commit",
        "git_push",
        "git_checkout",
        "git_merge",
        "git_rebase",
        "git_reset",
        "git_stash",
        # Package management
        "npm_install",
        "yarn_add",
        "pip_install",
    }
)

# Heuristic; false positives and negatives are possible
WRITE_BASH_PATTERNS = (
    re.compile(r"\brm\s"),
    re.compile(r"\brmdir\s"),
    re.compile(r"\bmkdir\s"),
    re.compile(r"\btouch\s"),
    re.compile(r"\bmv\s"),
    re.compile(r"\bcp\s"),
    re.compile(r"\bchmod\s"),
    re.compile(r"\bchown\s"),
    # Redirection
    re.compile(r">\s"),
    re.compile(r">>"),
    re.compile(r"\bgit\s+(commit|push|checkout|merge|rebase|reset|stash|add|rm)\b"),
    re.compile(r"\bnpm\s+(install|uninstall|update|publish)\b"),
    re.compile(r"\byarn\s+(add|remove|install)\b"),
    re.compile(r"\bpip\s+(install|uninstall)\b"),
    re.compile(r"\b(vim|vi|nano|emacs)\s"),
)

READ_ONLY_SUFFIX = "Reviewer operates in read-only mode."


@dataclass(frozen=True)
class ToolFilterResult:
    allowed: bool
    reason: str | None = None


ToolFilter = Callable[[str, Mapping[str, Any] | None], ToolFilterResult]


def is_write_tool(tool_name: str) -> bool:
    return tool_name.lower() in WRITE_TOOL_NAMES


def is_write_bash_command(command: str) -> bool:
    """Check whether a shell command looks like it writes."""
    return any(pattern.search(command) for pattern in WRITE_BASH_PATTERNS)


def _is_restricted(role: AgentRole, read_only_reviewer: bool) -> bool:
    return role == AgentRole.REVIEWER and read_only_reviewer


def create_tool_filter(
    role: AgentRole, read_only_reviewer: bool = True
) -> ToolFilter:
    """
    Build the tool-call predicate for a role.

    The coder, and a reviewer with read_only_reviewer=False, may call
    anything. A read-only reviewer is refused explicit write tools and bash
    commands matching WRITE_BASH_PATTERNS.

    Args:
        role: Agent the filter applies to
        read_only_reviewer: Whether the reviewer is restricted

    Returns:
        Callable (tool_name, args) -> ToolFilterResult
    """
    if not _is_restricted(role, read_only_reviewer):
        return lambda tool_name, args=None: ToolFilterResult(allowed=True)

    def check(
        tool_name: str, args: Mapping[str, Any] | None = None
    ) -> ToolFilterResult:
        if is_write_tool(tool_name):
            return ToolFilterResult(
                allowed=False,
                reason=(
                    f"Reviewer cannot use write tool '{tool_name}'. "
                    f"{READ_ONLY_SUFFIX}"
                ),
            )

        if tool_name.lower() == "bash" and args and args.get("command"):
            command = str(args["command"])
            if is_write_bash_command(command):
                return ToolFilterResult(
                    allowed=False,
                    reason=(
                        "Reviewer cannot execute write operation in bash: "
                        f"'{command[:50]}...'. {READ_ONLY_SUFFIX}"
                    ),
                )

        return ToolFilterResult(allowed=True)

    return check


def filter_tools_for_role(
    tools: Mapping[str, T], role: AgentRole, read_only_reviewer: bool = True
) -> dict[str, T]:
    """Drop write tools from a toolset when the role is restricted."""
    if not _is_restricted(role, read_only_reviewer):
        return dict(tools)
    return {name: tool for name, tool in tools.items() if not is_write_tool(name)}


class ReadOnlyInterceptor:
    """Checks tool calls before they run and short-circuits rejected ones."""

    def __init__(self, role: AgentRole, read_only_reviewer: bool = True):
        self.role = role
        self._filter = create_tool_filter(role, read_only_reviewer)

    def check(
        self, tool_name: str, args: Mapping[str, Any] | None = None
    ) -> ToolFilterResult:
        return self._filter(tool_name, args)

    def wrap(
        self, tool_name: str, execute: Callable[[Mapping[str, Any]], T]
    ) -> Callable[[Mapping[str, Any]], T | BlockedAction]:
        """
        Wrap a tool's execute function.

        A rejected call returns a BlockedAction instead of running execute.
        """

        def guarded(args: Mapping[str, Any]) -> T | BlockedAction:
            result = self._filter(tool_name, args)
            if not result.allowed:
                return BlockedAction(
                    reason=result.reason or "Operation not allowed in read-only mode"
                )
            return execute(args)

        return guarded


def create_read_only_interceptor(
    role: AgentRole, read_only_reviewer: bool = True
) -> ReadOnlyInterceptor:
    return ReadOnlyInterceptor(role, read_only_reviewer)
