"""
Guards for reviewflow.

Guards are deterministic checks applied to agent tool calls before they run.

- tool_filter: read-only enforcement for the reviewer
"""

from reviewflow.guards.tool_filter import (
    WRITE_BASH_PATTERNS,
    WRITE_TOOL_NAMES,
    ReadOnlyInterceptor,
    ToolFilterResult,
    create_read_only_interceptor,
    create_tool_filter,
    filter_tools_for_role,
    is_write_bash_command,
    is_write_tool,
)

__all__ = [
    "WRITE_BASH_PATTERNS",
    "WRITE_TOOL_NAMES",
    "ReadOnlyInterceptor",
    "ToolFilterResult",
    "create_read_only_interceptor",
    "create_tool_filter",
    "filter_tools_for_role",
    "is_write_bash_command",
    "is_write_tool",
]
