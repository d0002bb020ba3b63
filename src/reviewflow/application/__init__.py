"""
Application layer for reviewflow.

Contains the use cases that drive the domain: tool execution, resume, the
reference session controller and configuration.
"""

from reviewflow.application.agent_tools import parse_tool_action
from reviewflow.application.config import OrchestrationConfig, load_config
from reviewflow.application.resume_service import (
    ResumeResult,
    resume_orchestration,
    sync_log_state,
)
from reviewflow.application.session import OrchestrationSession
from reviewflow.application.tool_executor import ToolExecutionResult, ToolExecutor

__all__ = [
    "OrchestrationConfig",
    "OrchestrationSession",
    "ResumeResult",
    "ToolExecutionResult",
    "ToolExecutor",
    "load_config",
    "parse_tool_action",
    "resume_orchestration",
    "sync_log_state",
]
