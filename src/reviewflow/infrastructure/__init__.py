"""
Infrastructure layer for reviewflow.

Contains adapters for external concerns (log files, transcripts, plan files).
"""

from reviewflow.infrastructure.persistence import (
    FilesystemLogStore,
    InMemoryLogStore,
)
from reviewflow.infrastructure.plan_store import (
    FilesystemPlanStore,
    InMemoryPlanStore,
)

__all__ = [
    # Logs
    "FilesystemLogStore",
    "InMemoryLogStore",
    # Plans
    "FilesystemPlanStore",
    "InMemoryPlanStore",
]
